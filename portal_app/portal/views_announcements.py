from __future__ import annotations

from django.http import HttpRequest, JsonResponse
from django.views.decorators.http import require_http_methods, require_POST

from portal import announcements_services
from portal.announcements_services import AnnouncementError, serialize_announcement
from portal.models import Announcement
from portal.permissions import PORTAL_ADD_ANNOUNCEMENT, json_login_required, json_permission_required
from portal.views_utils import json_error, json_not_found, parse_bool, request_data


@require_http_methods(["GET", "POST"])
@json_login_required
def announcements_collection(request: HttpRequest) -> JsonResponse:
    if request.method == "POST":
        return _announcement_create(request)

    announcements = announcements_services.list_announcements()
    return JsonResponse({"ok": True, "announcements": [serialize_announcement(a) for a in announcements]})


@json_permission_required(PORTAL_ADD_ANNOUNCEMENT)
def _announcement_create(request: HttpRequest) -> JsonResponse:
    try:
        data = request_data(request)
        announcement, queued = announcements_services.create_announcement(
            title=data.get("title") or "",
            content=data.get("content") or "",
            category=data.get("category") or Announcement.Category.general,
            is_pinned=parse_bool(data.get("is_pinned")),
            notify=parse_bool(data.get("notify")),
            actor=request.user,
        )
    except (ValueError, AnnouncementError) as exc:
        return json_error(str(exc))

    return JsonResponse(
        {"ok": True, "announcement": serialize_announcement(announcement), "notifications_queued": queued},
        status=201,
    )


@require_POST
@json_permission_required(PORTAL_ADD_ANNOUNCEMENT)
def announcement_update(request: HttpRequest, announcement_id: int) -> JsonResponse:
    announcement = Announcement.objects.filter(pk=announcement_id).first()
    if announcement is None:
        return json_not_found()

    try:
        data = request_data(request)
        if "is_pinned" in data:
            data["is_pinned"] = parse_bool(data["is_pinned"])
        announcement = announcements_services.update_announcement(
            announcement=announcement,
            changes=data,
            actor=request.user,
        )
    except (ValueError, AnnouncementError) as exc:
        return json_error(str(exc))

    return JsonResponse({"ok": True, "announcement": serialize_announcement(announcement)})


@require_POST
@json_permission_required(PORTAL_ADD_ANNOUNCEMENT)
def announcement_toggle_pin(request: HttpRequest, announcement_id: int) -> JsonResponse:
    announcement = Announcement.objects.filter(pk=announcement_id).first()
    if announcement is None:
        return json_not_found()

    announcement = announcements_services.toggle_announcement_pin(announcement=announcement)
    return JsonResponse({"ok": True, "announcement": serialize_announcement(announcement)})


@require_POST
@json_permission_required(PORTAL_ADD_ANNOUNCEMENT)
def announcement_delete(request: HttpRequest, announcement_id: int) -> JsonResponse:
    announcement = Announcement.objects.filter(pk=announcement_id).first()
    if announcement is None:
        return json_not_found()

    announcements_services.delete_announcement(announcement=announcement, actor=request.user)
    return JsonResponse({"ok": True, "announcement_id": announcement_id})
