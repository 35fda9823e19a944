from __future__ import annotations

from django.http import HttpRequest, JsonResponse
from django.views.decorators.http import require_http_methods, require_POST

from portal import faculty_services
from portal.faculty_services import FacultyError, serialize_faculty_member
from portal.models import FacultyMember
from portal.permissions import PORTAL_CHANGE_FACULTYMEMBER, json_login_required, json_permission_required
from portal.views_utils import json_error, json_not_found, parse_bool, request_data


@require_http_methods(["GET", "POST"])
@json_login_required
def faculty_collection(request: HttpRequest) -> JsonResponse:
    if request.method == "POST":
        return _faculty_create(request)

    members = faculty_services.list_faculty(active_only=parse_bool(request.GET.get("active")))
    return JsonResponse({"ok": True, "faculty": [serialize_faculty_member(m) for m in members]})


@json_permission_required(PORTAL_CHANGE_FACULTYMEMBER)
def _faculty_create(request: HttpRequest) -> JsonResponse:
    try:
        data = request_data(request)
        member = faculty_services.create_faculty_member(
            name=data.get("name") or "",
            email=data.get("email") or "",
            department=data.get("department") or "",
            position=data.get("position") or "",
            actor=request.user,
        )
    except (ValueError, FacultyError) as exc:
        return json_error(str(exc))

    return JsonResponse({"ok": True, "faculty": serialize_faculty_member(member)}, status=201)


@require_POST
@json_permission_required(PORTAL_CHANGE_FACULTYMEMBER)
def faculty_update(request: HttpRequest, faculty_id: int) -> JsonResponse:
    member = FacultyMember.objects.filter(pk=faculty_id).first()
    if member is None:
        return json_not_found()

    try:
        data = request_data(request)
        member = faculty_services.update_faculty_member(member=member, changes=data, actor=request.user)
    except (ValueError, FacultyError) as exc:
        return json_error(str(exc))

    return JsonResponse({"ok": True, "faculty": serialize_faculty_member(member)})


@require_POST
@json_permission_required(PORTAL_CHANGE_FACULTYMEMBER)
def faculty_toggle_active(request: HttpRequest, faculty_id: int) -> JsonResponse:
    member = FacultyMember.objects.filter(pk=faculty_id).first()
    if member is None:
        return json_not_found()

    member = faculty_services.toggle_faculty_active(member=member, actor=request.user)
    return JsonResponse({"ok": True, "faculty": serialize_faculty_member(member)})
