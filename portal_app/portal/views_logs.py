from __future__ import annotations

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.views.decorators.http import require_GET

from portal.activity_log import logs_by_category, recent_logs, serialize_log_entry
from portal.models import ActivityLogEntry
from portal.permissions import PORTAL_VIEW_ACTIVITYLOGENTRY, json_permission_required
from portal.views_utils import _normalize_str, json_error, parse_limit


@require_GET
@json_permission_required(PORTAL_VIEW_ACTIVITYLOGENTRY)
def activity_logs(request: HttpRequest) -> JsonResponse:
    category = _normalize_str(request.GET.get("category"))
    if category and category not in ActivityLogEntry.Category.values:
        return json_error(f"Unknown category: {category}")

    default_limit = (
        settings.ACTIVITY_LOG_CATEGORY_DEFAULT_LIMIT if category else settings.ACTIVITY_LOG_DEFAULT_LIMIT
    )
    try:
        limit = parse_limit(request.GET.get("limit"), default=default_limit)
    except ValueError as exc:
        return json_error(str(exc))

    entries = logs_by_category(category=category, limit=limit) if category else recent_logs(limit=limit)
    return JsonResponse({"ok": True, "logs": [serialize_log_entry(e) for e in entries]})
