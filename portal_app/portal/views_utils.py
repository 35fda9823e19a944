from __future__ import annotations

import json
from typing import Any

from django.http import HttpRequest, JsonResponse

from portal.models import FacultyMember


def _normalize_str(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def json_error(message: str, *, status: int = 400) -> JsonResponse:
    return JsonResponse({"ok": False, "error": message}, status=status)


def json_not_found() -> JsonResponse:
    return json_error("Not found.", status=404)


def request_data(request: HttpRequest) -> dict[str, Any]:
    """Return the submitted fields from a JSON body or a regular form post.

    Raises ValueError when a JSON body is malformed or not an object.
    """

    if request.content_type and request.content_type.startswith("application/json"):
        raw = request.body.decode("utf-8") if request.body else "{}"
        try:
            data = json.loads(raw or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Request body must be valid JSON.") from exc
        if not isinstance(data, dict):
            raise ValueError("Request body must be a JSON object.")
        return data

    return {key: request.POST.get(key) for key in request.POST}


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return _normalize_str(value).lower() in {"1", "true", "yes", "on"}


def parse_limit(value: object, *, default: int, maximum: int = 500) -> int:
    s = _normalize_str(value)
    if not s:
        return default
    try:
        limit = int(s)
    except ValueError as exc:
        raise ValueError("limit must be a whole number.") from exc
    if limit < 1:
        raise ValueError("limit must be at least 1.")
    return min(limit, maximum)


def current_faculty_member(request: HttpRequest) -> FacultyMember | None:
    user = request.user
    if not user.is_authenticated:
        return None
    return FacultyMember.objects.filter(user=user).first()
