from __future__ import annotations

from collections.abc import Callable
from functools import wraps

from django.http import HttpRequest, HttpResponse, JsonResponse

PORTAL_ADD_ELECTION = "portal.add_election"
PORTAL_ADD_POLL = "portal.add_poll"
PORTAL_ADD_ANNOUNCEMENT = "portal.add_announcement"
PORTAL_CHANGE_REGISTRATION = "portal.change_registration"
PORTAL_CHANGE_FACULTYMEMBER = "portal.change_facultymember"
PORTAL_VIEW_ACTIVITYLOGENTRY = "portal.view_activitylogentry"
PORTAL_VIEW_FINANCIALRECORD = "portal.view_financialrecord"
PORTAL_ADD_FINANCIALRECORD = "portal.add_financialrecord"
PORTAL_CHANGE_FINANCIALRECORD = "portal.change_financialrecord"
PORTAL_DELETE_FINANCIALRECORD = "portal.delete_financialrecord"


def json_login_required(view: Callable[..., HttpResponse]) -> Callable[..., HttpResponse]:
    @wraps(view)
    def _wrapped(request: HttpRequest, *args, **kwargs) -> HttpResponse:
        if not request.user.is_authenticated:
            return JsonResponse({"ok": False, "error": "Authentication required."}, status=401)
        return view(request, *args, **kwargs)

    return _wrapped


def json_permission_required(perm: str) -> Callable[[Callable[..., HttpResponse]], Callable[..., HttpResponse]]:
    """Like `permission_required`, but answers API clients with JSON instead of a login redirect."""

    def _decorator(view: Callable[..., HttpResponse]) -> Callable[..., HttpResponse]:
        @wraps(view)
        def _wrapped(request: HttpRequest, *args, **kwargs) -> HttpResponse:
            if not request.user.is_authenticated:
                return JsonResponse({"ok": False, "error": "Authentication required."}, status=401)
            if not request.user.has_perm(perm):
                return JsonResponse({"ok": False, "error": "Permission denied."}, status=403)
            return view(request, *args, **kwargs)

        return _wrapped

    return _decorator
