from __future__ import annotations

import logging

from django.http import HttpRequest, JsonResponse
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from portal import registrations_services
from portal.models import Registration
from portal.permissions import PORTAL_CHANGE_REGISTRATION, json_permission_required
from portal.registrations_services import (
    AccountSetupError,
    RegistrationClosedError,
    RegistrationError,
    serialize_registration,
)
from portal.views_utils import _normalize_str, json_error, json_not_found, request_data

logger = logging.getLogger(__name__)


@require_POST
def registration_submit(request: HttpRequest) -> JsonResponse:
    try:
        registration = registrations_services.submit_registration(
            full_name=request.POST.get("full_name") or "",
            email=request.POST.get("email") or "",
            phone=request.POST.get("phone") or "",
            department=request.POST.get("department") or "",
            address=request.POST.get("address") or "",
            purpose=request.POST.get("purpose") or "",
            receipt=request.FILES.get("receipt"),
        )
    except RegistrationClosedError as exc:
        return json_error(str(exc), status=403)
    except RegistrationError as exc:
        return json_error(str(exc))

    return JsonResponse({"ok": True, "registration_id": registration.id, "status": registration.status}, status=201)


@require_GET
@json_permission_required(PORTAL_CHANGE_REGISTRATION)
def registrations_list(request: HttpRequest) -> JsonResponse:
    status = _normalize_str(request.GET.get("status"))
    if status and status not in Registration.Status.values:
        return json_error(f"Unknown status: {status}")

    registrations = registrations_services.list_registrations(status=status or None)
    return JsonResponse({"ok": True, "registrations": [serialize_registration(r) for r in registrations]})


@require_POST
@json_permission_required(PORTAL_CHANGE_REGISTRATION)
def registration_approve(request: HttpRequest, registration_id: int) -> JsonResponse:
    registration = Registration.objects.filter(pk=registration_id).first()
    if registration is None:
        return json_not_found()

    try:
        registration = registrations_services.approve_registration(registration=registration, actor=request.user)
    except RegistrationError as exc:
        return json_error(str(exc))
    return JsonResponse({"ok": True, "registration": serialize_registration(registration)})


@require_POST
@json_permission_required(PORTAL_CHANGE_REGISTRATION)
def registration_reject(request: HttpRequest, registration_id: int) -> JsonResponse:
    registration = Registration.objects.filter(pk=registration_id).first()
    if registration is None:
        return json_not_found()

    try:
        registration = registrations_services.reject_registration(registration=registration, actor=request.user)
    except RegistrationError as exc:
        return json_error(str(exc))
    return JsonResponse({"ok": True, "registration": serialize_registration(registration)})


@require_POST
@json_permission_required(PORTAL_CHANGE_REGISTRATION)
def registration_complete(request: HttpRequest, registration_id: int) -> JsonResponse:
    registration = Registration.objects.filter(pk=registration_id).first()
    if registration is None:
        return json_not_found()

    try:
        data = request_data(request)
        registration = registrations_services.complete_registration(
            registration=registration,
            account_email=_normalize_str(data.get("account_email")) or None,
            actor=request.user,
        )
    except (ValueError, RegistrationError) as exc:
        return json_error(str(exc))
    return JsonResponse({"ok": True, "registration": serialize_registration(registration)})


@require_http_methods(["GET", "POST"])
def account_setup(request: HttpRequest) -> JsonResponse:
    if request.method == "GET":
        token = _normalize_str(request.GET.get("token"))
        try:
            user = registrations_services.read_account_setup_token(token)
        except AccountSetupError as exc:
            return json_error(str(exc))
        return JsonResponse({"ok": True, "username": user.get_username()})

    try:
        data = request_data(request)
    except ValueError as exc:
        return json_error(str(exc))

    password = str(data.get("password") or "")
    if password != str(data.get("password_confirm") or ""):
        return json_error("Passwords do not match")

    try:
        user = registrations_services.complete_account_setup(
            token=_normalize_str(data.get("token")),
            password=password,
        )
    except AccountSetupError as exc:
        return json_error(str(exc))

    return JsonResponse({"ok": True, "username": user.get_username()})
