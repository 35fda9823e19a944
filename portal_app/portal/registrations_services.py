from __future__ import annotations

import datetime
import logging
import re
from pathlib import PurePath
from urllib.parse import quote

import post_office.mail
from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core import signing
from django.core.exceptions import ValidationError
from django.core.files.uploadedfile import UploadedFile
from django.core.validators import validate_email
from django.db import transaction
from django.urls import reverse
from django.utils import timezone

from portal.activity_log import actor_identity, log_registration_action
from portal.models import FacultyMember, Registration
from portal.tokens import ACCOUNT_SETUP_TOKEN_PURPOSE, make_signed_token, read_purpose_token

logger = logging.getLogger(__name__)

ALLOWED_RECEIPT_EXTENSIONS = frozenset({".pdf", ".png", ".jpg", ".jpeg", ".webp"})

_USERNAME_INVALID_RE = re.compile(r"[^a-z0-9._-]+")


class RegistrationError(Exception):
    pass


class RegistrationClosedError(RegistrationError):
    pass


class RegistrationStateError(RegistrationError):
    pass


class AccountSetupError(Exception):
    pass


def _required(value: object, *, label: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise RegistrationError(f"{label} is required")
    return text


def _clean_email(value: object) -> str:
    email = _required(value, label="Email").lower()
    try:
        validate_email(email)
    except ValidationError as exc:
        raise RegistrationError("Enter a valid email address") from exc
    return email


def _check_receipt(receipt: UploadedFile | None) -> UploadedFile:
    if receipt is None:
        raise RegistrationError("Please upload your payment receipt")

    extension = PurePath(str(receipt.name or "")).suffix.lower()
    if extension not in ALLOWED_RECEIPT_EXTENSIONS:
        raise RegistrationError("Receipt must be a PDF or an image")

    if receipt.size is not None and receipt.size > settings.REGISTRATION_RECEIPT_MAX_BYTES:
        max_mb = settings.REGISTRATION_RECEIPT_MAX_BYTES // (1024 * 1024)
        raise RegistrationError(f"Receipt file must be {max_mb} MB or smaller")
    return receipt


@transaction.atomic
def submit_registration(
    *,
    full_name: str,
    email: str,
    department: str,
    receipt: UploadedFile | None,
    phone: str = "",
    address: str = "",
    purpose: str = "",
) -> Registration:
    if not settings.REGISTRATION_OPEN:
        raise RegistrationClosedError("Registration is currently closed")

    registration = Registration.objects.create(
        full_name=_required(full_name, label="Full name"),
        email=_clean_email(email),
        department=_required(department, label="Department"),
        phone=str(phone or "").strip(),
        address=str(address or "").strip(),
        purpose=str(purpose or "").strip(),
        receipt=_check_receipt(receipt),
    )
    logger.info("Registration submitted registration_id=%s", registration.id)
    return registration


def list_registrations(*, status: str | None = None) -> list[Registration]:
    qs = Registration.objects.order_by("-created_at", "-id")
    if status:
        qs = qs.filter(status=status)
    return list(qs)


def _decide(*, registration: Registration, status: str, actor: object | None) -> Registration:
    locked = Registration.objects.select_for_update().get(pk=registration.pk)
    if locked.status != Registration.Status.pending:
        raise RegistrationStateError("Only pending registrations can be approved or rejected")

    actor_username, _actor_name = actor_identity(actor)
    locked.status = status
    locked.decided_at = timezone.now()
    locked.decided_by = actor_username
    locked.save(update_fields=["status", "decided_at", "decided_by"])
    return locked


@transaction.atomic
def approve_registration(*, registration: Registration, actor: object | None = None) -> Registration:
    approved = _decide(registration=registration, status=Registration.Status.approved, actor=actor)
    log_registration_action(
        action="approved",
        full_name=approved.full_name,
        actor=actor,
        metadata={"registration_id": approved.id},
    )
    return approved


@transaction.atomic
def reject_registration(*, registration: Registration, actor: object | None = None) -> Registration:
    rejected = _decide(registration=registration, status=Registration.Status.rejected, actor=actor)
    log_registration_action(
        action="rejected",
        full_name=rejected.full_name,
        actor=actor,
        metadata={"registration_id": rejected.id},
    )
    return rejected


def _available_username(email: str) -> str:
    User = get_user_model()
    base = _USERNAME_INVALID_RE.sub("", email.split("@", 1)[0].lower())[:140] or "member"
    candidate = base
    suffix = 1
    while User.objects.filter(username__iexact=candidate).exists():
        suffix += 1
        candidate = f"{base}{suffix}"
    return candidate


def _password_fingerprint(user: object) -> str:
    # Changes whenever the password changes, so a used link stops working.
    return str(getattr(user, "password", "") or "")[-12:]


def make_account_setup_token(*, user: object) -> str:
    return make_signed_token(
        {
            "p": ACCOUNT_SETUP_TOKEN_PURPOSE,
            "uid": user.pk,
            "lpc": _password_fingerprint(user),
        }
    )


def account_setup_url(*, token: str) -> str:
    base = str(settings.PUBLIC_BASE_URL or "").strip().rstrip("/")
    return f"{base}{reverse('api-account-setup')}?token={quote(token)}"


def send_account_setup_email(*, registration: Registration, user: object) -> None:
    token = make_account_setup_token(user=user)
    ttl_seconds = int(settings.ACCOUNT_SETUP_TOKEN_TTL_SECONDS)
    post_office.mail.send(
        recipients=[registration.account_email],
        sender=settings.DEFAULT_FROM_EMAIL,
        template=settings.REGISTRATION_ACCOUNT_SETUP_EMAIL_TEMPLATE_NAME,
        context={
            "registration_id": registration.id,
            "full_name": registration.full_name,
            "username": user.get_username(),
            "setup_url": account_setup_url(token=token),
            "valid_for_days": max(1, ttl_seconds // int(datetime.timedelta(days=1).total_seconds())),
        },
        render_on_delivery=True,
    )


@transaction.atomic
def complete_registration(
    *,
    registration: Registration,
    account_email: str | None = None,
    actor: object | None = None,
) -> Registration:
    """Create the member's login and directory entry for an approved registration."""

    locked = Registration.objects.select_for_update().get(pk=registration.pk)
    if locked.status != Registration.Status.approved:
        raise RegistrationStateError("Only approved registrations can be completed")

    email = _clean_email(account_email or locked.email)
    User = get_user_model()
    if User.objects.filter(email__iexact=email).exists() or FacultyMember.objects.filter(email__iexact=email).exists():
        raise RegistrationError("The email has been used already")

    first_name, _, last_name = locked.full_name.partition(" ")
    user = User(username=_available_username(email), email=email, first_name=first_name, last_name=last_name)
    user.set_unusable_password()
    user.save()

    member = FacultyMember.objects.create(
        user=user,
        name=locked.full_name,
        email=email,
        department=locked.department,
    )

    locked.status = Registration.Status.completed
    locked.account_email = email
    locked.faculty = member
    locked.save(update_fields=["status", "account_email", "faculty"])

    send_account_setup_email(registration=locked, user=user)
    log_registration_action(
        action="completed",
        full_name=locked.full_name,
        actor=actor,
        metadata={"registration_id": locked.id, "faculty_id": member.id},
    )
    logger.info("Registration completed registration_id=%s faculty_id=%s", locked.id, member.id)
    return locked


def read_account_setup_token(token: str) -> object:
    try:
        payload = read_purpose_token(token, purpose=ACCOUNT_SETUP_TOKEN_PURPOSE)
    except signing.SignatureExpired as exc:
        raise AccountSetupError("This link has expired") from exc
    except signing.BadSignature as exc:
        raise AccountSetupError("This link is invalid") from exc

    User = get_user_model()
    user = User.objects.filter(pk=payload.get("uid"), is_active=True).first()
    if user is None or _password_fingerprint(user) != str(payload.get("lpc") or ""):
        raise AccountSetupError("This link is invalid")
    return user


@transaction.atomic
def complete_account_setup(*, token: str, password: str) -> object:
    user = read_account_setup_token(token)
    try:
        validate_password(password, user=user)
    except ValidationError as exc:
        raise AccountSetupError(" ".join(exc.messages)) from exc

    user.set_password(password)
    user.save(update_fields=["password"])
    logger.info("Account password set user_id=%s", user.pk)
    return user


def serialize_registration(registration: Registration) -> dict[str, object]:
    return {
        "id": registration.id,
        "full_name": registration.full_name,
        "email": registration.email,
        "phone": registration.phone,
        "department": registration.department,
        "address": registration.address,
        "purpose": registration.purpose,
        "receipt_url": registration.receipt.url if registration.receipt else "",
        "status": registration.status,
        "created_at": registration.created_at.isoformat(),
        "decided_at": registration.decided_at.isoformat() if registration.decided_at else None,
        "decided_by": registration.decided_by,
        "account_email": registration.account_email,
        "faculty_id": registration.faculty_id,
    }


