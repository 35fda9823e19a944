from __future__ import annotations

import logging
from collections.abc import Mapping

from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import transaction

from portal.activity_log import log_faculty_action
from portal.models import FacultyMember

logger = logging.getLogger(__name__)

DEFAULT_DEPARTMENT = "Not Assigned"

_EDITABLE_FIELDS = ("name", "email", "department", "position")


class FacultyError(Exception):
    pass


def list_faculty(*, active_only: bool = False) -> list[FacultyMember]:
    qs = FacultyMember.objects.order_by("name", "id")
    if active_only:
        qs = qs.filter(is_active=True)
    return list(qs)


def _clean_email(value: object, *, exclude_pk: int | None = None) -> str:
    email = str(value or "").strip().lower()
    if not email:
        return ""
    try:
        validate_email(email)
    except ValidationError as exc:
        raise FacultyError("Enter a valid email address") from exc

    clash = FacultyMember.objects.filter(email__iexact=email)
    if exclude_pk is not None:
        clash = clash.exclude(pk=exclude_pk)
    if clash.exists():
        raise FacultyError("The email has been used already")
    return email


@transaction.atomic
def create_faculty_member(
    *,
    name: str,
    email: str = "",
    department: str = "",
    position: str = "",
    actor: object | None = None,
) -> FacultyMember:
    name = str(name or "").strip()
    if not name:
        raise FacultyError("Name is required")

    member = FacultyMember.objects.create(
        name=name,
        email=_clean_email(email),
        department=str(department or "").strip() or DEFAULT_DEPARTMENT,
        position=str(position or "").strip(),
    )
    log_faculty_action(action="created", faculty_name=member.name, actor=actor, metadata={"faculty_id": member.id})
    return member


@transaction.atomic
def update_faculty_member(
    *,
    member: FacultyMember,
    changes: Mapping[str, object],
    actor: object | None = None,
) -> FacultyMember:
    unknown = set(changes) - set(_EDITABLE_FIELDS)
    if unknown:
        raise FacultyError(f"Unknown fields: {', '.join(sorted(unknown))}")

    locked = FacultyMember.objects.select_for_update().get(pk=member.pk)
    updated: list[str] = []

    if "name" in changes:
        name = str(changes["name"] or "").strip()
        if not name:
            raise FacultyError("Name is required")
        locked.name = name
        updated.append("name")

    if "email" in changes:
        locked.email = _clean_email(changes["email"], exclude_pk=locked.pk)
        updated.append("email")

    if "department" in changes:
        locked.department = str(changes["department"] or "").strip() or DEFAULT_DEPARTMENT
        updated.append("department")

    if "position" in changes:
        locked.position = str(changes["position"] or "").strip()
        updated.append("position")

    if not updated:
        return locked

    locked.save(update_fields=[*updated, "updated_at"])

    # Keep the login account's address in step with the directory.
    if "email" in updated and locked.user_id is not None and locked.email:
        user = locked.user
        user.email = locked.email
        user.save(update_fields=["email"])

    log_faculty_action(
        action="updated",
        faculty_name=locked.name,
        actor=actor,
        metadata={"faculty_id": locked.id, "fields": updated},
    )
    return locked


@transaction.atomic
def toggle_faculty_active(*, member: FacultyMember, actor: object | None = None) -> FacultyMember:
    locked = FacultyMember.objects.select_for_update().get(pk=member.pk)
    locked.is_active = not locked.is_active
    locked.save(update_fields=["is_active", "updated_at"])

    log_faculty_action(
        action="reactivated" if locked.is_active else "deactivated",
        faculty_name=locked.name,
        actor=actor,
        metadata={"faculty_id": locked.id},
    )
    logger.info("Faculty active flag changed faculty_id=%s is_active=%s", locked.id, locked.is_active)
    return locked


def serialize_faculty_member(member: FacultyMember) -> dict[str, object]:
    return {
        "id": member.id,
        "name": member.name,
        "email": member.email,
        "department": member.department,
        "position": member.position,
        "is_active": member.is_active,
        "has_account": member.user_id is not None,
        "created_at": member.created_at.isoformat(),
    }
