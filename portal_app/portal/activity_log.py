from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, Literal

from django.conf import settings

from portal import live
from portal.models import ActivityLogEntry

logger = logging.getLogger(__name__)

Category = ActivityLogEntry.Category


def actor_identity(actor: object | None) -> tuple[str, str]:
    """Return (username, display name) for whoever performed an action.

    Accepts a Django user (authenticated or not) or None for system actions.
    """

    if actor is None or not getattr(actor, "is_authenticated", False):
        return "", "System"

    username = str(actor.get_username())
    profile = getattr(actor, "faculty_profile", None)
    if profile is not None and profile.name:
        return username, profile.name

    full_name = str(actor.get_full_name() or "").strip()
    return username, full_name or username


def add_log(
    *,
    action: str,
    category: str,
    description: str,
    actor: object | None = None,
    metadata: Mapping[str, Any] | None = None,
) -> ActivityLogEntry:
    if category not in Category.values:
        raise ValueError(f"unknown activity log category: {category}")

    actor_username, actor_name = actor_identity(actor)
    entry = ActivityLogEntry.objects.create(
        action=action,
        category=category,
        description=description,
        actor_username=actor_username,
        actor_name=actor_name,
        metadata=dict(metadata) if metadata else None,
    )
    logger.info("Activity: %s by=%s %s", action, actor_username or "system", description)
    live.publish(live.activity_log_changed, category=category)
    return entry


_FACULTY_DESCRIPTIONS = {
    "created": "Created new faculty member: {name}",
    "updated": "Updated faculty member: {name}",
    "deactivated": "Deactivated faculty member: {name}",
    "reactivated": "Reactivated faculty member: {name}",
}

_ELECTION_DESCRIPTIONS = {
    "created": "Created new election: {name}",
    "ended": "Ended election: {name}",
    "deleted": "Deleted election: {name}",
}

_POLL_DESCRIPTIONS = {
    "created": "Created new poll: {name}",
    "ended": "Ended poll: {name}",
    "reactivated": "Reactivated poll: {name}",
    "deleted": "Deleted poll: {name}",
}

_ANNOUNCEMENT_DESCRIPTIONS = {
    "created": "Created announcement: {name}",
    "updated": "Updated announcement: {name}",
    "deleted": "Deleted announcement: {name}",
}

_REGISTRATION_DESCRIPTIONS = {
    "approved": "Approved registration: {name}",
    "rejected": "Rejected registration: {name}",
    "completed": "Created account from registration: {name}",
}

_FINANCE_DESCRIPTIONS = {
    "income_added": "Added income: {name} ({amount})",
    "expense_added": "Added expense: {name} ({amount})",
    "record_updated": "Updated financial record: {name}",
    "record_deleted": "Deleted financial record: {name}",
}

_DOCUMENT_DESCRIPTIONS = {
    "uploaded": "Uploaded document: {name}",
    "created_folder": "Created folder: {name}",
    "renamed": "Renamed document: {name}",
    "moved": "Moved document: {name}",
    "shared": "Shared document: {name}",
    "unshared": "Stopped sharing document: {name}",
    "deleted": "Deleted document: {name}",
}


def _log_action(
    *,
    category: str,
    label: str,
    descriptions: Mapping[str, str],
    action: str,
    name: str,
    actor: object | None,
    metadata: Mapping[str, Any] | None,
) -> ActivityLogEntry:
    template = descriptions.get(action)
    if template is None:
        raise ValueError(f"unknown {category} action: {action}")
    return add_log(
        action=f"{label} {action}",
        category=category,
        description=template.format(name=name),
        actor=actor,
        metadata=metadata,
    )


def log_faculty_action(
    *,
    action: Literal["created", "updated", "deactivated", "reactivated"],
    faculty_name: str,
    actor: object | None,
    metadata: Mapping[str, Any] | None = None,
) -> ActivityLogEntry:
    return _log_action(
        category=Category.faculty,
        label="Faculty",
        descriptions=_FACULTY_DESCRIPTIONS,
        action=action,
        name=faculty_name,
        actor=actor,
        metadata=metadata,
    )


def log_election_action(
    *,
    action: Literal["created", "ended", "deleted"],
    election_title: str,
    actor: object | None,
    metadata: Mapping[str, Any] | None = None,
) -> ActivityLogEntry:
    return _log_action(
        category=Category.election,
        label="Election",
        descriptions=_ELECTION_DESCRIPTIONS,
        action=action,
        name=election_title,
        actor=actor,
        metadata=metadata,
    )


def log_poll_action(
    *,
    action: Literal["created", "ended", "reactivated", "deleted"],
    poll_title: str,
    actor: object | None,
    metadata: Mapping[str, Any] | None = None,
) -> ActivityLogEntry:
    return _log_action(
        category=Category.poll,
        label="Poll",
        descriptions=_POLL_DESCRIPTIONS,
        action=action,
        name=poll_title,
        actor=actor,
        metadata=metadata,
    )


def log_announcement_action(
    *,
    action: Literal["created", "updated", "deleted"],
    announcement_title: str,
    actor: object | None,
    metadata: Mapping[str, Any] | None = None,
) -> ActivityLogEntry:
    return _log_action(
        category=Category.announcement,
        label="Announcement",
        descriptions=_ANNOUNCEMENT_DESCRIPTIONS,
        action=action,
        name=announcement_title,
        actor=actor,
        metadata=metadata,
    )


def log_registration_action(
    *,
    action: Literal["approved", "rejected", "completed"],
    full_name: str,
    actor: object | None,
    metadata: Mapping[str, Any] | None = None,
) -> ActivityLogEntry:
    return _log_action(
        category=Category.registration,
        label="Registration",
        descriptions=_REGISTRATION_DESCRIPTIONS,
        action=action,
        name=full_name,
        actor=actor,
        metadata=metadata,
    )


def log_finance_action(
    *,
    action: Literal["income_added", "expense_added", "record_updated", "record_deleted"],
    record_description: str,
    amount_display: str,
    actor: object | None,
    metadata: Mapping[str, Any] | None = None,
) -> ActivityLogEntry:
    template = _FINANCE_DESCRIPTIONS.get(action)
    if template is None:
        raise ValueError(f"unknown finance action: {action}")
    return add_log(
        action=action.replace("_", " ").capitalize(),
        category=Category.finance,
        description=template.format(name=record_description, amount=amount_display),
        actor=actor,
        metadata=metadata,
    )


def log_document_action(
    *,
    action: Literal["uploaded", "created_folder", "renamed", "moved", "shared", "unshared", "deleted"],
    document_name: str,
    actor: object | None,
    metadata: Mapping[str, Any] | None = None,
) -> ActivityLogEntry:
    template = _DOCUMENT_DESCRIPTIONS.get(action)
    if template is None:
        raise ValueError(f"unknown document action: {action}")
    return add_log(
        action=f"Document {action.replace('_', ' ')}",
        category=Category.document,
        description=template.format(name=document_name),
        actor=actor,
        metadata=metadata,
    )


def recent_logs(*, limit: int | None = None) -> list[ActivityLogEntry]:
    count = settings.ACTIVITY_LOG_DEFAULT_LIMIT if limit is None else int(limit)
    return list(ActivityLogEntry.objects.order_by("-created_at", "-id")[: max(0, count)])


def logs_by_category(*, category: str, limit: int | None = None) -> list[ActivityLogEntry]:
    if category not in Category.values:
        raise ValueError(f"unknown activity log category: {category}")
    count = settings.ACTIVITY_LOG_CATEGORY_DEFAULT_LIMIT if limit is None else int(limit)
    return list(
        ActivityLogEntry.objects.filter(category=category).order_by("-created_at", "-id")[: max(0, count)]
    )


def serialize_log_entry(entry: ActivityLogEntry) -> dict[str, object]:
    return {
        "id": entry.id,
        "action": entry.action,
        "category": entry.category,
        "description": entry.description,
        "actor_username": entry.actor_username,
        "actor_name": entry.actor_name,
        "metadata": entry.metadata,
        "created_at": entry.created_at.isoformat(),
    }


def subscribe_logs(
    callback: Callable[[list[ActivityLogEntry]], None],
    *,
    limit: int | None = None,
) -> live.Subscription:
    return live.subscribe(
        signal=live.activity_log_changed,
        snapshot=lambda: recent_logs(limit=limit),
        callback=callback,
    )
