from __future__ import annotations

import logging
from collections.abc import Callable, Mapping

import post_office.mail
from django.conf import settings
from django.db import transaction
from post_office.models import Email

from portal import live
from portal.activity_log import actor_identity, log_announcement_action
from portal.models import Announcement, FacultyMember

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("title", "content", "category", "is_pinned")


class AnnouncementError(Exception):
    pass


def list_announcements() -> list[Announcement]:
    return list(Announcement.objects.order_by("-is_pinned", "-created_at", "-id"))


def _clean_category(value: object) -> str:
    category = str(value or "").strip() or Announcement.Category.general
    if category not in Announcement.Category.values:
        raise AnnouncementError(f"Unknown category: {category}")
    return category


def _required_text(value: object, *, label: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise AnnouncementError(f"{label} is required")
    return text


def notification_recipients() -> list[FacultyMember]:
    return list(FacultyMember.objects.filter(is_active=True).exclude(email="").order_by("name", "id"))


def send_announcement_notifications(*, announcement: Announcement, force: bool = False) -> int:
    """Queue one notification per active faculty member with an email address.

    Returns the number of emails queued. Recipients already notified about this
    announcement are skipped unless `force` is set.
    """

    template_name = settings.ANNOUNCEMENT_NOTIFICATION_EMAIL_TEMPLATE_NAME
    already_notified: set[str] = set()
    if not force:
        for email in Email.objects.filter(
            template__name=template_name,
            context__announcement_id=announcement.id,
        ).only("to"):
            already_notified.update(str(address).lower() for address in email.to)

    queued = 0
    for member in notification_recipients():
        address = member.email.strip()
        if address.lower() in already_notified:
            continue
        post_office.mail.send(
            recipients=[address],
            sender=settings.DEFAULT_FROM_EMAIL,
            template=template_name,
            context={
                "announcement_id": announcement.id,
                "recipient_name": member.name,
                "title": announcement.title,
                "content": announcement.content,
                "category": announcement.category,
                "category_label": Announcement.Category(announcement.category).label,
                "author_name": announcement.author_name or "The Faculty Association",
            },
            render_on_delivery=True,
        )
        queued += 1

    logger.info("Announcement notifications queued announcement_id=%s count=%s", announcement.id, queued)
    return queued


@transaction.atomic
def create_announcement(
    *,
    title: str,
    content: str,
    category: str = Announcement.Category.general,
    is_pinned: bool = False,
    notify: bool = False,
    actor: object | None = None,
) -> tuple[Announcement, int]:
    author_username, author_name = actor_identity(actor)
    announcement = Announcement.objects.create(
        title=_required_text(title, label="Title"),
        content=_required_text(content, label="Content"),
        category=_clean_category(category),
        is_pinned=bool(is_pinned),
        author_username=author_username,
        author_name=author_name,
    )

    log_announcement_action(
        action="created",
        announcement_title=announcement.title,
        actor=actor,
        metadata={"announcement_id": announcement.id, "notify": bool(notify)},
    )

    queued = send_announcement_notifications(announcement=announcement) if notify else 0
    live.publish(live.announcements_changed, announcement_id=announcement.id)
    return announcement, queued


@transaction.atomic
def update_announcement(
    *,
    announcement: Announcement,
    changes: Mapping[str, object],
    actor: object | None = None,
) -> Announcement:
    unknown = set(changes) - set(_EDITABLE_FIELDS)
    if unknown:
        raise AnnouncementError(f"Unknown fields: {', '.join(sorted(unknown))}")

    locked = Announcement.objects.select_for_update().get(pk=announcement.pk)
    if "title" in changes:
        locked.title = _required_text(changes["title"], label="Title")
    if "content" in changes:
        locked.content = _required_text(changes["content"], label="Content")
    if "category" in changes:
        locked.category = _clean_category(changes["category"])
    if "is_pinned" in changes:
        locked.is_pinned = bool(changes["is_pinned"])

    if not changes:
        return locked

    locked.save(update_fields=[*[f for f in _EDITABLE_FIELDS if f in changes], "updated_at"])
    log_announcement_action(
        action="updated",
        announcement_title=locked.title,
        actor=actor,
        metadata={"announcement_id": locked.id, "fields": sorted(changes)},
    )
    live.publish(live.announcements_changed, announcement_id=locked.id)
    return locked


@transaction.atomic
def toggle_announcement_pin(*, announcement: Announcement) -> Announcement:
    locked = Announcement.objects.select_for_update().get(pk=announcement.pk)
    locked.is_pinned = not locked.is_pinned
    locked.save(update_fields=["is_pinned", "updated_at"])
    live.publish(live.announcements_changed, announcement_id=locked.id)
    return locked


@transaction.atomic
def delete_announcement(*, announcement: Announcement, actor: object | None = None) -> None:
    announcement_id = announcement.id
    title = announcement.title
    Announcement.objects.filter(pk=announcement_id).delete()

    log_announcement_action(
        action="deleted",
        announcement_title=title,
        actor=actor,
        metadata={"announcement_id": announcement_id},
    )
    live.publish(live.announcements_changed, announcement_id=announcement_id)


def serialize_announcement(announcement: Announcement) -> dict[str, object]:
    return {
        "id": announcement.id,
        "title": announcement.title,
        "content": announcement.content,
        "category": announcement.category,
        "is_pinned": announcement.is_pinned,
        "author": announcement.author_name,
        "author_username": announcement.author_username,
        "created_at": announcement.created_at.isoformat(),
        "updated_at": announcement.updated_at.isoformat(),
    }


def subscribe_announcements(callback: Callable[[list[Announcement]], None]) -> live.Subscription:
    return live.subscribe(signal=live.announcements_changed, snapshot=list_announcements, callback=callback)
