from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from django.db import IntegrityError, transaction
from django.utils import timezone

from portal import live
from portal.activity_log import actor_identity, log_poll_action
from portal.models import FacultyMember, Poll, PollOption, PollResponse

logger = logging.getLogger(__name__)


class PollError(Exception):
    pass


class PollValidationError(PollError):
    pass


class PollClosedError(PollError):
    pass


class PollNotEligibleError(PollError):
    pass


class InvalidPollSelectionError(PollError):
    pass


class AlreadyRespondedError(PollError):
    def __init__(self, message: str = "You have already responded to this poll") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class PollResults:
    poll: Poll
    options: list[PollOption]
    responses: list[PollResponse]
    option_counts: dict[int, int]
    has_voted: bool
    user_response: PollResponse | None

    @property
    def total_votes(self) -> int:
        return len(self.responses)


def _clean_options(options: Iterable[object]) -> list[str]:
    labels = [str(label or "").strip() for label in options]
    labels = [label for label in labels if label]
    folded = [label.casefold() for label in labels]
    if len(set(folded)) != len(folded):
        raise PollValidationError("Poll options must be unique")
    if len(labels) < 2:
        raise PollValidationError("Please add at least two options")
    return labels


@transaction.atomic
def create_poll(
    *,
    title: str,
    options: Sequence[object],
    description: str = "",
    allow_multiple: bool = False,
    actor: object | None = None,
) -> Poll:
    title = str(title or "").strip()
    if not title:
        raise PollValidationError("Please enter a poll question")
    labels = _clean_options(options)

    actor_username, _actor_name = actor_identity(actor)
    poll = Poll.objects.create(
        title=title,
        description=str(description or "").strip(),
        allow_multiple=bool(allow_multiple),
        created_by=actor_username,
    )
    PollOption.objects.bulk_create(
        [PollOption(poll=poll, label=label, sort_order=index) for index, label in enumerate(labels)]
    )

    log_poll_action(action="created", poll_title=poll.title, actor=actor, metadata={"poll_id": poll.id})
    live.publish(live.polls_changed, poll_id=poll.id)
    return poll


def list_polls() -> list[Poll]:
    return list(Poll.objects.prefetch_related("options").order_by("-created_at", "-id"))


def poll_responses(*, poll: Poll) -> list[PollResponse]:
    return list(
        PollResponse.objects.filter(poll=poll).prefetch_related("selected_options").order_by("created_at", "id")
    )


def has_responded(*, poll: Poll, respondent: FacultyMember | None) -> bool:
    if respondent is None:
        return False
    return PollResponse.objects.filter(poll=poll, respondent=respondent).exists()


@transaction.atomic
def submit_poll_response(
    *,
    poll: Poll,
    respondent: FacultyMember,
    option_ids: Sequence[int],
) -> PollResponse:
    current = Poll.objects.get(pk=poll.pk)
    if current.status != Poll.Status.active:
        raise PollClosedError("This poll is no longer accepting responses")

    if not FacultyMember.objects.filter(pk=respondent.pk, is_active=True).exists():
        raise PollNotEligibleError("Only active faculty members can respond to polls")

    selected = list(dict.fromkeys(int(oid) for oid in option_ids))
    if not selected:
        raise InvalidPollSelectionError("Please select an option")
    if not current.allow_multiple and len(selected) != 1:
        raise InvalidPollSelectionError("This poll accepts exactly one option")

    options = list(PollOption.objects.filter(poll=current, pk__in=selected))
    if len(options) != len(selected):
        raise InvalidPollSelectionError("Selected option does not belong to this poll")

    if PollResponse.objects.filter(poll=current, respondent=respondent).exists():
        raise AlreadyRespondedError()

    try:
        with transaction.atomic():
            response = PollResponse.objects.create(poll=current, respondent=respondent)
    except IntegrityError as exc:
        raise AlreadyRespondedError() from exc
    response.selected_options.set(options)

    logger.info("Poll response recorded poll_id=%s respondent_id=%s", current.id, respondent.id)
    live.publish(live.poll_responses_changed, poll_id=current.id)
    return response


def calculate_option_counts(responses: Iterable[PollResponse]) -> dict[int, int]:
    counts: dict[int, int] = {}
    for response in responses:
        for option in response.selected_options.all():
            counts[option.id] = counts.get(option.id, 0) + 1
    return counts


def poll_results(*, poll: Poll, respondent: FacultyMember | None = None) -> PollResults:
    responses = poll_responses(poll=poll)
    user_response = None
    if respondent is not None:
        user_response = next((r for r in responses if r.respondent_id == respondent.id), None)

    return PollResults(
        poll=poll,
        options=list(poll.options.all()),
        responses=responses,
        option_counts=calculate_option_counts(responses),
        has_voted=user_response is not None,
        user_response=user_response,
    )


@transaction.atomic
def end_poll(*, poll: Poll, actor: object | None = None) -> Poll:
    locked = Poll.objects.select_for_update().get(pk=poll.pk)
    if locked.status != Poll.Status.active:
        raise PollClosedError("Only active polls can be ended")

    locked.status = Poll.Status.ended
    locked.ended_at = timezone.now()
    locked.save(update_fields=["status", "ended_at"])

    log_poll_action(action="ended", poll_title=locked.title, actor=actor, metadata={"poll_id": locked.id})
    live.publish(live.polls_changed, poll_id=locked.id)
    return locked


@transaction.atomic
def reactivate_poll(*, poll: Poll, actor: object | None = None) -> Poll:
    locked = Poll.objects.select_for_update().get(pk=poll.pk)
    if locked.status != Poll.Status.ended:
        raise PollError("Only ended polls can be reactivated")

    locked.status = Poll.Status.active
    locked.ended_at = None
    locked.save(update_fields=["status", "ended_at"])

    log_poll_action(action="reactivated", poll_title=locked.title, actor=actor, metadata={"poll_id": locked.id})
    live.publish(live.polls_changed, poll_id=locked.id)
    return locked


@transaction.atomic
def delete_poll(*, poll: Poll, actor: object | None = None) -> None:
    poll_id = poll.id
    title = poll.title
    responses = PollResponse.objects.filter(poll_id=poll_id).count()
    Poll.objects.filter(pk=poll_id).delete()

    log_poll_action(
        action="deleted",
        poll_title=title,
        actor=actor,
        metadata={"poll_id": poll_id, "responses": responses},
    )
    live.publish(live.polls_changed, poll_id=poll_id)
    live.publish(live.poll_responses_changed, poll_id=poll_id)


def serialize_poll_results(results: PollResults) -> dict[str, object]:
    poll = results.poll
    user_response = results.user_response
    return {
        "id": poll.id,
        "title": poll.title,
        "description": poll.description,
        "status": poll.status,
        "allow_multiple": poll.allow_multiple,
        "created_by": poll.created_by,
        "created_at": poll.created_at.isoformat(),
        "ended_at": poll.ended_at.isoformat() if poll.ended_at else None,
        "options": [
            {"id": option.id, "label": option.label, "votes": results.option_counts.get(option.id, 0)}
            for option in results.options
        ],
        "total_votes": results.total_votes,
        "has_voted": results.has_voted,
        "user_response": (
            [option.id for option in user_response.selected_options.all()] if user_response is not None else None
        ),
    }


def subscribe_polls(callback: Callable[[list[Poll]], None]) -> live.Subscription:
    return live.subscribe(signal=live.polls_changed, snapshot=list_polls, callback=callback)


def subscribe_poll_responses(
    *,
    poll: Poll,
    callback: Callable[[list[PollResponse]], None],
) -> live.Subscription:
    poll_id = poll.id
    return live.subscribe(
        signal=live.poll_responses_changed,
        snapshot=lambda: poll_responses(poll=poll),
        callback=callback,
        match=lambda kwargs: kwargs.get("poll_id") == poll_id,
    )
