from __future__ import annotations

import datetime
import json
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import post_office.mail
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import IntegrityError, transaction
from django.urls import reverse
from django.utils import timezone

from portal import live
from portal.activity_log import actor_identity, log_election_action
from portal.elections_tally import (
    STATUS_ACTIVE,
    TallyPosition,
    TallyVote,
    calculate_vote_counts,
    calculate_winners,
)
from portal.models import Candidate, Election, ElectionBallot, FacultyMember, Position, Vote

logger = logging.getLogger(__name__)


class ElectionError(Exception):
    pass


class ElectionValidationError(ElectionError):
    pass


class ElectionNotOpenError(ElectionError):
    pass


class NotEligibleError(ElectionError):
    pass


class IncompleteBallotError(ElectionError):
    pass


class InvalidSelectionError(ElectionError):
    pass


class AlreadyVotedError(ElectionError):
    def __init__(self, message: str = "You have already voted in this election") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class PositionDefinition:
    title: str
    number_of_winners: int
    candidate_ids: tuple[int, ...]


@dataclass(frozen=True)
class ElectionDefinition:
    title: str
    description: str
    start_datetime: datetime.datetime | None
    end_datetime: datetime.datetime | None
    positions: tuple[PositionDefinition, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class BallotReceipt:
    ballot: ElectionBallot
    votes: tuple[Vote, ...]
    abstained_position_ids: tuple[int, ...]


@dataclass(frozen=True)
class ElectionResults:
    election: Election
    status: str
    positions: list[Position]
    votes: list[Vote]
    vote_counts: dict[int, dict[int, int]]
    winners: dict[int, list[int]]
    has_voted: bool
    total_voters: int
    participating_voter_count: int

    @property
    def turnout_percent(self) -> float:
        if self.total_voters <= 0:
            return 0.0
        return round(100.0 * self.participating_voter_count / self.total_voters, 1)


def _post_office_json_context(context: dict[str, object]) -> dict[str, object]:
    # post_office stores the context in a JSON column; round-trip through
    # DjangoJSONEncoder so datetimes and similar values serialize.
    encoded = json.dumps(context, cls=DjangoJSONEncoder)
    decoded = json.loads(encoded)
    if not isinstance(decoded, dict):
        raise ElectionError("email context must serialize to a JSON object")
    return decoded


def _format_datetime_in_timezone(*, dt: datetime.datetime, tz_name: str | None) -> str:
    target_tz_name = str(tz_name or "").strip() or settings.TIME_ZONE
    try:
        tzinfo = ZoneInfo(target_tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        target_tz_name = "UTC"
        tzinfo = ZoneInfo("UTC")

    local = timezone.localtime(dt, timezone=tzinfo)
    return f"{local.strftime('%b %d, %Y %H:%M')} ({target_tz_name})"


def validate_election_definition(
    *,
    definition: ElectionDefinition,
    now: datetime.datetime | None = None,
) -> None:
    """Check an election definition before anything is written.

    Raises ElectionValidationError with the first problem found. The order of
    checks is stable so clients always see the same message for the same input.
    """

    title = str(definition.title or "").strip()
    description = str(definition.description or "").strip()
    start = definition.start_datetime
    end = definition.end_datetime
    if not title or not description or start is None or end is None:
        raise ElectionValidationError("Please fill in all required fields")

    if not definition.positions:
        raise ElectionValidationError("Please add at least one position")

    active_faculty_ids = set(FacultyMember.objects.filter(is_active=True).values_list("id", flat=True))
    used_candidate_ids: set[int] = set()

    for position in definition.positions:
        position_title = str(position.title or "").strip()
        if not position_title:
            raise ElectionValidationError("All positions must have a title")

        if int(position.number_of_winners) < 1:
            raise ElectionValidationError("Number of winners must be at least 1")

        candidate_ids = [int(cid) for cid in position.candidate_ids]
        if not candidate_ids:
            raise ElectionValidationError(f'Position "{position_title}" must have at least one candidate')

        if len(set(candidate_ids)) != len(candidate_ids):
            raise ElectionValidationError(f'A candidate is listed more than once for "{position_title}"')

        if int(position.number_of_winners) > len(candidate_ids):
            raise ElectionValidationError(
                f'Number of winners cannot exceed number of candidates for "{position_title}"'
            )

        if used_candidate_ids.intersection(candidate_ids):
            raise ElectionValidationError("This candidate is already selected for another position")

        if not active_faculty_ids.issuperset(candidate_ids):
            raise ElectionValidationError(f'Candidates for "{position_title}" must be active faculty members')

        used_candidate_ids.update(candidate_ids)

    if end <= start:
        raise ElectionValidationError("End date must be after start date")

    now = now or timezone.now()
    if start < now:
        raise ElectionValidationError("Start date cannot be in the past")


@transaction.atomic
def create_election(
    *,
    definition: ElectionDefinition,
    actor: object | None = None,
    now: datetime.datetime | None = None,
) -> Election:
    validate_election_definition(definition=definition, now=now)

    actor_username, _actor_name = actor_identity(actor)
    election = Election.objects.create(
        title=definition.title.strip(),
        description=definition.description.strip(),
        start_datetime=definition.start_datetime,
        end_datetime=definition.end_datetime,
        created_by=actor_username,
    )

    for sort_order, position_def in enumerate(definition.positions):
        position = Position.objects.create(
            election=election,
            title=position_def.title.strip(),
            number_of_winners=int(position_def.number_of_winners),
            sort_order=sort_order,
        )
        Candidate.objects.bulk_create(
            [
                Candidate(election=election, position=position, faculty_id=int(cid))
                for cid in position_def.candidate_ids
            ]
        )

    log_election_action(
        action="created",
        election_title=election.title,
        actor=actor,
        metadata={"election_id": election.id, "positions": len(definition.positions)},
    )
    logger.info("Election created election_id=%s by=%s", election.id, actor_username or "system")
    live.publish(live.elections_changed, election_id=election.id)
    return election


def list_elections() -> list[Election]:
    return list(
        Election.objects.prefetch_related("positions__candidates__faculty").order_by("-created_at", "-id")
    )


def has_voted(*, election: Election, voter: FacultyMember | None) -> bool:
    if voter is None:
        return False
    return ElectionBallot.objects.filter(election=election, voter=voter).exists()


def election_votes(*, election: Election) -> list[Vote]:
    return list(Vote.objects.filter(election=election).order_by("-created_at", "-id"))


def _coerce_selection(value: object) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidSelectionError("Invalid candidate selection")
    if isinstance(value, int):
        return value
    raise InvalidSelectionError("Invalid candidate selection")


@transaction.atomic
def cast_votes(
    *,
    election: Election,
    voter: FacultyMember,
    selections: Mapping[str, int | None],
) -> BallotReceipt:
    """Record one complete ballot for `voter`.

    `selections` maps each position's public id to the chosen candidate's
    faculty id, or None to abstain on that position. Either every vote is
    written or none is.
    """

    current = Election.objects.only("id", "title", "start_datetime", "end_datetime").get(pk=election.pk)
    if current.status_at(timezone.now()) != STATUS_ACTIVE:
        raise ElectionNotOpenError("This election is not open for voting")

    if not FacultyMember.objects.filter(pk=voter.pk, is_active=True).exists():
        raise NotEligibleError("Only active faculty members can vote")

    positions = list(current.positions.prefetch_related("candidates"))
    expected = {p.public_id for p in positions}
    provided = set(selections)
    if provided - expected:
        raise IncompleteBallotError("Ballot contains unknown positions")
    if expected - provided:
        raise IncompleteBallotError("Please make a selection for every position")

    chosen: list[tuple[Position, int]] = []
    abstained: list[int] = []
    for position in positions:
        candidate_id = _coerce_selection(selections[position.public_id])
        if candidate_id is None:
            abstained.append(position.id)
            continue
        if candidate_id not in position.candidate_ids():
            raise InvalidSelectionError(f'Invalid candidate selected for "{position.title}"')
        chosen.append((position, candidate_id))

    if has_voted(election=current, voter=voter):
        raise AlreadyVotedError()

    # The pre-check above is only a fast path; the unique constraint decides
    # when two submissions race.
    try:
        with transaction.atomic():
            ballot = ElectionBallot.objects.create(election=current, voter=voter)
    except IntegrityError as exc:
        raise AlreadyVotedError() from exc

    votes = Vote.objects.bulk_create(
        [
            Vote(
                election=current,
                ballot=ballot,
                voter=voter,
                position=position,
                candidate_id=candidate_id,
            )
            for position, candidate_id in chosen
        ]
    )

    logger.info(
        "Ballot recorded election_id=%s voter_id=%s votes=%s abstained=%s",
        current.id,
        voter.id,
        len(votes),
        len(abstained),
    )
    live.publish(live.election_votes_changed, election_id=current.id)
    return BallotReceipt(ballot=ballot, votes=tuple(votes), abstained_position_ids=tuple(abstained))


def _tally_inputs(
    *,
    positions: Sequence[Position],
    votes: Iterable[Vote],
) -> tuple[list[TallyPosition], list[TallyVote]]:
    return (
        [TallyPosition(id=p.id, number_of_winners=p.number_of_winners) for p in positions],
        [TallyVote(position_id=v.position_id, candidate_id=v.candidate_id) for v in votes],
    )


def election_results(*, election: Election, voter: FacultyMember | None = None) -> ElectionResults:
    positions = list(election.positions.prefetch_related("candidates__faculty"))
    votes = election_votes(election=election)
    tally_positions, tally_votes = _tally_inputs(positions=positions, votes=votes)
    counts = calculate_vote_counts(tally_votes)

    return ElectionResults(
        election=election,
        status=election.status,
        positions=positions,
        votes=votes,
        vote_counts=counts,
        winners=calculate_winners(tally_positions, counts),
        has_voted=has_voted(election=election, voter=voter),
        total_voters=FacultyMember.objects.filter(is_active=True).count(),
        participating_voter_count=ElectionBallot.objects.filter(election=election).count(),
    )


@transaction.atomic
def end_election(*, election: Election, actor: object | None = None) -> Election:
    locked = Election.objects.select_for_update().get(pk=election.pk)
    now = timezone.now()
    if locked.status_at(now) != STATUS_ACTIVE:
        raise ElectionNotOpenError("Only active elections can be ended")

    # "active" includes the end instant, so close strictly before now.
    locked.end_datetime = max(
        now - datetime.timedelta(microseconds=1),
        locked.start_datetime + datetime.timedelta(microseconds=1),
    )
    locked.save(update_fields=["end_datetime", "updated_at"])

    log_election_action(
        action="ended",
        election_title=locked.title,
        actor=actor,
        metadata={"election_id": locked.id},
    )
    logger.info("Election ended early election_id=%s", locked.id)
    live.publish(live.elections_changed, election_id=locked.id)
    return locked


@transaction.atomic
def delete_election(*, election: Election, actor: object | None = None) -> None:
    election_id = election.id
    title = election.title
    ballots = ElectionBallot.objects.filter(election_id=election_id).count()

    # Positions, candidates, ballots and votes go with the election.
    Election.objects.filter(pk=election_id).delete()

    log_election_action(
        action="deleted",
        election_title=title,
        actor=actor,
        metadata={"election_id": election_id, "ballots": ballots},
    )
    logger.info("Election deleted election_id=%s ballots=%s", election_id, ballots)
    live.publish(live.elections_changed, election_id=election_id)
    live.publish(live.election_votes_changed, election_id=election_id)


def election_url(*, election: Election) -> str:
    path = reverse("api-election-detail", args=[election.id])
    return f"{str(settings.PUBLIC_BASE_URL).rstrip('/')}{path}"


def send_vote_receipt_email(
    *,
    election: Election,
    voter: FacultyMember,
    receipt: BallotReceipt,
    tz_name: str | None = None,
) -> bool:
    email = str(voter.email or "").strip()
    if not settings.ELECTION_VOTE_RECEIPT_EMAILS or not email:
        return False

    context: dict[str, object] = {
        "voter_name": voter.name,
        "election_id": election.id,
        "election_title": election.title,
        "election_url": election_url(election=election),
        "election_end_datetime": _format_datetime_in_timezone(dt=election.end_datetime, tz_name=tz_name),
        "submitted_at": _format_datetime_in_timezone(dt=receipt.ballot.submitted_at, tz_name=tz_name),
        "position_count": len(receipt.votes) + len(receipt.abstained_position_ids),
    }

    post_office.mail.send(
        recipients=[email],
        sender=settings.DEFAULT_FROM_EMAIL,
        template=settings.ELECTION_VOTE_RECEIPT_EMAIL_TEMPLATE_NAME,
        context=_post_office_json_context(context),
        render_on_delivery=True,
    )
    return True


def subscribe_elections(callback: Callable[[list[Election]], None]) -> live.Subscription:
    return live.subscribe(signal=live.elections_changed, snapshot=list_elections, callback=callback)


def subscribe_election_votes(
    *,
    election: Election,
    callback: Callable[[list[Vote]], None],
) -> live.Subscription:
    election_id = election.id
    return live.subscribe(
        signal=live.election_votes_changed,
        snapshot=lambda: election_votes(election=election),
        callback=callback,
        match=lambda kwargs: kwargs.get("election_id") == election_id,
    )
