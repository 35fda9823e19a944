from __future__ import annotations

import datetime
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

STATUS_UPCOMING = "upcoming"
STATUS_ACTIVE = "active"
STATUS_ENDED = "ended"


@dataclass(frozen=True, slots=True)
class TallyVote:
    position_id: int
    candidate_id: int


@dataclass(frozen=True, slots=True)
class TallyPosition:
    id: int
    number_of_winners: int


def election_status(*, start: datetime.datetime, end: datetime.datetime, now: datetime.datetime) -> str:
    """Derive an election's status from its time window.

    Both boundaries are inclusive for "active": an election is still open at
    exactly `end` and already open at exactly `start`.
    """

    if now < start:
        return STATUS_UPCOMING
    if now > end:
        return STATUS_ENDED
    return STATUS_ACTIVE


def calculate_vote_counts(votes: Iterable[TallyVote]) -> dict[int, dict[int, int]]:
    counts: dict[int, dict[int, int]] = {}
    for vote in votes:
        per_position = counts.setdefault(vote.position_id, {})
        per_position[vote.candidate_id] = per_position.get(vote.candidate_id, 0) + 1
    return counts


def rank_candidates(position_counts: Mapping[int, int]) -> list[tuple[int, int]]:
    # Ties on count are broken by the lower candidate id so results are
    # reproducible regardless of vote arrival order.
    return sorted(
        ((int(cid), int(count)) for cid, count in position_counts.items() if count > 0),
        key=lambda item: (-item[1], item[0]),
    )


def calculate_winners(
    positions: Iterable[TallyPosition],
    counts: Mapping[int, Mapping[int, int]],
) -> dict[int, list[int]]:
    winners: dict[int, list[int]] = {}
    for position in positions:
        ranked = rank_candidates(counts.get(position.id, {}))
        seats = max(0, int(position.number_of_winners))
        winners[position.id] = [cid for cid, _count in ranked[:seats]]
    return winners
