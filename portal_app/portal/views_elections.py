from __future__ import annotations

import datetime
import logging

from django.http import HttpRequest, JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from portal import elections_services
from portal.elections_services import (
    AlreadyVotedError,
    ElectionError,
    ElectionNotOpenError,
    ElectionResults,
    NotEligibleError,
)
from portal.forms_elections import ElectionForm
from portal.models import Election
from portal.permissions import PORTAL_ADD_ELECTION, json_login_required, json_permission_required
from portal.views_utils import _normalize_str, current_faculty_member, json_error, json_not_found, request_data

logger = logging.getLogger(__name__)


def _serialize_election(election: Election, *, now: datetime.datetime) -> dict[str, object]:
    return {
        "id": election.id,
        "title": election.title,
        "description": election.description,
        "start_datetime": election.start_datetime.isoformat(),
        "end_datetime": election.end_datetime.isoformat(),
        "status": election.status_at(now),
        "created_by": election.created_by,
        "created_at": election.created_at.isoformat(),
        "positions": [
            {
                "id": position.public_id,
                "title": position.title,
                "number_of_winners": position.number_of_winners,
                "candidates": [
                    {"id": candidate.faculty_id, "name": candidate.faculty.name}
                    for candidate in position.candidates.all()
                ],
            }
            for position in election.positions.all()
        ],
    }


def _serialize_results(results: ElectionResults) -> dict[str, object]:
    public_ids = {position.id: position.public_id for position in results.positions}
    return {
        "vote_counts": {
            public_ids[position_id]: {str(cid): count for cid, count in counts.items()}
            for position_id, counts in results.vote_counts.items()
            if position_id in public_ids
        },
        "winners": {public_ids[position_id]: ids for position_id, ids in results.winners.items()},
        "has_voted": results.has_voted,
        "total_voters": results.total_voters,
        "participating_voter_count": results.participating_voter_count,
        "turnout_percent": results.turnout_percent,
    }


def _get_election(election_id: int) -> Election | None:
    return Election.objects.prefetch_related("positions__candidates__faculty").filter(pk=election_id).first()


@require_http_methods(["GET", "POST"])
@json_login_required
def elections_collection(request: HttpRequest) -> JsonResponse:
    if request.method == "POST":
        return _election_create(request)

    now = timezone.now()
    elections = elections_services.list_elections()
    return JsonResponse({"ok": True, "elections": [_serialize_election(e, now=now) for e in elections]})


@json_permission_required(PORTAL_ADD_ELECTION)
def _election_create(request: HttpRequest) -> JsonResponse:
    try:
        data = request_data(request)
    except ValueError as exc:
        return json_error(str(exc))

    form = ElectionForm(data)
    if not form.is_valid():
        first_error = next(iter(form.errors.values()))[0]
        return json_error(str(first_error))

    try:
        election = elections_services.create_election(definition=form.to_definition(), actor=request.user)
    except ElectionError as exc:
        return json_error(str(exc))

    election = _get_election(election.id)
    return JsonResponse({"ok": True, "election": _serialize_election(election, now=timezone.now())}, status=201)


@require_GET
@json_login_required
def election_detail(request: HttpRequest, election_id: int) -> JsonResponse:
    election = _get_election(election_id)
    if election is None:
        return json_not_found()

    results = elections_services.election_results(election=election, voter=current_faculty_member(request))
    return JsonResponse(
        {
            "ok": True,
            "election": _serialize_election(election, now=timezone.now()),
            "results": _serialize_results(results),
        }
    )


def _parse_selection(value: object) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("Invalid candidate selection.")
    if isinstance(value, int):
        return value
    s = _normalize_str(value)
    if not s or s.lower() == "none":
        return None
    try:
        return int(s)
    except ValueError as exc:
        raise ValueError("Invalid candidate selection.") from exc


def _parse_vote_payload(request: HttpRequest) -> dict[str, int | None]:
    data = request_data(request)
    votes = data.get("votes")
    if not isinstance(votes, dict):
        raise ValueError("votes must be an object keyed by position id.")
    return {str(position_id): _parse_selection(value) for position_id, value in votes.items()}


@require_POST
@json_login_required
def election_vote(request: HttpRequest, election_id: int) -> JsonResponse:
    election = Election.objects.filter(pk=election_id).first()
    if election is None:
        return json_not_found()

    voter = current_faculty_member(request)
    if voter is None:
        return json_error("Not eligible to vote in this election.", status=403)

    try:
        selections = _parse_vote_payload(request)
    except ValueError as exc:
        return json_error(str(exc))

    try:
        receipt = elections_services.cast_votes(election=election, voter=voter, selections=selections)
    except AlreadyVotedError as exc:
        return json_error(str(exc), status=409)
    except NotEligibleError as exc:
        return json_error(str(exc), status=403)
    except ElectionError as exc:
        return json_error(str(exc))

    try:
        elections_services.send_vote_receipt_email(election=election, voter=voter, receipt=receipt)
    except Exception:
        # The ballot is already committed at this point.
        logger.exception("Failed to queue vote receipt election_id=%s faculty_id=%s", election.id, voter.id)

    return JsonResponse(
        {
            "ok": True,
            "election_id": election.id,
            "submitted_at": receipt.ballot.submitted_at.isoformat(),
            "votes": len(receipt.votes),
            "abstentions": len(receipt.abstained_position_ids),
        }
    )


@require_POST
@json_permission_required(PORTAL_ADD_ELECTION)
def election_end(request: HttpRequest, election_id: int) -> JsonResponse:
    election = Election.objects.filter(pk=election_id).first()
    if election is None:
        return json_not_found()

    try:
        election = elections_services.end_election(election=election, actor=request.user)
    except ElectionNotOpenError as exc:
        return json_error(str(exc))

    return JsonResponse({"ok": True, "election_id": election.id, "end_datetime": election.end_datetime.isoformat()})


@require_POST
@json_permission_required(PORTAL_ADD_ELECTION)
def election_delete(request: HttpRequest, election_id: int) -> JsonResponse:
    election = Election.objects.filter(pk=election_id).first()
    if election is None:
        return json_not_found()

    elections_services.delete_election(election=election, actor=request.user)
    return JsonResponse({"ok": True, "election_id": election_id})
