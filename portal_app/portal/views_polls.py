from __future__ import annotations

from django.http import HttpRequest, JsonResponse
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from portal import polls_services
from portal.models import Poll
from portal.permissions import PORTAL_ADD_POLL, json_login_required, json_permission_required
from portal.polls_services import (
    AlreadyRespondedError,
    PollError,
    PollNotEligibleError,
    serialize_poll_results,
)
from portal.views_utils import current_faculty_member, json_error, json_not_found, parse_bool, request_data


def _list_field(request: HttpRequest, data: dict[str, object], key: str) -> list[object]:
    value = data.get(key)
    if isinstance(value, list):
        return value
    # Form posts repeat the field once per value.
    if key in request.POST:
        return list(request.POST.getlist(key))
    return [] if value in (None, "") else [value]


@require_http_methods(["GET", "POST"])
@json_login_required
def polls_collection(request: HttpRequest) -> JsonResponse:
    if request.method == "POST":
        return _poll_create(request)

    member = current_faculty_member(request)
    polls = polls_services.list_polls()
    return JsonResponse(
        {
            "ok": True,
            "polls": [
                serialize_poll_results(polls_services.poll_results(poll=poll, respondent=member)) for poll in polls
            ],
        }
    )


@json_permission_required(PORTAL_ADD_POLL)
def _poll_create(request: HttpRequest) -> JsonResponse:
    try:
        data = request_data(request)
        poll = polls_services.create_poll(
            title=data.get("title") or "",
            description=data.get("description") or "",
            options=_list_field(request, data, "options"),
            allow_multiple=parse_bool(data.get("allow_multiple")),
            actor=request.user,
        )
    except (ValueError, PollError) as exc:
        return json_error(str(exc))

    results = polls_services.poll_results(poll=poll)
    return JsonResponse({"ok": True, "poll": serialize_poll_results(results)}, status=201)


@require_GET
@json_login_required
def poll_detail(request: HttpRequest, poll_id: int) -> JsonResponse:
    poll = Poll.objects.filter(pk=poll_id).first()
    if poll is None:
        return json_not_found()

    results = polls_services.poll_results(poll=poll, respondent=current_faculty_member(request))
    return JsonResponse({"ok": True, "poll": serialize_poll_results(results)})


@require_POST
@json_login_required
def poll_respond(request: HttpRequest, poll_id: int) -> JsonResponse:
    poll = Poll.objects.filter(pk=poll_id).first()
    if poll is None:
        return json_not_found()

    member = current_faculty_member(request)
    if member is None:
        return json_error("Only faculty members can respond to polls.", status=403)

    try:
        data = request_data(request)
        option_ids = [int(oid) for oid in _list_field(request, data, "option_ids")]
    except (TypeError, ValueError):
        return json_error("option_ids must be a list of option ids.")

    try:
        polls_services.submit_poll_response(poll=poll, respondent=member, option_ids=option_ids)
    except AlreadyRespondedError as exc:
        return json_error(str(exc), status=409)
    except PollNotEligibleError as exc:
        return json_error(str(exc), status=403)
    except PollError as exc:
        return json_error(str(exc))

    results = polls_services.poll_results(poll=poll, respondent=member)
    return JsonResponse({"ok": True, "poll": serialize_poll_results(results)})


@require_POST
@json_permission_required(PORTAL_ADD_POLL)
def poll_end(request: HttpRequest, poll_id: int) -> JsonResponse:
    poll = Poll.objects.filter(pk=poll_id).first()
    if poll is None:
        return json_not_found()

    try:
        poll = polls_services.end_poll(poll=poll, actor=request.user)
    except PollError as exc:
        return json_error(str(exc))
    return JsonResponse({"ok": True, "poll_id": poll.id, "status": poll.status})


@require_POST
@json_permission_required(PORTAL_ADD_POLL)
def poll_reactivate(request: HttpRequest, poll_id: int) -> JsonResponse:
    poll = Poll.objects.filter(pk=poll_id).first()
    if poll is None:
        return json_not_found()

    try:
        poll = polls_services.reactivate_poll(poll=poll, actor=request.user)
    except PollError as exc:
        return json_error(str(exc))
    return JsonResponse({"ok": True, "poll_id": poll.id, "status": poll.status})


@require_POST
@json_permission_required(PORTAL_ADD_POLL)
def poll_delete(request: HttpRequest, poll_id: int) -> JsonResponse:
    poll = Poll.objects.filter(pk=poll_id).first()
    if poll is None:
        return json_not_found()

    polls_services.delete_poll(poll=poll, actor=request.user)
    return JsonResponse({"ok": True, "poll_id": poll_id})
