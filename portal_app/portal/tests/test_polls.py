from __future__ import annotations

import json

from django.test import TestCase
from django.urls import reverse

from portal.models import ActivityLogEntry, Poll, PollOption, PollResponse
from portal.polls_services import (
    AlreadyRespondedError,
    InvalidPollSelectionError,
    PollClosedError,
    PollError,
    PollNotEligibleError,
    PollValidationError,
    create_poll,
    delete_poll,
    end_poll,
    poll_results,
    reactivate_poll,
    submit_poll_response,
)
from portal.tests.factories import make_faculty, make_user


class PollServiceTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.admin = make_user("admin", perms=["portal.add_poll"])
        self.member = make_faculty("Member")
        self.poll = create_poll(title="Lunch?", options=["Pizza", " Sushi ", ""], actor=self.admin)
        self.pizza, self.sushi = list(self.poll.options.all())

    def test_create_poll_strips_blank_options(self) -> None:
        self.assertEqual([o.label for o in self.poll.options.all()], ["Pizza", "Sushi"])
        self.assertEqual(self.poll.status, Poll.Status.active)
        self.assertEqual(self.poll.created_by, "admin")
        self.assertEqual(ActivityLogEntry.objects.get().description, "Created new poll: Lunch?")

    def test_create_poll_validation(self) -> None:
        with self.assertRaisesMessage(PollValidationError, "Please enter a poll question"):
            create_poll(title=" ", options=["a", "b"])
        with self.assertRaisesMessage(PollValidationError, "Please add at least two options"):
            create_poll(title="Q", options=["only", "  "])
        with self.assertRaisesMessage(PollValidationError, "Poll options must be unique"):
            create_poll(title="Q", options=["Yes", "yes"])
        self.assertEqual(Poll.objects.count(), 1)

    def test_single_choice_response(self) -> None:
        submit_poll_response(poll=self.poll, respondent=self.member, option_ids=[self.sushi.id])

        results = poll_results(poll=self.poll, respondent=self.member)
        self.assertEqual(results.option_counts, {self.sushi.id: 1})
        self.assertEqual(results.total_votes, 1)
        self.assertTrue(results.has_voted)

    def test_single_choice_rejects_multiple_options(self) -> None:
        with self.assertRaisesMessage(InvalidPollSelectionError, "exactly one option"):
            submit_poll_response(poll=self.poll, respondent=self.member, option_ids=[self.pizza.id, self.sushi.id])
        self.assertFalse(PollResponse.objects.exists())

    def test_multiple_choice_counts_each_option(self) -> None:
        poll = create_poll(title="Days", options=["Mon", "Tue", "Wed"], allow_multiple=True)
        mon, tue, wed = list(poll.options.all())
        other = make_faculty("Other")

        submit_poll_response(poll=poll, respondent=self.member, option_ids=[mon.id, tue.id, mon.id])
        submit_poll_response(poll=poll, respondent=other, option_ids=[tue.id])

        results = poll_results(poll=poll)
        self.assertEqual(results.option_counts, {mon.id: 1, tue.id: 2})
        self.assertEqual(results.total_votes, 2)
        self.assertNotIn(wed.id, results.option_counts)

    def test_option_from_another_poll_is_rejected(self) -> None:
        other_poll = create_poll(title="Other", options=["x", "y"])
        foreign = PollOption.objects.filter(poll=other_poll).first()
        with self.assertRaises(InvalidPollSelectionError):
            submit_poll_response(poll=self.poll, respondent=self.member, option_ids=[foreign.id])

    def test_empty_selection_is_rejected(self) -> None:
        with self.assertRaisesMessage(InvalidPollSelectionError, "Please select an option"):
            submit_poll_response(poll=self.poll, respondent=self.member, option_ids=[])

    def test_second_response_is_rejected(self) -> None:
        submit_poll_response(poll=self.poll, respondent=self.member, option_ids=[self.pizza.id])
        with self.assertRaises(AlreadyRespondedError):
            submit_poll_response(poll=self.poll, respondent=self.member, option_ids=[self.sushi.id])
        self.assertEqual(poll_results(poll=self.poll).option_counts, {self.pizza.id: 1})

    def test_inactive_member_cannot_respond(self) -> None:
        retired = make_faculty("Retired", is_active=False)
        with self.assertRaises(PollNotEligibleError):
            submit_poll_response(poll=self.poll, respondent=retired, option_ids=[self.pizza.id])

    def test_end_and_reactivate(self) -> None:
        ended = end_poll(poll=self.poll, actor=self.admin)
        self.assertEqual(ended.status, Poll.Status.ended)
        self.assertIsNotNone(ended.ended_at)

        with self.assertRaises(PollClosedError):
            submit_poll_response(poll=self.poll, respondent=self.member, option_ids=[self.pizza.id])
        with self.assertRaises(PollClosedError):
            end_poll(poll=self.poll)

        reactivated = reactivate_poll(poll=self.poll, actor=self.admin)
        self.assertEqual(reactivated.status, Poll.Status.active)
        self.assertIsNone(reactivated.ended_at)
        with self.assertRaisesMessage(PollError, "Only ended polls can be reactivated"):
            reactivate_poll(poll=self.poll)

        submit_poll_response(poll=self.poll, respondent=self.member, option_ids=[self.pizza.id])
        self.assertEqual(
            list(ActivityLogEntry.objects.order_by("id").values_list("action", flat=True)),
            ["Poll created", "Poll ended", "Poll reactivated"],
        )

    def test_delete_poll_removes_responses(self) -> None:
        submit_poll_response(poll=self.poll, respondent=self.member, option_ids=[self.pizza.id])

        delete_poll(poll=self.poll, actor=self.admin)

        self.assertFalse(Poll.objects.exists())
        self.assertFalse(PollOption.objects.exists())
        self.assertFalse(PollResponse.objects.exists())
        self.assertEqual(ActivityLogEntry.objects.get(action="Poll deleted").metadata["responses"], 1)


class PollApiTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.admin = make_user("admin", perms=["portal.add_poll"])
        self.member_user = make_user("member")
        self.member = make_faculty("Member", user=self.member_user)

    def _post_json(self, url: str, payload: dict[str, object]):
        return self.client.post(url, data=json.dumps(payload), content_type="application/json")

    def test_create_requires_permission(self) -> None:
        self.client.force_login(self.member_user)
        resp = self._post_json(reverse("api-polls"), {"title": "Q", "options": ["a", "b"]})
        self.assertEqual(resp.status_code, 403)

    def test_create_and_respond(self) -> None:
        self.client.force_login(self.admin)
        resp = self._post_json(reverse("api-polls"), {"title": "Q", "options": ["a", "b"]})
        self.assertEqual(resp.status_code, 201)
        poll = resp.json()["poll"]
        option_id = poll["options"][1]["id"]

        self.client.force_login(self.member_user)
        resp = self._post_json(reverse("api-poll-respond", args=[poll["id"]]), {"option_ids": [option_id]})
        self.assertEqual(resp.status_code, 200)
        body = resp.json()["poll"]
        self.assertTrue(body["has_voted"])
        self.assertEqual(body["user_response"], [option_id])
        self.assertEqual(body["options"][1]["votes"], 1)
        self.assertEqual(body["total_votes"], 1)

        resp = self._post_json(reverse("api-poll-respond", args=[poll["id"]]), {"option_ids": [option_id]})
        self.assertEqual(resp.status_code, 409)

    def test_form_post_with_repeated_options(self) -> None:
        self.client.force_login(self.admin)
        resp = self.client.post(reverse("api-polls"), data={"title": "Q", "options": ["a", "b", "c"]})
        self.assertEqual(resp.status_code, 201)
        self.assertEqual([o["label"] for o in resp.json()["poll"]["options"]], ["a", "b", "c"])

    def test_respond_rejects_non_numeric_ids(self) -> None:
        poll = create_poll(title="Q", options=["a", "b"])
        self.client.force_login(self.member_user)
        resp = self._post_json(reverse("api-poll-respond", args=[poll.id]), {"option_ids": ["abc"]})
        self.assertEqual(resp.status_code, 400)

    def test_end_reactivate_delete(self) -> None:
        poll = create_poll(title="Q", options=["a", "b"])
        self.client.force_login(self.admin)

        resp = self.client.post(reverse("api-poll-end", args=[poll.id]))
        self.assertEqual(resp.json()["status"], "ended")
        resp = self.client.post(reverse("api-poll-end", args=[poll.id]))
        self.assertEqual(resp.status_code, 400)
        resp = self.client.post(reverse("api-poll-reactivate", args=[poll.id]))
        self.assertEqual(resp.json()["status"], "active")
        resp = self.client.post(reverse("api-poll-delete", args=[poll.id]))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.client.get(reverse("api-poll-detail", args=[poll.id])).status_code, 404)
