from __future__ import annotations

import datetime

from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from portal.activity_log import (
    actor_identity,
    add_log,
    log_election_action,
    logs_by_category,
    recent_logs,
    subscribe_logs,
)
from portal.models import ActivityLogEntry
from portal.tests.factories import make_faculty, make_user


class ActivityLogTests(TestCase):
    def test_actor_identity(self) -> None:
        self.assertEqual(actor_identity(None), ("", "System"))

        plain = make_user("plain")
        self.assertEqual(actor_identity(plain), ("plain", "plain"))

        named = make_user("named")
        named.first_name, named.last_name = "Grace", "Hopper"
        self.assertEqual(actor_identity(named), ("named", "Grace Hopper"))

        member_user = make_user("member")
        make_faculty("Dr. Member", user=member_user)
        reloaded = type(member_user).objects.get(pk=member_user.pk)
        self.assertEqual(actor_identity(reloaded), ("member", "Dr. Member"))

    def test_unknown_category_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            add_log(action="x", category="gossip", description="x")
        with self.assertRaises(ValueError):
            logs_by_category(category="gossip")
        self.assertFalse(ActivityLogEntry.objects.exists())

    def test_election_log_text(self) -> None:
        entry = log_election_action(action="created", election_title="Board", actor=None, metadata={"n": 1})
        self.assertEqual(entry.action, "Election created")
        self.assertEqual(entry.description, "Created new election: Board")
        self.assertEqual(entry.actor_name, "System")
        self.assertEqual(entry.metadata, {"n": 1})

    def test_recent_logs_newest_first_with_limits(self) -> None:
        base = timezone.now()
        for i, category in enumerate(["poll", "election", "poll"]):
            entry = add_log(action=f"a{i}", category=category, description=f"d{i}")
            ActivityLogEntry.objects.filter(pk=entry.pk).update(created_at=base + datetime.timedelta(minutes=i))

        self.assertEqual([e.action for e in recent_logs()], ["a2", "a1", "a0"])
        self.assertEqual([e.action for e in recent_logs(limit=2)], ["a2", "a1"])
        self.assertEqual([e.action for e in logs_by_category(category="poll")], ["a2", "a0"])

    @override_settings(ACTIVITY_LOG_DEFAULT_LIMIT=1)
    def test_recent_logs_default_limit_from_settings(self) -> None:
        add_log(action="a", category="poll", description="d")
        add_log(action="b", category="poll", description="d")
        self.assertEqual(len(recent_logs()), 1)

    def test_subscribers_see_new_entries_after_commit(self) -> None:
        seen: list[list[str]] = []
        with subscribe_logs(lambda entries: seen.append([e.action for e in entries]), limit=5):
            with self.captureOnCommitCallbacks(execute=True):
                add_log(action="Poll created", category="poll", description="Created new poll: Q")

        self.assertEqual(seen, [[], ["Poll created"]])


class ActivityLogApiTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        add_log(action="Poll created", category="poll", description="Created new poll: Q")
        add_log(action="Election created", category="election", description="Created new election: E")

    def test_requires_permission(self) -> None:
        self.assertEqual(self.client.get(reverse("api-logs")).status_code, 401)
        self.client.force_login(make_user("member"))
        self.assertEqual(self.client.get(reverse("api-logs")).status_code, 403)

    def test_filters(self) -> None:
        self.client.force_login(make_user("auditor", perms=["portal.view_activitylogentry"]))

        resp = self.client.get(reverse("api-logs"))
        self.assertEqual(len(resp.json()["logs"]), 2)

        resp = self.client.get(reverse("api-logs"), {"category": "election"})
        self.assertEqual([e["action"] for e in resp.json()["logs"]], ["Election created"])

        resp = self.client.get(reverse("api-logs"), {"limit": "1"})
        self.assertEqual(len(resp.json()["logs"]), 1)

        self.assertEqual(self.client.get(reverse("api-logs"), {"category": "gossip"}).status_code, 400)
        self.assertEqual(self.client.get(reverse("api-logs"), {"limit": "zero"}).status_code, 400)
