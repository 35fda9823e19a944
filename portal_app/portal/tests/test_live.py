from __future__ import annotations

import logging

from django.test import TestCase

from portal import live
from portal.elections_services import cast_votes, subscribe_election_votes, subscribe_elections
from portal.tests.factories import make_election, make_faculty


class LiveFeedTests(TestCase):
    def test_subscribe_delivers_initial_snapshot(self) -> None:
        seen: list[list[str]] = []

        with live.subscribe(signal=live.polls_changed, snapshot=lambda: ["a"], callback=seen.append):
            pass

        self.assertEqual(seen, [["a"]])

    def test_publish_waits_for_commit(self) -> None:
        snapshots = iter([1, 2])
        seen: list[int] = []
        sub = live.subscribe(signal=live.polls_changed, snapshot=lambda: next(snapshots), callback=seen.append)
        self.addCleanup(sub.unsubscribe)

        with self.captureOnCommitCallbacks(execute=True):
            live.publish(live.polls_changed)
            self.assertEqual(seen, [1])

        self.assertEqual(seen, [1, 2])

    def test_unsubscribe_stops_delivery(self) -> None:
        seen: list[str] = []
        sub = live.subscribe(signal=live.announcements_changed, snapshot=lambda: "x", callback=seen.append)

        self.assertTrue(sub.unsubscribe())
        self.assertFalse(sub.active)
        self.assertFalse(sub.unsubscribe())

        with self.captureOnCommitCallbacks(execute=True):
            live.publish(live.announcements_changed)

        self.assertEqual(seen, ["x"])

    def test_context_manager_unsubscribes(self) -> None:
        seen: list[str] = []
        with live.subscribe(signal=live.announcements_changed, snapshot=lambda: "x", callback=seen.append) as sub:
            self.assertTrue(sub.active)
        self.assertFalse(sub.active)

        with self.captureOnCommitCallbacks(execute=True):
            live.publish(live.announcements_changed)
        self.assertEqual(seen, ["x"])

    def test_failing_subscriber_does_not_block_others(self) -> None:
        seen: list[str] = []
        calls = {"n": 0}

        def _flaky(_snapshot: str) -> None:
            calls["n"] += 1
            if calls["n"] > 1:
                raise RuntimeError("boom")

        broken = live.subscribe(signal=live.activity_log_changed, snapshot=lambda: "s", callback=_flaky)
        healthy = live.subscribe(signal=live.activity_log_changed, snapshot=lambda: "s", callback=seen.append)
        self.addCleanup(broken.unsubscribe)
        self.addCleanup(healthy.unsubscribe)

        with self.assertLogs("portal.live", level=logging.ERROR) as logs:
            with self.captureOnCommitCallbacks(execute=True):
                live.publish(live.activity_log_changed)

        self.assertEqual(seen, ["s", "s"])
        self.assertIn("Live subscriber failed", logs.output[0])

    def test_failing_initial_snapshot_leaves_no_receiver(self) -> None:
        def _boom() -> None:
            raise RuntimeError("snapshot failed")

        before = len(live.poll_responses_changed.receivers)
        with self.assertRaises(RuntimeError):
            live.subscribe(signal=live.poll_responses_changed, snapshot=_boom, callback=lambda _s: None)
        self.assertEqual(len(live.poll_responses_changed.receivers), before)


class ElectionFeedTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.alice = make_faculty("Alice")
        self.voter = make_faculty("Voter")
        self.election = make_election(positions=[("Chair", 1, [self.alice])])
        self.other = make_election(title="Other", positions=[("Chair", 1, [make_faculty("Bob")])])

    def test_vote_feed_only_fires_for_its_election(self) -> None:
        seen: list[int] = []
        sub = subscribe_election_votes(election=self.election, callback=lambda votes: seen.append(len(votes)))
        self.addCleanup(sub.unsubscribe)

        other_position = self.other.positions.get()
        with self.captureOnCommitCallbacks(execute=True):
            cast_votes(
                election=self.other,
                voter=self.voter,
                selections={other_position.public_id: other_position.candidate_ids()[0]},
            )
        self.assertEqual(seen, [0])

        position = self.election.positions.get()
        with self.captureOnCommitCallbacks(execute=True):
            cast_votes(election=self.election, voter=self.voter, selections={position.public_id: self.alice.id})
        self.assertEqual(seen, [0, 1])

    def test_elections_feed_snapshot_lists_elections(self) -> None:
        seen: list[list[str]] = []
        with subscribe_elections(lambda elections: seen.append([e.title for e in elections])):
            pass
        self.assertEqual(sorted(seen[0]), ["Board election", "Other"])
