from __future__ import annotations

import json

from django.test import TestCase
from django.urls import reverse

from portal.faculty_services import (
    FacultyError,
    create_faculty_member,
    list_faculty,
    toggle_faculty_active,
    update_faculty_member,
)
from portal.models import ActivityLogEntry, FacultyMember
from portal.tests.factories import make_faculty, make_user


class FacultyServiceTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.admin = make_user("admin", perms=["portal.change_facultymember"])

    def test_create_defaults_department(self) -> None:
        member = create_faculty_member(name=" Ada Lovelace ", email="ADA@example.edu", actor=self.admin)

        self.assertEqual(member.name, "Ada Lovelace")
        self.assertEqual(member.email, "ada@example.edu")
        self.assertEqual(member.department, "Not Assigned")
        self.assertTrue(member.is_active)
        log = ActivityLogEntry.objects.get()
        self.assertEqual(log.action, "Faculty created")
        self.assertEqual(log.description, "Created new faculty member: Ada Lovelace")

    def test_create_validation(self) -> None:
        make_faculty("Ada", email="ada@example.edu")

        with self.assertRaisesMessage(FacultyError, "Name is required"):
            create_faculty_member(name="")
        with self.assertRaisesMessage(FacultyError, "Enter a valid email address"):
            create_faculty_member(name="Bob", email="bob@")
        with self.assertRaisesMessage(FacultyError, "The email has been used already"):
            create_faculty_member(name="Other Ada", email="Ada@Example.edu")
        self.assertEqual(FacultyMember.objects.count(), 1)

    def test_update_syncs_account_email(self) -> None:
        user = make_user("ada")
        member = make_faculty("Ada", email="ada@example.edu", user=user)

        updated = update_faculty_member(
            member=member,
            changes={"email": "lovelace@example.edu", "department": ""},
            actor=self.admin,
        )

        self.assertEqual(updated.email, "lovelace@example.edu")
        self.assertEqual(updated.department, "Not Assigned")
        user.refresh_from_db()
        self.assertEqual(user.email, "lovelace@example.edu")
        self.assertEqual(ActivityLogEntry.objects.get().metadata["fields"], ["email", "department"])

    def test_update_keeps_own_email(self) -> None:
        member = make_faculty("Ada", email="ada@example.edu")
        updated = update_faculty_member(member=member, changes={"email": "ADA@example.edu"})
        self.assertEqual(updated.email, "ada@example.edu")

    def test_update_rejects_unknown_fields(self) -> None:
        member = make_faculty("Ada")
        with self.assertRaisesMessage(FacultyError, "Unknown fields: is_active"):
            update_faculty_member(member=member, changes={"is_active": False})

    def test_toggle_active(self) -> None:
        member = make_faculty("Ada")

        self.assertFalse(toggle_faculty_active(member=member, actor=self.admin).is_active)
        self.assertEqual(list_faculty(active_only=True), [])
        self.assertTrue(toggle_faculty_active(member=member, actor=self.admin).is_active)
        self.assertEqual(
            list(ActivityLogEntry.objects.order_by("id").values_list("action", flat=True)),
            ["Faculty deactivated", "Faculty reactivated"],
        )


class FacultyApiTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.admin = make_user("admin", perms=["portal.change_facultymember"])
        self.member_user = make_user("member")

    def test_directory_listing(self) -> None:
        make_faculty("Zed")
        make_faculty("Amy", is_active=False)
        self.client.force_login(self.member_user)

        resp = self.client.get(reverse("api-faculty"))
        self.assertEqual([m["name"] for m in resp.json()["faculty"]], ["Amy", "Zed"])

        resp = self.client.get(reverse("api-faculty"), {"active": "1"})
        self.assertEqual([m["name"] for m in resp.json()["faculty"]], ["Zed"])

    def test_create_update_toggle(self) -> None:
        self.client.force_login(self.member_user)
        resp = self.client.post(
            reverse("api-faculty"),
            data=json.dumps({"name": "Ada"}),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 403)

        self.client.force_login(self.admin)
        resp = self.client.post(
            reverse("api-faculty"),
            data=json.dumps({"name": "Ada", "email": "ada@example.edu", "position": "Professor"}),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 201)
        faculty_id = resp.json()["faculty"]["id"]
        self.assertFalse(resp.json()["faculty"]["has_account"])

        resp = self.client.post(
            reverse("api-faculty-update", args=[faculty_id]),
            data=json.dumps({"position": "Dean"}),
            content_type="application/json",
        )
        self.assertEqual(resp.json()["faculty"]["position"], "Dean")

        resp = self.client.post(reverse("api-faculty-toggle-active", args=[faculty_id]))
        self.assertFalse(resp.json()["faculty"]["is_active"])

        resp = self.client.post(reverse("api-faculty-toggle-active", args=[999]))
        self.assertEqual(resp.status_code, 404)
