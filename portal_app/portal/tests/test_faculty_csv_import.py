from __future__ import annotations

from django.test import TestCase
from tablib import Dataset

from portal.faculty_csv_import import FacultyMemberResource
from portal.models import ActivityLogEntry, FacultyMember
from portal.tests.factories import make_faculty, make_user


def _dataset(*rows: list[str]) -> Dataset:
    dataset = Dataset(headers=["name", "email", "department", "position", "is_active"])
    for row in rows:
        dataset.append(row)
    return dataset


class FacultyCsvImportTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.admin = make_user("admin", perms=["portal.change_facultymember"])

    def test_import_creates_members_and_skips_blank_emails(self) -> None:
        dataset = _dataset(
            ["Ada Lovelace", " ADA@example.edu ", "", "Professor", ""],
            ["No Email", "", "Math", "", "1"],
            ["Alan Turing", "alan@example.edu", "Computing", "Reader", "0"],
        )

        result = FacultyMemberResource().import_data(dataset, dry_run=False, user=self.admin)

        self.assertFalse(result.has_errors())
        self.assertFalse(result.has_validation_errors())
        ada = FacultyMember.objects.get(email="ada@example.edu")
        self.assertEqual(ada.department, "Not Assigned")
        self.assertEqual(ada.position, "Professor")
        self.assertTrue(ada.is_active)
        self.assertFalse(FacultyMember.objects.get(email="alan@example.edu").is_active)
        self.assertEqual(FacultyMember.objects.count(), 2)
        self.assertEqual(ActivityLogEntry.objects.filter(action="Faculty created").count(), 2)

    def test_reimport_updates_by_email(self) -> None:
        make_faculty("Ada", email="ada@example.edu")

        result = FacultyMemberResource().import_data(
            _dataset(["Ada Lovelace", "ada@example.edu", "Mathematics", "Dean", "1"]),
            dry_run=False,
            user=self.admin,
        )

        self.assertFalse(result.has_errors())
        ada = FacultyMember.objects.get()
        self.assertEqual(ada.name, "Ada Lovelace")
        self.assertEqual(ada.department, "Mathematics")
        self.assertEqual(ActivityLogEntry.objects.get().action, "Faculty updated")

    def test_dry_run_writes_nothing(self) -> None:
        result = FacultyMemberResource().import_data(
            _dataset(["Ada Lovelace", "ada@example.edu", "", "", "1"]),
            dry_run=True,
        )

        self.assertFalse(result.has_errors())
        self.assertFalse(FacultyMember.objects.exists())
        self.assertFalse(ActivityLogEntry.objects.exists())

    def test_missing_required_column_is_an_error(self) -> None:
        dataset = Dataset(headers=["email", "department"])
        dataset.append(["ada@example.edu", "Math"])

        result = FacultyMemberResource().import_data(dataset, dry_run=False)

        self.assertTrue(result.has_errors())
        self.assertFalse(FacultyMember.objects.exists())
