from __future__ import annotations

from unittest.mock import patch

from django.db import DatabaseError
from django.test import TestCase
from post_office.models import EmailTemplate

from portal.views_health import required_email_template_names


class HealthCheckTests(TestCase):
    def test_healthz_is_plain_ok(self) -> None:
        for path in ("/healthz", "/healthz/"):
            resp = self.client.get(path)
            self.assertEqual(resp.status_code, 200)
            self.assertEqual(resp.content, b"ok")

    def test_readyz_ok_with_seeded_templates(self) -> None:
        self.assertEqual(
            set(EmailTemplate.objects.values_list("name", flat=True)) & required_email_template_names(),
            required_email_template_names(),
        )
        resp = self.client.get("/readyz/")
        self.assertEqual(resp.status_code, 200)

    def test_readyz_reports_missing_templates(self) -> None:
        EmailTemplate.objects.filter(name="announcement-notification").delete()

        with self.assertLogs("portal.views_health", level="WARNING"):
            resp = self.client.get("/readyz")

        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.content, b"email templates missing")

    def test_readyz_reports_database_errors(self) -> None:
        with patch("portal.views_health.connection.cursor", side_effect=DatabaseError("down")):
            resp = self.client.get("/readyz/")

        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.content, b"db unavailable")
