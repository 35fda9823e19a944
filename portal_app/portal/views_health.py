from __future__ import annotations

import logging

from django.conf import settings
from django.db import DatabaseError, connection
from django.http import HttpResponse
from post_office.models import EmailTemplate

logger = logging.getLogger(__name__)


def required_email_template_names() -> set[str]:
    return {
        settings.ELECTION_VOTE_RECEIPT_EMAIL_TEMPLATE_NAME,
        settings.ANNOUNCEMENT_NOTIFICATION_EMAIL_TEMPLATE_NAME,
        settings.REGISTRATION_ACCOUNT_SETUP_EMAIL_TEMPLATE_NAME,
    }


def healthz(request):
    return HttpResponse("ok", content_type="text/plain")


def readyz(request):
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        present = set(
            EmailTemplate.objects.filter(name__in=required_email_template_names()).values_list("name", flat=True)
        )
    except DatabaseError:
        return HttpResponse("db unavailable", status=503, content_type="text/plain")

    missing = sorted(required_email_template_names() - present)
    if missing:
        logger.warning("Readiness check: missing email templates %s", ", ".join(missing))
        return HttpResponse("email templates missing", status=503, content_type="text/plain")

    return HttpResponse("ok", content_type="text/plain")
