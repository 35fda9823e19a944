from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from django.conf import settings
from django.core import signing

ACCOUNT_SETUP_TOKEN_PURPOSE = "account-setup"
DOCUMENT_SHARE_TOKEN_PURPOSE = "document-share"


def make_signed_token(payload: Mapping[str, Any]) -> str:
    return signing.dumps(dict(payload), salt=settings.SECRET_KEY)


def read_signed_token(token: str, *, max_age_seconds: int | None = None) -> dict[str, Any]:
    payload = signing.loads(
        token,
        salt=settings.SECRET_KEY,
        max_age=max_age_seconds if max_age_seconds is not None else settings.ACCOUNT_SETUP_TOKEN_TTL_SECONDS,
    )
    if not isinstance(payload, dict):
        raise signing.BadSignature("Malformed token payload")
    return payload


def read_purpose_token(token: str, *, purpose: str, max_age_seconds: int | None = None) -> dict[str, Any]:
    payload = read_signed_token(token, max_age_seconds=max_age_seconds)
    if str(payload.get("p") or "") != purpose:
        raise signing.BadSignature("Wrong token purpose")
    return payload
