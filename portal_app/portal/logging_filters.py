from __future__ import annotations

import logging
from typing import Any

# Load balancers and container orchestrators poll these every few seconds.
HEALTH_CHECK_PATH_PREFIXES: tuple[str, ...] = ("/healthz", "/readyz")


class SkipHealthzFilter(logging.Filter):
    """Drop log records produced by health and readiness checks."""

    def __init__(self, prefixes: tuple[str, ...] = HEALTH_CHECK_PATH_PREFIXES) -> None:
        super().__init__()
        self.prefixes = prefixes

    def filter(self, record: logging.LogRecord) -> bool:
        path = request_path_for_record(record)
        if path is not None:
            return not path.startswith(self.prefixes)

        message = record.getMessage()
        return not any(prefix in message for prefix in self.prefixes)


def request_path_for_record(record: logging.LogRecord) -> str | None:
    """Return the request path a log record refers to, if it carries one.

    django.request attaches the request as `record.request`; django.server
    passes it positionally in `record.args`.
    """

    candidates: list[Any] = [getattr(record, "request", None)]
    args = getattr(record, "args", None)
    if isinstance(args, tuple):
        candidates.extend(args)

    for obj in candidates:
        if obj is None:
            continue
        path = getattr(obj, "path", None) or getattr(obj, "path_info", None)
        if isinstance(path, str) and path:
            return path
    return None
