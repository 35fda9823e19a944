import logging

from portal.logging_filters import SkipHealthzFilter, request_path_for_record


def _record(message: str, args: tuple = ()) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=args,
        exc_info=None,
    )


class _Req:
    def __init__(self, path: str):
        self.path = path


def test_health_check_messages_are_dropped():
    f = SkipHealthzFilter()
    assert f.filter(_record("GET /healthz 200")) is False
    assert f.filter(_record("Service Unavailable: /readyz/")) is False


def test_health_check_requests_are_dropped():
    f = SkipHealthzFilter()
    r = _record("ignored")
    r.request = _Req("/readyz")
    assert f.filter(r) is False


def test_request_in_args_is_used():
    r = _record('"%s" %s', args=(_Req("/healthz/"), 200))
    assert request_path_for_record(r) == "/healthz/"
    assert SkipHealthzFilter().filter(r) is False


def test_api_traffic_is_kept():
    f = SkipHealthzFilter()
    assert f.filter(_record("POST /api/elections/1/vote/ 200")) is True
    r = _record("ignored")
    r.request = _Req("/api/announcements/")
    assert f.filter(r) is True


def test_custom_prefixes():
    f = SkipHealthzFilter(prefixes=("/metrics",))
    assert f.filter(_record("GET /metrics 200")) is False
    assert f.filter(_record("GET /healthz 200")) is True
