import pytest

from logicscan.core.models import ProbeRequest, ProbeResult
from logicscan.core.payloads import PayloadRegistry


class RecordingLog:
    """Stand-in for the console Log that keeps messages instead of printing."""

    def __init__(self, verbose=2):
        self.verbose = verbose
        self.PAY = ""
        self.lines = []
        self.findings = []

    def _rec(self, level, msg):
        self.lines.append((level, msg))

    def info(self, msg):
        self._rec("info", msg)

    def warn(self, msg):
        self._rec("warn", msg)

    def error(self, msg):
        self._rec("error", msg)

    def ok(self, msg):
        self._rec("ok", msg)

    def fail(self, msg):
        self._rec("fail", msg)

    def debug(self, msg):
        self._rec("debug", msg)

    def finding(self, f):
        self.findings.append(f)

    def summary(self, ledger):
        self._rec("info", f"{ledger.size()} finding(s)")

    def messages(self, level):
        return [m for lvl, m in self.lines if lvl == level]


class FakeSender:
    """Send capability driven by a handler(request) -> ProbeResult | None."""

    def __init__(self, handler):
        self.handler = handler
        self.sent = []

    def __call__(self, request):
        self.sent.append(request)
        result = self.handler(request)
        if result is not None and result.request is None:
            result.request = request
        return result


class FakeInsertionPoint:
    """Puts the probe value into the ``x-probe`` header of a fixed request."""

    def __init__(self, name="q", request=None):
        self.name = name
        self.location = "query"
        self.request = request or ProbeRequest("GET", "http://target.test/page?q=1")

    def build_with_payload(self, value):
        return self.request.with_header("x-probe", value)


def make_result(status=200, body="", headers=None, request=None):
    return ProbeResult(status_code=status, body=body,
                       headers={k.lower(): v for k, v in (headers or {}).items()},
                       request=request or ProbeRequest("GET", "http://target.test/page?q=1"))


def probe_value(request):
    return request.header("x-probe") or ""


@pytest.fixture
def log():
    return RecordingLog()


@pytest.fixture
def registry(tmp_path, log):
    return PayloadRegistry(path=tmp_path / "payloads.json", logger=log)


@pytest.fixture
def ip():
    return FakeInsertionPoint()
