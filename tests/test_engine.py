import httpx
import pytest

from logicscan.core.engine import CHECKERS, Engine, is_static_asset
from logicscan.core.extractor import Extractor
from logicscan.core.insertion import discover_insertion_points
from logicscan.core.models import Confidence, ProbeRequest, Severity
from logicscan.main import expand_charset
from vuln_lab.app import app

LAB = "http://lab.test"


@pytest.fixture
def lab(registry, log):
    eng = Engine(protocol="http", logger=log, registry=registry,
                 transport=httpx.WSGITransport(app=app))
    yield eng
    eng.close()


def mock_engine(registry, log, handler):
    return Engine(logger=log, registry=registry, transport=httpx.MockTransport(handler))


# ── against the lab ────────────────────────────────────────────

def test_ssti_on_greet(lab):
    lab.enable_only(["ssti"])
    lab.scan(ProbeRequest("GET", f"{LAB}/greet?name=World"))
    found = lab.ledger.get_all()
    assert any(f.name.startswith("Template Evaluation") and f.severity == Severity.HIGH
               and f.parameter == "name" for f in found)


def test_unicode_bypass_on_search(lab):
    lab.enable_only(["unicode"])
    lab.scan(ProbeRequest("GET", f"{LAB}/search?q=test"))
    got = {f.name: f for f in lab.ledger.get_all()}
    assert "Normalization Detected" in got
    assert got["XSS Bypass"].severity == Severity.HIGH
    assert "WAF Bypass Confirmed" in got


def test_nextjs_middleware_bypass_on_shop(lab):
    lab.enable_only(["nextjs"])
    lab.scan(ProbeRequest("GET", f"{LAB}/shop"))
    names = [f.name for f in lab.ledger.get_all()]
    assert "Next.js Detected" in names
    assert "Middleware Bypass" in names


def test_etag_passive_and_active_share_a_key(lab, log):
    lab.enable_only(["etag"])
    results = lab.scan(ProbeRequest("GET", f"{LAB}/profile", {"Cookie": "session=s-root"}))
    # both emitted, the ledger keeps the first (passive) one
    assert {f.confidence for f in results} == {Confidence.TENTATIVE, Confidence.FIRM}
    kept = lab.ledger.get_all()
    assert len(kept) == 1 and kept[0].confidence == Confidence.TENTATIVE
    assert log.findings == kept


def test_extraction_through_lab(lab):
    ex = Extractor(lab.send, "django", f"{LAB}/api/users", "password",
                   charset=expand_charset("a-z0-9"))
    result = ex.run()
    assert result.value == "hunter2"
    assert result.error is None


# ── host behaviour ─────────────────────────────────────────────

def test_static_assets_are_skipped(registry, log):
    seen = []
    eng = mock_engine(registry, log, lambda req: seen.append(req) or httpx.Response(200))
    assert eng.scan(ProbeRequest("GET", "http://t.test/static/app.JS")) == []
    assert seen == []
    assert is_static_asset(ProbeRequest("GET", "http://t.test/a/logo.svg?v=2"))
    assert not is_static_asset(ProbeRequest("GET", "http://t.test/api/users"))


def test_send_strips_length_headers_and_sets_connect_target(registry, log):
    seen = []

    def handler(req):
        seen.append(req)
        return httpx.Response(407, text="proxy auth")

    eng = mock_engine(registry, log, handler)
    result = eng.send(ProbeRequest("POST", "http://t.test/x",
                                   {"Content-Length": "999", "Transfer-Encoding": "chunked",
                                    "X-Keep": "1"}, "abc"))
    assert result.status_code == 407 and result.body == "proxy auth"
    assert result.request.url == "http://t.test/x"
    assert seen[0].headers["content-length"] == "3"
    assert "transfer-encoding" not in seen[0].headers
    assert seen[0].headers["x-keep"] == "1"

    eng.send(ProbeRequest("CONNECT", "http://t.test/", target="127.0.0.1:80"))
    assert seen[1].method == "CONNECT"
    assert seen[1].extensions["target"] == b"127.0.0.1:80"


def test_transport_error_becomes_none(registry, log):
    def handler(req):
        raise httpx.ConnectError("refused", request=req)
    eng = mock_engine(registry, log, handler)
    assert eng.send(ProbeRequest("GET", "http://t.test/")) is None
    assert log.messages("warn")
    assert eng.scan(ProbeRequest("GET", "http://t.test/?a=1")) == []
    assert log.messages("fail")


def test_failing_module_does_not_stop_the_scan(registry, log):
    seen = []
    eng = mock_engine(registry, log,
                      lambda req: seen.append(str(req.url)) or httpx.Response(200, text="ok"))

    def broken(*args):
        raise RuntimeError("module blew up")

    eng.checkers["ssti"].active = broken
    eng.enable_only(["ssti", "ssrf"])
    eng.scan(ProbeRequest("GET", "http://t.test/?a=1"))
    assert any("module blew up" in m for m in log.messages("error"))
    # ssrf still ran its basic probes after ssti failed
    assert any("127.0.0.1" in url for url in seen)


def test_enable_only(registry, log):
    eng = mock_engine(registry, log, lambda req: httpx.Response(200))
    eng.enable_only(["etag", "http2"])
    assert [k for k, c in eng.checkers.items() if c.enabled] == ["http2", "etag"]
    with pytest.raises(ValueError):
        eng.enable_only(["sqli"])
    assert list(eng.checkers) == list(CHECKERS)


def test_fuzz_payload_reaches_server_intact(registry, log):
    seen = []
    eng = mock_engine(registry, log,
                      lambda req: seen.append(req.url.params.get("name")) or httpx.Response(200))
    point = discover_insertion_points(ProbeRequest("GET", "http://t.test/greet?name=FUZZ"))[0]
    for value in ("#{7*7}", "a&b=c", "1+1"):
        eng.send(point.build_with_payload(value))
    assert seen == ["#{7*7}", "a&b=c", "1+1"]


def test_already_read_response_has_zero_elapsed(registry, log):
    eng = mock_engine(registry, log, lambda req: httpx.Response(200, text="ready"))
    result = eng.send(ProbeRequest("GET", "http://t.test/"))
    assert result.body == "ready" and result.elapsed == 0.0


def test_build_and_handler_errors_become_none(registry, log):
    def handler(req):
        raise RuntimeError("handler broke")

    eng = mock_engine(registry, log, handler)
    assert eng.send(ProbeRequest("GET", "http://t.test/")) is None
    ok = mock_engine(registry, log, lambda req: httpx.Response(200))
    # header values must be ascii on the wire
    assert ok.send(ProbeRequest("GET", "http://t.test/", {"X-Name": "ａｄｍｉｎ"})) is None
    assert len(log.messages("warn")) == 2


def test_whole_request_probes_run_once_per_scan(registry, log):
    seen = []

    def handler(req):
        seen.append(req)
        return httpx.Response(200, headers={"alt-svc": 'h2=":443"'}, text="ok")

    eng = mock_engine(registry, log, handler)
    eng.enable_only(["http2"])
    eng.scan(ProbeRequest("GET", "http://t.test/list?a=1&b=2&c=3"))
    connects = [r for r in seen if r.method == "CONNECT"]
    assert len(connects) == len(registry.enabled("http2", "connect-targets"))
