from conftest import FakeSender, make_result, probe_value

from logicscan.checkers.ssti import SSTI, expected_product, identify_engine
from logicscan.core.models import Confidence, Severity


def reflect(transform=lambda v: v, status=lambda v: 200):
    def handler(req):
        v = probe_value(req)
        return make_result(status=status(v), body="Hello " + transform(v))
    return handler


def test_expected_product():
    assert expected_product("{{7*7}}") == "49"
    assert expected_product("${{13 * 3}}") == "39"
    assert expected_product("<%'${{/#{@}}%>{{") == "49"


def test_identify_engine_from_body():
    assert identify_engine(make_result(body="jinja2.exceptions.UndefinedError")) == "Jinja2"
    assert identify_engine(make_result(body="plain")) == "Generic"


def test_polyglot_evaluation_is_high_certain(registry, ip):
    def evaluate(v):
        return v.replace("{{7*7}}", "49")
    send = FakeSender(reflect(evaluate))
    chk = SSTI(registry, send)
    found = chk.active(make_result(body="Hello World"), ip)
    assert len(found) == 1
    f = found[0]
    assert f.name.startswith("Template Evaluation")
    assert (f.severity, f.confidence) == (Severity.HIGH, Confidence.CERTAIN)
    assert f.parameter == "q"
    assert f.module == "SSTI"


def test_marker_already_in_baseline_is_not_a_finding(registry, ip):
    # every response shows 49, including the baseline
    send = FakeSender(lambda req: make_result(body="Cart total: 49 items"))
    chk = SSTI(registry, send)
    assert chk.active(make_result(body="Cart total: 49 items"), ip) == []


def test_engine_detect_identifies_jinja(registry, ip):
    send = FakeSender(reflect(lambda v: "7777777" if v == "{{7*'7'}}" else v))
    found = SSTI(registry, send).active(make_result(body="Hello World"), ip)
    assert [f.name for f in found] == ["Template Engine Identified (Jinja2)"]
    assert found[0].severity == Severity.HIGH


def test_error_trigger_status_change(registry, ip):
    send = FakeSender(reflect(status=lambda v: 500 if v == "{{" else 200))
    found = SSTI(registry, send).active(make_result(body="Hello World"), ip)
    assert [f.name for f in found] == ["Potential Template Injection (Error Trigger)"]
    assert (found[0].severity, found[0].confidence) == (Severity.MEDIUM, Confidence.TENTATIVE)


def test_blind_error_pair(registry, ip):
    def status(v):
        return 500 if "/0" in v else 200
    send = FakeSender(reflect(status=status))
    found = SSTI(registry, send).active(make_result(body="Hello World"), ip)
    names = [f.name for f in found]
    assert "Blind Template Injection (Error-Based)" in names
    blind = found[names.index("Blind Template Injection (Error-Based)")]
    assert blind.confidence == Confidence.FIRM
    assert len(blind.evidence) == 3


def test_passive_error_signature(registry):
    chk = SSTI(registry, FakeSender(lambda req: None))
    found = chk.passive(make_result(body="jinja2.exceptions.TemplateSyntaxError: unexpected '}'"))
    assert [(f.severity, f.confidence) for f in found] == [(Severity.LOW, Confidence.TENTATIVE)]
    assert chk.passive(make_result(body="Hello")) == []


def test_send_errors_are_logged_not_raised(registry, ip, log):
    def boom(req):
        raise RuntimeError("connection reset")
    chk = SSTI(registry, FakeSender(boom), logger=log)
    assert chk.active(make_result(body="Hello World"), ip) == []
    assert any("connection reset" in m for m in log.messages("error"))


def test_disabled_payloads_are_not_sent(registry, ip):
    for e in registry.all("ssti"):
        if e.category == "polyglot":
            registry.toggle_enabled(e.id)
    send = FakeSender(reflect(lambda v: v.replace("{{7*7}}", "49")))
    SSTI(registry, send).active(make_result(body="Hello World"), ip)
    polyglots = {e.value for e in registry.all("ssti") if e.category == "polyglot"}
    assert not polyglots & {probe_value(r) for r in send.sent}
