import json
from urllib.parse import parse_qsl, urlsplit

import pytest

from logicscan.core.insertion import (FuzzInsertionPoint, ParameterInsertionPoint,
                                      PathInsertionPoint, discover_insertion_points)
from logicscan.core.models import ProbeRequest


def query(req):
    return parse_qsl(urlsplit(req.url).query, keep_blank_values=True)


def test_query_parameter_substitution_keeps_others():
    req = ProbeRequest("GET", "http://t.test/s?a=1&q=x&b=2")
    probe = ParameterInsertionPoint(req, "q").build_with_payload("{{7*7}}")
    assert query(probe) == [("a", "1"), ("q", "{{7*7}}"), ("b", "2")]
    assert query(req) == [("a", "1"), ("q", "x"), ("b", "2")]


def test_form_and_json_substitution():
    form = ProbeRequest("POST", "http://t.test/f", {"Content-Type": "application/x-www-form-urlencoded"},
                        "user=bob&lang=en")
    assert parse_qsl(ParameterInsertionPoint(form, "lang", "form").build_with_payload("'").body) == \
        [("user", "bob"), ("lang", "'")]

    js = ProbeRequest("POST", "http://t.test/j", {"Content-Type": "application/json"},
                      '{"id": 7, "name": "x"}')
    probe = ParameterInsertionPoint(js, "name", "json").build_with_payload("ａｄｍｉｎ")
    assert json.loads(probe.body) == {"id": 7, "name": "ａｄｍｉｎ"}


def test_header_substitution_and_bad_location():
    req = ProbeRequest("GET", "http://t.test/", {"X-Lang": "en"})
    assert ParameterInsertionPoint(req, "X-Lang", "header").build_with_payload("fr").header("x-lang") == "fr"
    with pytest.raises(ValueError):
        ParameterInsertionPoint(req, "x", "cookie")


def test_fuzz_marker_replaced_everywhere():
    req = ProbeRequest("POST", "http://t.test/p?x=FUZZ", {"X-Test": "aFUZZb"}, "body=FUZZ")
    points = discover_insertion_points(req)
    assert len(points) == 1 and points[0].name == "FUZZ"
    probe = points[0].build_with_payload("zz")
    assert probe.url == "http://t.test/p?x=zz"
    assert probe.header("X-Test") == "azzb"
    assert probe.body == "body=zz"
    assert FuzzInsertionPoint.present(req)


def test_discovery_order_query_then_body():
    req = ProbeRequest("POST", "http://t.test/p?a=1&a=2&b=3",
                       {"Content-Type": "application/json"}, '{"c": 1, "d": 2}')
    points = discover_insertion_points(req)
    assert [(p.name, p.location) for p in points] == \
        [("a", "query"), ("b", "query"), ("c", "json"), ("d", "json")]


def test_path_fallback_without_parameters():
    req = ProbeRequest("GET", "http://t.test/files/report")
    points = discover_insertion_points(req)
    assert [p.name for p in points] == ["path"]
    assert isinstance(points[0], PathInsertionPoint)
    assert points[0].build_with_payload("../x").url == "http://t.test/files/..%2Fx"


@pytest.mark.parametrize("value", ["#{7*7}", "a&b=c", "1+1", "x y/z?"])
def test_fuzz_url_values_are_percent_encoded(value):
    req = ProbeRequest("GET", "http://t.test/greet?name=FUZZ&lang=en")
    probe = FuzzInsertionPoint(req).build_with_payload(value)
    assert urlsplit(probe.url).fragment == ""
    assert query(probe) == [("name", value), ("lang", "en")]


def test_fuzz_form_body_is_encoded_json_body_is_not():
    form = ProbeRequest("POST", "http://t.test/f",
                        {"Content-Type": "application/x-www-form-urlencoded"}, "q=FUZZ&x=1")
    assert parse_qsl(FuzzInsertionPoint(form).build_with_payload("a&b").body) == [("q", "a&b"), ("x", "1")]

    js = ProbeRequest("POST", "http://t.test/j", {"Content-Type": "application/json"}, '{"q": "FUZZ"}')
    assert json.loads(FuzzInsertionPoint(js).build_with_payload("1+1").body) == {"q": "1+1"}
