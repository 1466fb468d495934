import pytest

from logicscan.core.insertion import discover_insertion_points
from logicscan.parsers.request import Request


def write(tmp_path, text, name="req.txt"):
    path = tmp_path / name
    path.write_bytes(text.replace("\n", "\r\n").encode("utf-8"))
    return str(path)


def test_parse_get_with_query(tmp_path):
    req = Request(write(tmp_path, "GET /search?q=test&page=2 HTTP/1.1\nHost: lab.test\n"
                                  "Cookie: session=s-root\n\n")).parse()
    assert req.method == "GET"
    assert req.host == "lab.test"

    probe = req.to_probe("http")
    assert probe.url == "http://lab.test/search?q=test&page=2"
    assert probe.header("cookie") == "session=s-root"
    assert probe.body == ""
    assert [p.name for p in discover_insertion_points(probe)] == ["q", "page"]


def test_parse_json_body_keeps_raw_text(tmp_path):
    raw = '{"role": "user", "id": 7}'
    req = Request(write(tmp_path, "POST /api/order HTTP/1.1\nHost: lab.test\n"
                                  "Content-Type: application/json\nContent-Length: 25\n\n" + raw)).parse()
    probe = req.to_probe()
    assert probe.header("content-length") is None
    assert probe.url.startswith("https://lab.test/")
    assert probe.body == raw
    assert probe.method == "POST"
    assert [(p.name, p.location) for p in discover_insertion_points(probe)] == \
        [("role", "json"), ("id", "json")]


def test_absolute_form_target(tmp_path):
    req = Request(write(tmp_path, "GET http://other.test:8080/x?a=1 HTTP/1.1\n\n")).parse()
    assert req.to_probe("https").url == "http://other.test:8080/x?a=1"


@pytest.mark.parametrize("text", ["", "\n\n", "GET\nHost: a\n\n", "GET /x HTTP/1.1\n\n"])
def test_invalid_files(tmp_path, text):
    with pytest.raises(ValueError):
        Request(write(tmp_path, text)).parse()
