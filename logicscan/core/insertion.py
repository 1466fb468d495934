"""Insertion points: named request locations a probe value can be substituted into."""

import json
from typing import List
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from logicscan.core.models import ProbeRequest

FUZZ = "FUZZ"
LOCATIONS = ("query", "form", "json", "header")


def _replace_pair(pairs, name, value):
    out, done = [], False
    for k, v in pairs:
        if k == name and not done:
            out.append((k, value))
            done = True
        elif k != name:
            out.append((k, v))
    if not done:
        out.append((name, value))
    return out


class ParameterInsertionPoint:

    def __init__(self, request: ProbeRequest, name: str, location: str = "query"):
        if location not in LOCATIONS:
            raise ValueError(f"unknown insertion point location: {location}")
        self.request = request
        self.name = name
        self.location = location

    def build_with_payload(self, value: str) -> ProbeRequest:
        req = self.request
        if self.location == "query":
            parts = urlsplit(req.url)
            pairs = _replace_pair(parse_qsl(parts.query, keep_blank_values=True), self.name, value)
            return ProbeRequest(req.method, urlunsplit(parts._replace(query=urlencode(pairs))),
                                dict(req.headers), req.body)
        if self.location == "form":
            pairs = _replace_pair(parse_qsl(req.body, keep_blank_values=True), self.name, value)
            return req.with_body(urlencode(pairs))
        if self.location == "json":
            data = json.loads(req.body or "{}")
            data[self.name] = value
            return req.with_body(json.dumps(data))
        return req.with_header(self.name, value)

    def __repr__(self):
        return f"<{self.location}:{self.name}>"


class FuzzInsertionPoint:
    """Replaces every FUZZ marker in URL, headers and body at once."""

    name = FUZZ
    location = "fuzz"

    def __init__(self, request: ProbeRequest):
        self.request = request

    @staticmethod
    def present(request: ProbeRequest) -> bool:
        if FUZZ in request.url or FUZZ in (request.body or ""):
            return True
        return any(FUZZ in v for v in request.headers.values())

    def build_with_payload(self, value: str) -> ProbeRequest:
        req = self.request
        encoded = quote(value, safe="")
        parts = urlsplit(req.url)
        url = urlunsplit(parts._replace(path=parts.path.replace(FUZZ, encoded),
                                        query=parts.query.replace(FUZZ, encoded)))
        headers = {k: v.replace(FUZZ, value) for k, v in req.headers.items()}
        body = req.body or ""
        if "application/x-www-form-urlencoded" in (req.header("Content-Type") or "").lower():
            body = body.replace(FUZZ, encoded)
        else:
            body = body.replace(FUZZ, value)
        return ProbeRequest(req.method, url, headers, body)

    def __repr__(self):
        return "<FUZZ>"


class PathInsertionPoint:
    """Substitutes the last path segment. Used when a request has no parameters."""

    name = "path"
    location = "path"

    def __init__(self, request: ProbeRequest):
        self.request = request

    def build_with_payload(self, value: str) -> ProbeRequest:
        parts = urlsplit(self.request.url)
        head, _, _ = (parts.path or "/").rpartition("/")
        path = f"{head}/{quote(value, safe='')}"
        return ProbeRequest(self.request.method, urlunsplit(parts._replace(path=path)),
                            dict(self.request.headers), self.request.body)

    def __repr__(self):
        return "<path>"


def discover_insertion_points(request: ProbeRequest) -> List:
    """FUZZ mode if any marker exists, else one point per query/body parameter,
    else the last path segment."""
    if FuzzInsertionPoint.present(request):
        return [FuzzInsertionPoint(request)]

    points = []
    for name, _ in parse_qsl(urlsplit(request.url).query, keep_blank_values=True):
        if name not in [p.name for p in points]:
            points.append(ParameterInsertionPoint(request, name, "query"))

    ctype = (request.header("Content-Type") or "").lower()
    body = request.body or ""
    if body and "application/json" in ctype:
        try:
            data = json.loads(body)
        except ValueError:
            data = None
        if isinstance(data, dict):
            points += [ParameterInsertionPoint(request, k, "json") for k in data]
    elif body and "application/x-www-form-urlencoded" in ctype:
        seen = set()
        for name, _ in parse_qsl(body, keep_blank_values=True):
            if name not in seen:
                seen.add(name)
                points.append(ParameterInsertionPoint(request, name, "form"))
    return points or [PathInsertionPoint(request)]
