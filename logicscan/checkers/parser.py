"""Parser differential checker: duplicate keys, method overrides, content-type confusion, URL parsing."""

from typing import List

from logicscan.checkers.base import BaseChecker, body_has
from logicscan.core.diff import body_similarity, responses_differ
from logicscan.core.models import Confidence, Finding, ProbeResult, Severity

DUPLICATE_WORDS = ("duplicate key", "duplicate field", "duplicate property")
JSON_ERROR_WORDS = ("json.parse", "jsondecodeerror", "unexpected token", "json_error",
                    "malformed json", "invalid json")
PRIVILEGED_WORDS = ("admin", "dashboard", "configuration")


class ParserDifferential(BaseChecker):

    name = "Parser Differential"
    key = "parser"

    def passive(self, baseline: ProbeResult) -> List[Finding]:
        out = []
        if any(body_has(baseline, w) for w in DUPLICATE_WORDS):
            out.append(self.finding(
                "Duplicate Key Warning Detected", Severity.LOW, Confidence.TENTATIVE, baseline,
                detail="The response warns about duplicate keys; parsers may disagree on which wins.",
                remediation="Use one strict JSON parser that rejects duplicate keys."))
        if any(body_has(baseline, w) for w in JSON_ERROR_WORDS):
            out.append(self.finding(
                "JSON Parse Error Exposed", Severity.LOW, Confidence.TENTATIVE, baseline,
                detail="The response exposes a JSON parser error message.",
                remediation="Return generic errors. Do not expose parser internals."))
        return out

    def request_probes(self, baseline: ProbeResult) -> List[Finding]:
        out = self.guarded("duplicate-key", self._duplicate_keys, baseline)
        out += self.guarded("method-override", self._method_override, baseline)
        out += self.guarded("content-type-confusion", self._content_type, baseline)
        return out

    def active(self, baseline: ProbeResult, insertion_point) -> List[Finding]:
        return self.guarded("url-parsing", self._url_parsing, baseline, insertion_point)

    # ── phases ──────────────────────────────────────────────────

    def _duplicate_keys(self, baseline: ProbeResult) -> List[Finding]:
        req = baseline.request
        if "json" not in (req.header("Content-Type") or "").lower():
            return []
        out = []
        for entry in self.payloads("duplicate-key"):
            probe = self.probe(req.with_body(entry.value))
            if probe is not None and responses_differ(baseline, probe, self.threshold):
                out.append(self.finding(
                    "Duplicate JSON Key Handling", Severity.MEDIUM, Confidence.FIRM, baseline,
                    cves=entry.cve_refs, evidence=[probe],
                    detail=f"Body {entry.value} changed the response "
                           f"(similarity {body_similarity(baseline, probe):.2f}).",
                    remediation="Reject JSON with duplicate keys and use the same parser everywhere."))
        return out

    def _method_override(self, baseline: ProbeResult) -> List[Finding]:
        req = baseline.request
        out = []
        for entry in self.payloads("method-override-headers"):
            value = entry.value
            if "=" in value:
                probe_req = req.with_body(f"{req.body}&{value}" if req.body else value)
            elif ": " in value:
                hname, _, hvalue = value.partition(": ")
                probe_req = req.with_header(hname, hvalue)
            else:
                continue
            probe = self.probe(probe_req)
            if probe is not None and responses_differ(baseline, probe, self.threshold):
                out.append(self.finding(
                    "Method Override Accepted", Severity.MEDIUM, Confidence.FIRM, baseline,
                    parameter=value.split("=")[0].split(":")[0], cves=entry.cve_refs,
                    evidence=[probe],
                    detail=f"'{value}' changed the response "
                           f"(HTTP {baseline.status_code} -> {probe.status_code}).",
                    remediation="Disable method override headers and parameters in production."))
        return out

    def _content_type(self, baseline: ProbeResult) -> List[Finding]:
        req = baseline.request
        if not req.body:
            return []
        current = (req.header("Content-Type") or "").lower()
        out = []
        for entry in self.payloads("content-type-confusion"):
            if current.startswith(entry.value.lower()):
                continue
            probe = self.probe(req.with_header("Content-Type", entry.value))
            if probe is not None and probe.status_code == 200:
                out.append(self.finding(
                    f"Content-Type Confusion ({entry.value})", Severity.MEDIUM,
                    Confidence.TENTATIVE, baseline, parameter="Content-Type",
                    cves=entry.cve_refs, evidence=[probe],
                    detail=f"The body was still accepted (HTTP 200) as {entry.value}.",
                    remediation="Validate that Content-Type matches the expected body format."))
        return out

    def _url_parsing(self, baseline: ProbeResult, ip) -> List[Finding]:
        out = []
        for entry in self.payloads("url-parsing"):
            probe = self.inject(ip, entry.value)
            if probe is None or not responses_differ(baseline, probe, self.threshold):
                continue
            privileged = any(body_has(probe, w) and not body_has(baseline, w)
                             for w in PRIVILEGED_WORDS)
            if privileged:
                name, conf = "URL Parsing Bypass", Confidence.FIRM
            else:
                name, conf = "URL Parsing Anomaly", Confidence.TENTATIVE
            out.append(self.finding(
                name, Severity.MEDIUM, conf, baseline, parameter=ip.name,
                cves=entry.cve_refs, evidence=[probe],
                detail=f"{entry.value!r} changed the response"
                       + (" and exposed privileged content." if privileged else "."),
                remediation="Normalize and validate URLs with one parser before routing."))
        return out
