"""SSTI checker: arithmetic polyglots, error triggers, engine fingerprints and blind error pairs."""

import re
from typing import List, Optional

from logicscan.checkers.base import BaseChecker
from logicscan.core.diff import body_similarity, responses_differ, status_differs
from logicscan.core.models import Confidence, Finding, PayloadEntry, ProbeResult, Severity

ERROR_SIGNATURES = [
    "TemplateSyntaxError", "UndefinedError", "Twig_Error", "twig error",
    "freemarker.core.InvalidReferenceException", "freemarker.core.ParseException",
    "org.apache.velocity", "ParseErrorException",
    "com.mitchellbosecke.pebble", "Jinja2", "jinja2.exceptions",
    "Mako", "mako.exceptions", "Slim::Temple",
    "EvalError", "Handlebars.Exception", "handlebars",
]

# (body substring, engine) checked in order
ENGINE_HINTS = [
    ("jinja", "Jinja2"), ("twig", "Twig"), ("freemarker", "Freemarker"),
    ("velocity", "Velocity"), ("pebble", "Pebble"), ("thymeleaf", "Thymeleaf"),
    ("smarty", "Smarty"), ("mako", "Mako"), ("handlebars", "Handlebars"), ("erb", "ERB"),
]

_MUL = re.compile(r"(\d+)\s*\*\s*(\d+)")

REMEDIATION = "Never pass user-controlled input directly into template expressions."


def expected_product(payload: str) -> str:
    """Result of the first ``a*b`` in *payload*, "49" when there is none."""
    m = _MUL.search(payload)
    if not m:
        return "49"
    return str(int(m.group(1)) * int(m.group(2)))


def identify_engine(result: ProbeResult) -> str:
    body = (result.body or "").lower()
    for hint, engine in ENGINE_HINTS:
        if hint in body:
            return engine
    return "Generic"


class SSTI(BaseChecker):

    name = "SSTI"
    key = "ssti"

    def passive(self, baseline: ProbeResult) -> List[Finding]:
        body = (baseline.body or "").lower()
        for sig in ERROR_SIGNATURES:
            if sig.lower() in body:
                return [self.finding(
                    "Error Signature in Response", Severity.LOW, Confidence.TENTATIVE, baseline,
                    detail=f"The response contains the template engine error signature '{sig}'.",
                    remediation=REMEDIATION + " Disable verbose error output in production.")]
        return []

    def active(self, baseline: ProbeResult, insertion_point) -> List[Finding]:
        hit = self.guarded("polyglot", self._polyglot, baseline, insertion_point)
        if hit:
            return hit
        out = self.guarded("error-trigger", self._error_trigger, baseline, insertion_point)
        hit = self.guarded("engine-detect", self._engine_detect, baseline, insertion_point)
        if hit:
            return out + hit
        return out + self.guarded("error-based-blind", self._blind, baseline, insertion_point)

    # ── phases ──────────────────────────────────────────────────

    def _polyglot(self, baseline, ip) -> List[Finding]:
        for entry in self.payloads("polyglot"):
            marker = expected_product(entry.value)
            # a marker already on the page proves nothing
            if marker in (baseline.body or ""):
                continue
            probe = self.inject(ip, entry.value)
            if probe is None:
                continue
            if marker in (probe.body or ""):
                engine = identify_engine(probe)
                return [self.finding(
                    f"Template Evaluation ({engine})", Severity.HIGH, Confidence.CERTAIN, baseline,
                    parameter=ip.name, cves=entry.cve_refs, evidence=[probe],
                    detail=f"Polyglot {entry.value!r} was evaluated: '{marker}' appeared in the "
                           f"response and not in the baseline. Engine: {engine}.",
                    remediation=REMEDIATION)]
        return []

    def _error_trigger(self, baseline, ip) -> List[Finding]:
        for entry in self.payloads("error-trigger"):
            probe = self.inject(ip, entry.value)
            if probe is None:
                continue
            if status_differs(baseline, probe):
                return [self.finding(
                    "Potential Template Injection (Error Trigger)", Severity.MEDIUM,
                    Confidence.TENTATIVE, baseline, parameter=ip.name,
                    cves=entry.cve_refs, evidence=[probe],
                    detail=f"{entry.value!r} changed the status from {baseline.status_code} "
                           f"to {probe.status_code}, suggesting template syntax is parsed.",
                    remediation="Sanitise input before it reaches a template engine. "
                                "Disable verbose error responses.")]
        return []

    def _engine_detect(self, baseline, ip) -> List[Finding]:
        for entry in self.payloads("engine-detect"):
            markers = entry.expected_markers()
            if not markers:
                continue
            probe = self.inject(ip, entry.value)
            if probe is None:
                continue
            engine = self._match_marker(baseline, probe, markers, entry.value)
            if engine:
                return [self.finding(
                    f"Template Engine Identified ({engine})", Severity.HIGH, Confidence.CERTAIN,
                    baseline, parameter=ip.name, cves=entry.cve_refs, evidence=[probe],
                    detail=f"{entry.value!r} confirmed the {engine} template engine.",
                    remediation=f"Remove or sandbox the {engine} template engine for user input.")]
        return []

    @staticmethod
    def _match_marker(baseline, probe, markers, sent: str) -> Optional[str]:
        # a reflected payload proves nothing about evaluation
        body = (probe.body or "").replace(sent, "")
        base = baseline.body or ""
        for token, engine in markers:
            if token in body and token not in base:
                return engine
        return None

    def _blind(self, baseline, ip) -> List[Finding]:
        entries: List[PayloadEntry] = self.payloads("error-based-blind")
        # consecutive (error side, no-error side) pairs
        for err, ok in zip(entries[0::2], entries[1::2]):
            r_err = self.inject(ip, err.value)
            r_ok = self.inject(ip, ok.value)
            if r_err is None or r_ok is None:
                continue
            if responses_differ(r_err, r_ok, self.threshold):
                return [self.finding(
                    "Blind Template Injection (Error-Based)", Severity.MEDIUM, Confidence.FIRM,
                    baseline, parameter=ip.name, cves=err.cve_refs, evidence=[r_err, r_ok],
                    detail=f"Error side {err.value!r} (HTTP {r_err.status_code}) and no-error side "
                           f"{ok.value!r} (HTTP {r_ok.status_code}) differ; similarity "
                           f"{body_similarity(r_err, r_ok):.2f}.",
                    remediation=REMEDIATION)]
        return []
