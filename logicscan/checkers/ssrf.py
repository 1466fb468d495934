"""SSRF checker: differential detection of server-side fetches and redirects to internal targets."""

import re
from typing import List

from logicscan.checkers.base import BaseChecker, body_has
from logicscan.core.diff import responses_differ
from logicscan.core.models import Confidence, Finding, ProbeResult, Severity

CLOUD_METADATA_INDICATORS = ["ami-id", "instance-id", "iam", "security-credentials",
                             "computemetadata", "instance/"]

INTERNAL_IP = re.compile(
    r"(?:127\.\d+\.\d+\.\d+|10\.\d+\.\d+\.\d+|172\.(?:1[6-9]|2\d|3[01])\.\d+\.\d+"
    r"|192\.168\.\d+\.\d+|169\.254\.\d+\.\d+|localhost|0\.0\.0\.0|\[::1\])",
    re.I,
)

INTERNAL_URL_KEYWORDS = ["169.254.169.254", "metadata.google.internal",
                         "100.100.100.200", "169.254.170.2"]

ERROR_WORDS = ("error", "exception", "failed", "refused")

BASIC_PROBES = ("http://127.0.0.1", "http://localhost")

REMEDIATION = "Restrict outbound requests to an allow-list of destinations and block metadata endpoints."


def points_internal(url: str) -> bool:
    if not url:
        return False
    lower = url.lower()
    return bool(INTERNAL_IP.search(lower)) or any(k in lower for k in INTERNAL_URL_KEYWORDS)


def has_metadata(result: ProbeResult) -> bool:
    return any(body_has(result, i) for i in CLOUD_METADATA_INDICATORS)


def describe_target(target: str) -> str:
    lower = target.lower()
    if any(k in lower for k in INTERNAL_URL_KEYWORDS):
        return "Cloud Metadata"
    if "127.0.0.1" in lower or "localhost" in lower:
        return "Localhost"
    return "Internal Network"


class SSRF(BaseChecker):

    name = "SSRF Redirect"
    key = "ssrf"

    def passive(self, baseline: ProbeResult) -> List[Finding]:
        out = []
        location = baseline.header("location") or ""
        if points_internal(location):
            out.append(self.finding(
                "Server Redirects to Internal Target", Severity.MEDIUM, Confidence.TENTATIVE,
                baseline, detail=f"Location header points to an internal address: {location}",
                remediation="Validate redirect targets. Never redirect to user-controlled URLs."))

        for ind in CLOUD_METADATA_INDICATORS:
            if body_has(baseline, ind):
                out.append(self.finding(
                    "Cloud Metadata Content in Response", Severity.HIGH, Confidence.TENTATIVE,
                    baseline, detail=f"Response body contains the metadata indicator '{ind}'.",
                    remediation=REMEDIATION))
                break

        body = baseline.body or ""
        lower = body.lower()
        if INTERNAL_IP.search(body) and any(w in lower for w in ERROR_WORDS):
            out.append(self.finding(
                "Internal Address Leaked in Error Message", Severity.LOW, Confidence.TENTATIVE,
                baseline, detail=f"Error output references {INTERNAL_IP.search(body).group(0)}.",
                remediation="Keep internal network details out of client-facing errors."))
        return out

    def active(self, baseline: ProbeResult, insertion_point) -> List[Finding]:
        out = []
        names = {e.value.lower() for e in self.payloads("url-params")}
        if insertion_point.name.lower() in names:
            out += self.guarded("internal-targets", self._targets, baseline, insertion_point)
        out += self.guarded("basic", self._basic, baseline, insertion_point)
        return out

    # ── phases ──────────────────────────────────────────────────

    def _targets(self, baseline, ip) -> List[Finding]:
        out = []
        for entry in self.payloads("internal-targets"):
            probe = self.inject(ip, entry.value)
            if probe is None:
                continue
            name = f"Server Follows Redirects to {describe_target(entry.value)}"
            location = probe.header("location") or ""
            if probe.status_code == 200 and has_metadata(probe):
                sev, conf = Severity.HIGH, Confidence.FIRM
                detail = f"Setting {ip.name} to {entry.value} returned metadata content."
            elif 300 <= probe.status_code < 400 and points_internal(location):
                sev, conf = Severity.MEDIUM, Confidence.FIRM
                detail = f"HTTP {probe.status_code} redirect to internal address {location}."
            elif responses_differ(baseline, probe, self.threshold):
                sev, conf = Severity.MEDIUM, Confidence.TENTATIVE
                detail = f"Setting {ip.name} to {entry.value} changed the response significantly."
            else:
                continue
            out.append(self.finding(name, sev, conf, baseline, parameter=ip.name,
                                    cves=entry.cve_refs, evidence=[probe],
                                    detail=detail, remediation=REMEDIATION))
        return out

    def _basic(self, baseline, ip) -> List[Finding]:
        out = []
        for target in BASIC_PROBES:
            probe = self.inject(ip, target)
            if probe is None:
                continue
            if probe.status_code == 200 and has_metadata(probe):
                sev, conf = Severity.HIGH, Confidence.FIRM
                detail = f"{target} in {ip.name} returned metadata content."
            elif responses_differ(baseline, probe, self.threshold):
                sev, conf = Severity.MEDIUM, Confidence.TENTATIVE
                detail = f"{target} in {ip.name} changed the response."
            else:
                continue
            out.append(self.finding("Server Follows Redirects to Localhost", sev, conf, baseline,
                                    parameter=ip.name, evidence=[probe],
                                    detail=detail, remediation=REMEDIATION))
        return out
