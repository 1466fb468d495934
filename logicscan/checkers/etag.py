"""ETag XS-Leak checker: per-user ETags on cacheable responses."""

from typing import List

from logicscan.checkers.base import BaseChecker
from logicscan.core.models import Confidence, Finding, ProbeResult, Severity

REMEDIATION = ("Send 'Cache-Control: no-store' on authenticated responses, "
               "or 'Vary: Cookie, Authorization'.")


class ETagLeak(BaseChecker):

    name = "ETag XS-Leak"
    key = "etag"

    def _protections(self):
        """(header, token) pairs from the cache-headers catalog, e.g. ("vary", "cookie")."""
        pairs = []
        for entry in self.payloads("cache-headers"):
            hname, sep, token = entry.value.partition(":")
            if sep:
                pairs.append((hname.strip().lower(), token.strip().lower()))
        return pairs

    def passive(self, baseline: ProbeResult) -> List[Finding]:
        etag = baseline.header("etag")
        if not etag:
            return []
        no_store, vary_auth = False, False
        for hname, token in self._protections():
            present = token in (baseline.header(hname) or "").lower()
            if hname == "cache-control":
                no_store = no_store or present
            elif hname == "vary":
                vary_auth = vary_auth or present
        if no_store or vary_auth:
            return []
        weak = etag.lower().startswith('w/"')
        met = 2 + (1 if weak else 0)
        return [self.finding(
            "ETag XS-Leak Preconditions Present", Severity.LOW, Confidence.TENTATIVE, baseline,
            detail=f"ETag {etag} without cache protections ({met}/3 preconditions: "
                   f"no 'no-store', Vary does not cover credentials"
                   + (", weak ETag" if weak else "") + ").",
            remediation=REMEDIATION)]

    def request_probes(self, baseline: ProbeResult) -> List[Finding]:
        etag = baseline.header("etag")
        if not etag or baseline.request is None:
            return []
        anon = self.probe(baseline.request.without_header("Cookie").without_header("Authorization"))
        if anon is None or not anon.header("etag"):
            return []
        if anon.header("etag") == etag:
            return []
        lengths_differ = len(anon.body) != len(baseline.body)
        return [self.finding(
            "ETag XS-Leak Preconditions Present", Severity.LOW,
            Confidence.FIRM if lengths_differ else Confidence.TENTATIVE, baseline,
            evidence=[anon],
            detail=f"ETag differs without credentials ({etag} vs {anon.header('etag')})"
                   + ("; body length differs too." if lengths_differ else "; body length is the same."),
            remediation=REMEDIATION)]
