"""Unicode normalization checker: fullwidth and compatibility characters that slip past filters."""

import unicodedata
from typing import List, Optional

from logicscan.checkers.base import BaseChecker, body_has
from logicscan.core.models import Confidence, Finding, ProbeResult, Severity

PROBE_LIMIT = 5
BLOCK_WORDS = ("blocked", "forbidden", "waf", "firewall")

# (category, blocked ASCII form, fullwidth equivalent)
BYPASS_PAIRS = [
    ("XSS", "<script>", "＜ｓｃｒｉｐｔ＞"),
    ("Path Traversal", "../", "．．／"),
    ("SQL Injection", "'", "＇"),
]

REMEDIATION = "Normalize input (NFKC) before applying WAF rules and input validation."


def canonical(text: str) -> str:
    return unicodedata.normalize("NFKC", text)


def is_fullwidth(ch: str) -> bool:
    return "！" <= ch <= "～"


def is_blocked(result: Optional[ProbeResult]) -> bool:
    if result is None:
        return False
    if result.status_code == 403:
        return True
    return any(body_has(result, w) for w in BLOCK_WORDS)


class UnicodeNormalization(BaseChecker):

    name = "Unicode Normalization"
    key = "unicode"

    def passive(self, baseline: ProbeResult) -> List[Finding]:
        if "utf-8" not in (baseline.header("content-type") or "").lower():
            return []
        req = baseline.request
        if req is None:
            return []
        sent = req.path + (req.body or "")
        body = baseline.body or ""
        for ch in sent:
            if is_fullwidth(ch) and canonical(ch) in body and ch not in body:
                return [self.finding(
                    "Normalization Detected", Severity.INFO, Confidence.TENTATIVE, baseline,
                    detail=f"The request carried {ch!r} and the response shows {canonical(ch)!r} "
                           f"without the fullwidth form.",
                    remediation=REMEDIATION)]
        return []

    def active(self, baseline: ProbeResult, insertion_point) -> List[Finding]:
        hits = self.guarded("normalization", self._detect, baseline, insertion_point)
        if not hits:
            return []
        out = hits
        out += self.guarded("attack-payloads", self._attacks, baseline, insertion_point)
        out += self.guarded("bypass-pairs", self._bypasses, baseline, insertion_point)
        return out

    # ── phases ──────────────────────────────────────────────────

    def _detect(self, baseline, ip) -> List[Finding]:
        candidates = (self.payloads("fullwidth-map")[:PROBE_LIMIT]
                      + self.payloads("math-equivalent")[:PROBE_LIMIT])
        for entry in candidates:
            sent = f"test{entry.value}test"
            expected = canonical(sent)
            if expected == sent:
                continue
            probe = self.inject(ip, sent)
            if probe is None:
                continue
            body = probe.body or ""
            if expected in body and sent not in body:
                return [self.finding(
                    "Normalization Detected", Severity.MEDIUM, Confidence.FIRM, baseline,
                    parameter=ip.name, cves=entry.cve_refs, evidence=[probe],
                    detail=f"{sent!r} came back as {expected!r}: the target applies "
                           f"compatibility normalization.",
                    remediation=REMEDIATION)]
        return []

    def _attacks(self, baseline, ip) -> List[Finding]:
        out = []
        for entry in self.payloads("attack-payloads"):
            ascii_form = canonical(entry.value)
            r_ascii = self.inject(ip, ascii_form)
            r_uni = self.inject(ip, entry.value)
            if r_ascii is None or r_uni is None:
                continue
            ascii_blocked, uni_blocked = is_blocked(r_ascii), is_blocked(r_uni)
            if ascii_blocked and not uni_blocked:
                out.append(self.finding(
                    "WAF Bypass Confirmed", Severity.HIGH, Confidence.FIRM, baseline,
                    parameter=ip.name, cves=entry.cve_refs, evidence=[r_ascii, r_uni],
                    detail=f"{ascii_form!r} was blocked (HTTP {r_ascii.status_code}) while the "
                           f"fullwidth form {entry.value!r} passed (HTTP {r_uni.status_code}). "
                           f"{entry.description}",
                    remediation=REMEDIATION))
            elif not ascii_blocked and not uni_blocked and ascii_form in (r_uni.body or ""):
                out.append(self.finding(
                    "Attack Payload Normalized", Severity.MEDIUM, Confidence.FIRM, baseline,
                    parameter=ip.name, cves=entry.cve_refs, evidence=[r_uni],
                    detail=f"{entry.value!r} was reflected as {ascii_form!r}. {entry.description}",
                    remediation=REMEDIATION))
        return out

    def _bypasses(self, baseline, ip) -> List[Finding]:
        out = []
        for category, ascii_form, wide in BYPASS_PAIRS:
            r_ascii = self.inject(ip, ascii_form)
            r_wide = self.inject(ip, wide)
            if r_ascii is None or r_wide is None:
                continue
            if is_blocked(r_ascii) and not is_blocked(r_wide):
                out.append(self.finding(
                    f"{category} Bypass", Severity.HIGH, Confidence.FIRM, baseline,
                    parameter=ip.name, evidence=[r_ascii, r_wide],
                    detail=f"{ascii_form!r} was blocked but {wide!r} was not.",
                    remediation=REMEDIATION))
        return out
