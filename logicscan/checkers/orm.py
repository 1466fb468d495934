"""ORM leak checker: filter operators on sensitive fields (Django, Prisma, OData, Ransack, Harbor)."""

from typing import List, Optional

from logicscan.checkers.base import BaseChecker, body_has
from logicscan.core.diff import body_similarity, length_delta, length_differs, responses_differ
from logicscan.core.extractor import DEFAULT_SENTINEL
from logicscan.core.models import Confidence, Finding, PayloadEntry, ProbeResult, Severity

ORM_ERROR_MARKERS = ["FieldError", "PrismaClientKnownRequestError", "ODataError",
                     "Invalid filter", "Unknown field"]

PASSIVE_SIGNATURES = [
    "FieldError at", "Cannot resolve keyword", "PrismaClientKnownRequestError",
    "Invalid `prisma", "ODataException", "$filter", "Ransack",
    "ActiveRecord::StatementInvalid", "django.core.exceptions",
]

RELATIONAL_FIELDS = ("password", "token", "secret")

# leaked fields usually move the body by only a few bytes
FIELD_LEAK_THRESHOLD = 0.05


def orm_type(entry: PayloadEntry) -> str:
    value = entry.value.lower()
    desc = entry.description.lower()
    if "django" in desc or "__startswith" in value or "__regex" in value:
        return "Django ORM"
    if "prisma" in desc or '"startswith"' in value or '"contains"' in value:
        return "Prisma"
    if "odata" in desc or "$filter" in value or "$orderby" in value:
        return "OData"
    if "ransack" in desc or "q[" in value:
        return "Ransack (Rails)"
    if "harbor" in desc or value.startswith("q="):
        return "Harbor"
    return "Unknown ORM"


def matched_error(result: Optional[ProbeResult]) -> Optional[str]:
    for marker in ORM_ERROR_MARKERS:
        if body_has(result, marker):
            return marker
    return None


class ORMLeak(BaseChecker):

    name = "ORM Leak"
    key = "orm"

    def passive(self, baseline: ProbeResult) -> List[Finding]:
        for sig in PASSIVE_SIGNATURES:
            if body_has(baseline, sig):
                return [self.finding(
                    "Error Signature in Response", Severity.LOW, Confidence.TENTATIVE, baseline,
                    detail=f"The response contains the ORM error signature '{sig}'.",
                    remediation="Suppress ORM error details in production. Use field allowlists.")]
        return []

    def active(self, baseline: ProbeResult, insertion_point) -> List[Finding]:
        out = self.guarded("orm-detect", self._detect, baseline, insertion_point)
        out += self.guarded("sensitive-fields", self._sensitive_fields, baseline, insertion_point)
        out += self.guarded("relational-prefixes", self._relational, baseline, insertion_point)
        return out

    # ── phases ──────────────────────────────────────────────────

    def _detect(self, baseline, ip) -> List[Finding]:
        out = []
        for entry in self.payloads("orm-detect"):
            probe = self.inject(ip, entry.value)
            if probe is None:
                continue
            error = matched_error(probe)
            kind = orm_type(entry)
            if error:
                out.append(self.finding(
                    f"ORM Error Exposed via {kind}", Severity.LOW, Confidence.CERTAIN, baseline,
                    parameter=ip.name, cves=entry.cve_refs, evidence=[probe],
                    detail=f"{entry.value!r} triggered an ORM error: {error}.",
                    remediation="Suppress ORM errors in production. Validate filter parameters."))
            elif responses_differ(baseline, probe, self.threshold):
                out.append(self.finding(
                    f"Filter Accepted via {kind}", Severity.MEDIUM, Confidence.FIRM, baseline,
                    parameter=ip.name, cves=entry.cve_refs, evidence=[probe],
                    detail=f"{entry.value!r} was accepted as a filter (no error, response differs, "
                           f"similarity {body_similarity(baseline, probe):.2f}).",
                    remediation="Implement a strict allowlist of filterable fields."))
        return out

    def _field_pair(self, ip, path: str):
        """(match, no-match) probes for ``path__startswith``; None when either failed."""
        hit = self.inject(ip, f"{path}__startswith=a")
        miss = self.inject(ip, f"{path}__startswith={DEFAULT_SENTINEL}")
        if hit is None or miss is None:
            return None
        return hit, miss

    def _sensitive_fields(self, baseline, ip) -> List[Finding]:
        out = []
        for entry in self.payloads("sensitive-fields"):
            pair = self._field_pair(ip, entry.value)
            if pair and length_differs(pair[0], pair[1], FIELD_LEAK_THRESHOLD):
                out.append(self.finding(
                    f"{entry.value} Filterable via Django ORM", Severity.HIGH, Confidence.FIRM,
                    baseline, parameter=ip.name, cves=entry.cve_refs, evidence=pair,
                    detail=f"The field '{entry.value}' is filterable. "
                           f"Response delta: {length_delta(*pair)} bytes.",
                    remediation=f"Add '{entry.value}' to a denylist of non-filterable fields."))
        return out

    def _relational(self, baseline, ip) -> List[Finding]:
        out = []
        for entry in self.payloads("relational-prefixes"):
            for field in RELATIONAL_FIELDS:
                path = entry.value + field
                pair = self._field_pair(ip, path)
                if pair and length_differs(pair[0], pair[1], FIELD_LEAK_THRESHOLD):
                    out.append(self.finding(
                        f"{path} Filterable via Relational Traversal", Severity.HIGH,
                        Confidence.FIRM, baseline, parameter=ip.name,
                        cves=entry.cve_refs, evidence=pair,
                        detail=f"'{field}' is filterable through the relation prefix "
                               f"'{entry.value}'. Delta: {length_delta(*pair)} bytes.",
                        remediation="Block relational traversal. Use explicit field allowlists."))
        return out
