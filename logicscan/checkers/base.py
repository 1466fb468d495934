"""Base class for all detection strategies."""

from typing import Callable, List, Optional, Sequence
import random
import string

from logicscan.core.diff import DEFAULT_THRESHOLD
from logicscan.core.models import (Confidence, Finding, PayloadEntry, ProbeRequest,
                                   ProbeResult, Severity)
from logicscan.core.payloads import PayloadRegistry


class BaseChecker:
    """Checkers override any of passive(), request_probes() and active().

    Checkers never raise: a failing probe is logged and yields nothing,
    and the remaining probes still run.
    """

    name: str = "Unnamed Checker"
    key: str = ""

    def __init__(self, registry: PayloadRegistry,
                 send: Callable[[ProbeRequest], Optional[ProbeResult]],
                 logger=None, threshold: float = DEFAULT_THRESHOLD):
        self.registry = registry
        self.send = send
        self.logger = logger
        self.threshold = threshold
        self.enabled = True

    # ── public API ──────────────────────────────────────────────

    def passive(self, baseline: ProbeResult) -> List[Finding]:
        """Inspect the unmodified exchange. No extra requests."""
        return []

    def request_probes(self, baseline: ProbeResult) -> List[Finding]:
        """Probes that vary the whole request. Run once per scan."""
        return []

    def active(self, baseline: ProbeResult, insertion_point) -> List[Finding]:
        """Send probes through *insertion_point* and compare against *baseline*."""
        return []

    # ── shared helpers ──────────────────────────────────────────

    def payloads(self, category: str) -> List[PayloadEntry]:
        return self.registry.enabled(self.key, category)

    def probe(self, request: ProbeRequest) -> Optional[ProbeResult]:
        try:
            return self.send(request)
        except Exception as e:
            self._error(f"probe {request} failed: {e}")
            return None

    def inject(self, insertion_point, value: str) -> Optional[ProbeResult]:
        try:
            request = insertion_point.build_with_payload(value)
        except Exception as e:
            self._error(f"cannot build probe for {value!r}: {e}")
            return None
        return self.probe(request)

    def guarded(self, phase: str, fn, *args) -> list:
        """Run one phase; an escaping error is logged and counts as no findings."""
        try:
            return fn(*args) or []
        except Exception as e:
            self._error(f"{phase} error: {e}")
            return []

    def finding(self, name: str, severity: Severity, confidence: Confidence,
                baseline: ProbeResult, parameter: str = "", detail: str = "",
                remediation: str = "", cves: Sequence[str] = (),
                evidence: Sequence[Optional[ProbeResult]] = ()) -> Finding:
        url = baseline.request.url if baseline.request is not None else ""
        return Finding(module=self.name, name=name, severity=severity,
                       confidence=confidence, url=url, parameter=parameter,
                       detail=detail, remediation=remediation, cve_refs=tuple(cves),
                       evidence=(baseline,) + tuple(evidence))

    def _debug(self, msg: str):
        if self.logger:
            self.logger.debug(f"{self.name}: {msg}")

    def _error(self, msg: str):
        if self.logger:
            self.logger.error(f"{self.name}: {msg}")

    @staticmethod
    def rand(n: int = 8) -> str:
        """Random alphanumeric canary string."""
        abc = string.ascii_letters + string.digits
        return "".join(random.choice(abc) for _ in range(n))


def body_has(result: Optional[ProbeResult], needle: str) -> bool:
    """Case-insensitive body containment, False for a missing result."""
    return result is not None and needle.lower() in (result.body or "").lower()
