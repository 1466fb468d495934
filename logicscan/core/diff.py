"""Response differencing: cheap layered comparison of two probe results.

Every function tolerates ``None`` (no response) and never raises.
"""

from typing import Optional

from logicscan.core.models import ProbeResult

DEFAULT_THRESHOLD = 0.15


def _len(r: Optional[ProbeResult]) -> int:
    return len(r.body) if r is not None and r.body else 0


def responses_differ(a: Optional[ProbeResult], b: Optional[ProbeResult],
                     threshold: float = DEFAULT_THRESHOLD) -> bool:
    """Status first, then relative length delta, then similarity."""
    if a is None or b is None:
        return True
    if a.status_code != b.status_code:
        return True
    if length_differs(a, b, threshold):
        return True
    return body_similarity(a, b) < 1.0 - threshold


def status_differs(a: Optional[ProbeResult], b: Optional[ProbeResult]) -> bool:
    if a is None or b is None:
        return True
    return a.status_code != b.status_code


def length_differs(a: Optional[ProbeResult], b: Optional[ProbeResult], threshold: float) -> bool:
    la, lb = _len(a), _len(b)
    longest = max(la, lb)
    if longest == 0:
        return False
    return abs(la - lb) / longest > threshold


def length_delta(a: Optional[ProbeResult], b: Optional[ProbeResult]) -> int:
    return abs(_len(a) - _len(b))


def exclusive_contains(a: Optional[ProbeResult], b: Optional[ProbeResult], marker: str) -> bool:
    """True iff exactly one of the two bodies contains *marker* (case-insensitive)."""
    m = marker.lower()
    in_a = a is not None and m in (a.body or "").lower()
    in_b = b is not None and m in (b.body or "").lower()
    return in_a != in_b


def body_similarity(a: Optional[ProbeResult], b: Optional[ProbeResult]) -> float:
    la, lb = _len(a), _len(b)
    longest = max(la, lb)
    if longest == 0:
        return 1.0
    return 1.0 - abs(la - lb) / longest
