"""Findings ledger: deduplicating, thread-safe store of emitted findings."""

import csv
import io
import json
import threading
from typing import Callable, List

from logicscan.core.models import Finding, Severity

CSV_HEADER = ["Timestamp", "Module", "Severity", "Confidence", "URL", "Parameter", "Detail", "CVEs"]


class FindingsLedger:
    """First writer wins: a finding whose (module, url, parameter, name)
    was already recorded is dropped, even if its detail differs."""

    def __init__(self, logger=None):
        self.logger = logger
        self._lock = threading.Lock()
        self._findings: List[Finding] = []
        self._keys = set()
        self._listeners: List[Callable[[], None]] = []

    def add(self, finding: Finding) -> bool:
        with self._lock:
            key = finding.dedup_key
            if key in self._keys:
                return False
            self._keys.add(key)
            self._findings.append(finding)
        self._notify()
        return True

    def get_all(self) -> List[Finding]:
        with self._lock:
            return list(self._findings)

    def get_by_module(self, module: str) -> List[Finding]:
        with self._lock:
            return [f for f in self._findings if f.module == module]

    def size(self) -> int:
        with self._lock:
            return len(self._findings)

    __len__ = size

    def count_by_severity(self, severity: Severity) -> int:
        with self._lock:
            return sum(1 for f in self._findings if f.severity == severity)

    def clear(self):
        with self._lock:
            self._findings.clear()
            self._keys.clear()
        self._notify()

    def add_listener(self, listener: Callable[[], None]):
        with self._lock:
            self._listeners.append(listener)

    def _notify(self):
        # listeners run on the caller's thread, outside the lock
        with self._lock:
            listeners = list(self._listeners)
        for cb in listeners:
            try:
                cb()
            except Exception as e:
                if self.logger:
                    self.logger.error(f"Findings listener failed: {e}")

    # ── export ──────────────────────────────────────────────────

    def export_csv(self) -> str:
        buf = io.StringIO()
        w = csv.writer(buf, lineterminator="\n")
        w.writerow(CSV_HEADER)
        for f in self.get_all():
            w.writerow([f.timestamp, f.module, f.severity.name, f.confidence.name,
                        f.url, f.parameter, f.detail, f.cve_string])
        return buf.getvalue()

    def export_json(self) -> str:
        return json.dumps([f.to_dict() for f in self.get_all()], indent=2, ensure_ascii=False)
