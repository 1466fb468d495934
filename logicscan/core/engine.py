from collections import OrderedDict
from typing import Dict, List, Optional

import httpx
from colorama import Style

from logicscan.checkers.base import BaseChecker
from logicscan.checkers.etag import ETagLeak
from logicscan.checkers.http2 import HTTP2Connect
from logicscan.checkers.nextjs import NextJS
from logicscan.checkers.orm import ORMLeak
from logicscan.checkers.parser import ParserDifferential
from logicscan.checkers.ssrf import SSRF
from logicscan.checkers.ssti import SSTI
from logicscan.checkers.unicode import UnicodeNormalization
from logicscan.core.diff import DEFAULT_THRESHOLD
from logicscan.core.findings import FindingsLedger
from logicscan.core.insertion import discover_insertion_points
from logicscan.core.models import Finding, ProbeRequest, ProbeResult
from logicscan.core.payloads import PayloadRegistry

_STOP_HDRS = {"content-length", "transfer-encoding", "content-encoding"}

STATIC_EXTENSIONS = (".js", ".css", ".png", ".jpg", ".gif", ".svg", ".woff", ".woff2",
                     ".ico", ".map", ".ttf", ".eot")

# module id -> checker class, in scan order
CHECKERS = OrderedDict([
    ("ssti", SSTI),
    ("orm", ORMLeak),
    ("nextjs", NextJS),
    ("unicode", UnicodeNormalization),
    ("ssrf", SSRF),
    ("parser", ParserDifferential),
    ("http2", HTTP2Connect),
    ("etag", ETagLeak),
])


def build_checkers(registry: PayloadRegistry, send, logger=None,
                   threshold: float = DEFAULT_THRESHOLD) -> Dict[str, BaseChecker]:
    return OrderedDict((key, cls(registry, send, logger=logger, threshold=threshold))
                       for key, cls in CHECKERS.items())


def is_static_asset(request: ProbeRequest) -> bool:
    return request.path.lower().endswith(STATIC_EXTENSIONS)


class Engine:
    def __init__(self, proxy: str | None = None, protocol: str = "https", logger=None,
                 registry: Optional[PayloadRegistry] = None, ledger: Optional[FindingsLedger] = None,
                 timeout: float = 10, threshold: float = DEFAULT_THRESHOLD,
                 transport: Optional[httpx.BaseTransport] = None):
        self.name = "logicscan"
        self.version = "1.0.0"
        self.protocol = protocol
        self.logger = logger
        self.registry = registry if registry is not None else PayloadRegistry(logger=logger)
        self.ledger = ledger if ledger is not None else FindingsLedger(logger=logger)
        # redirects stay visible: SSRF checks read Location headers
        kwargs = dict(verify=False, follow_redirects=False, timeout=timeout)
        if transport is not None:
            kwargs["transport"] = transport
        else:
            kwargs["proxy"] = proxy
        self.client = httpx.Client(**kwargs)
        self.checkers = build_checkers(self.registry, self.send, logger=logger, threshold=threshold)

    def close(self):
        self.client.close()

    def enable_only(self, keys):
        keys = set(keys)
        unknown = keys - set(self.checkers)
        if unknown:
            raise ValueError(f"unknown module(s): {', '.join(sorted(unknown))}")
        for key, chk in self.checkers.items():
            chk.enabled = key in keys

    # ---------- transport ----------
    def send(self, request: ProbeRequest) -> Optional[ProbeResult]:
        """Send one probe. Build and transport failures come back as None."""
        headers = {k: v for k, v in request.headers.items() if k.lower() not in _STOP_HDRS}
        extensions = {"target": request.target.encode()} if request.target else None
        if self.logger and self.logger.verbose >= 2:
            self.logger.debug(f"→ {request.method} {self.logger.PAY}{request.target or request.url}"
                              f"{Style.RESET_ALL}")
        try:
            resp = self.client.request(request.method, request.url, headers=headers,
                                       content=request.body.encode() if request.body else None,
                                       extensions=extensions)
            return ProbeResult.from_response(resp, request)
        except Exception as e:
            if self.logger:
                self.logger.warn(f"{request.method} {request.url} failed: {e}")
            return None

    # ---------- scanning ----------
    def scan(self, request: ProbeRequest) -> List[Finding]:
        """Baseline, then every enabled module passively, once per request and per insertion point."""
        if is_static_asset(request):
            if self.logger:
                self.logger.debug(f"Skipping static asset {request.path}")
            return []

        if self.logger:
            self.logger.info(f"Scanning {request.method} {request.url}")
        baseline = self.send(request)
        if baseline is None:
            if self.logger:
                self.logger.fail(f"No baseline response from {request.url}")
            return []

        results: List[Finding] = []
        enabled = [c for c in self.checkers.values() if c.enabled]

        for chk in enabled:
            results += self._run(chk, "passive", chk.passive, baseline)
        for chk in enabled:
            results += self._run(chk, "request", chk.request_probes, baseline)

        points = discover_insertion_points(request)
        if self.logger:
            self.logger.debug(f"Insertion points: {', '.join(p.name for p in points) or '(none)'}")
        for ip in points:
            for chk in enabled:
                results += self._run(chk, f"active:{ip.name}", chk.active, baseline, ip)

        if self.logger and not results:
            self.logger.fail(f"No findings for {request.url}")
        return results

    def _run(self, chk: BaseChecker, phase: str, fn, *args) -> List[Finding]:
        try:
            found = fn(*args) or []
        except Exception as e:
            if self.logger:
                self.logger.error(f"{chk.name} {phase} error: {e}")
            return []
        for f in found:
            if self.ledger.add(f) and self.logger:
                self.logger.finding(f)
        return found
