"""HTTP/2 CONNECT checker: tunnels to internal services through an HTTP/2 front end."""

from dataclasses import replace
from typing import List

from logicscan.checkers.base import BaseChecker
from logicscan.core.models import Confidence, Finding, ProbeResult, Severity

CVE_TUNNEL = "CVE-2025-49630"
CVE_SMUGGLING = "CVE-2025-53020"


def advertises_http2(result: ProbeResult) -> bool:
    alt_svc = (result.header("alt-svc") or "").lower()
    upgrade = (result.header("upgrade") or "").lower()
    return "h2" in alt_svc or "h3" in alt_svc or "h2" in upgrade


class HTTP2Connect(BaseChecker):

    name = "HTTP/2 CONNECT"
    key = "http2"

    def passive(self, baseline: ProbeResult) -> List[Finding]:
        if not advertises_http2(baseline):
            return []
        how = []
        if baseline.header("alt-svc"):
            how.append(f"alt-svc: {baseline.header('alt-svc')}")
        if baseline.header("upgrade"):
            how.append(f"upgrade: {baseline.header('upgrade')}")
        out = [self.finding(
            "HTTP/2 Detected", Severity.INFO, Confidence.CERTAIN, baseline,
            detail="HTTP/2 support advertised (" + "; ".join(how) + ").",
            remediation="Disable HTTP/2 CONNECT on public-facing servers unless required.",
            cves=(CVE_TUNNEL, CVE_SMUGGLING))]
        server = baseline.header("server") or ""
        if "apache" in server.lower():
            out.append(self.finding(
                "Apache HTTP/2 Module", Severity.LOW, Confidence.TENTATIVE, baseline,
                detail=f"Apache with HTTP/2 support detected: {server}.",
                remediation="Update Apache and disable mod_proxy_http2 CONNECT handling.",
                cves=(CVE_TUNNEL, CVE_SMUGGLING)))
        return out

    def request_probes(self, baseline: ProbeResult) -> List[Finding]:
        if not advertises_http2(baseline):
            self._debug("no HTTP/2 indicators, skipping CONNECT probes")
            return []
        return self.guarded("connect-targets", self._connect, baseline)

    def _connect(self, baseline: ProbeResult) -> List[Finding]:
        out = []
        for entry in self.payloads("connect-targets"):
            req = replace(baseline.request.without_header("Content-Type"),
                          method="CONNECT", body="", target=entry.value)
            probe = self.probe(req)
            if probe is None:
                continue
            cves = tuple(entry.cve_refs) or (CVE_TUNNEL,)
            if probe.status_code == 200:
                out.append(self.finding(
                    f"CONNECT Tunnel Open to {entry.value}", Severity.HIGH, Confidence.FIRM,
                    baseline, parameter=entry.value, cves=cves, evidence=[probe],
                    detail=f"CONNECT {entry.value} was accepted (HTTP 200): "
                           f"{entry.description} is reachable through this host.",
                    remediation="Disable CONNECT or restrict it to an explicit allow-list."))
            elif probe.status_code == 407:
                out.append(self.finding(
                    f"CONNECT Tunnel Open to {entry.value}", Severity.MEDIUM, Confidence.FIRM,
                    baseline, parameter=entry.value, cves=cves, evidence=[probe],
                    detail=f"CONNECT {entry.value} requires proxy authentication (HTTP 407): "
                           f"the tunnel exists behind credentials.",
                    remediation="Disable CONNECT if proxying is not intended."))
            # any other status is an expected denial
        return out
