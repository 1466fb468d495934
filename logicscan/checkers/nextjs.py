"""Next.js checker: middleware bypass and cache poisoning through internal headers and params."""

from typing import List

from logicscan.checkers.base import BaseChecker, body_has
from logicscan.core.diff import body_similarity, length_differs, responses_differ
from logicscan.core.models import Confidence, Finding, ProbeResult, Severity


def is_nextjs(result: ProbeResult) -> bool:
    if result is None:
        return False
    return (body_has(result, "__NEXT_DATA__")
            or body_has(result, "_next/static")
            or (result.header("x-powered-by") or "").lower() == "next.js"
            or bool(result.header("x-nextjs-cache")))


def is_cacheable(result: ProbeResult) -> bool:
    if result.header("x-nextjs-cache"):
        return True
    cc = (result.header("cache-control") or "").lower()
    return "s-maxage" in cc or "public" in cc


class NextJS(BaseChecker):

    name = "Next.js Cache"
    key = "nextjs"

    def passive(self, baseline: ProbeResult) -> List[Finding]:
        if not is_nextjs(baseline):
            return []
        signs = []
        if body_has(baseline, "__NEXT_DATA__"):
            signs.append("body contains __NEXT_DATA__")
        if body_has(baseline, "_next/static"):
            signs.append("body contains _next/static")
        if (baseline.header("x-powered-by") or "").lower() == "next.js":
            signs.append("x-powered-by: Next.js")
        if baseline.header("x-nextjs-cache"):
            signs.append(f"x-nextjs-cache: {baseline.header('x-nextjs-cache')}")
        return [self.finding(
            "Next.js Detected", Severity.INFO, Confidence.CERTAIN, baseline,
            detail="Next.js fingerprint: " + "; ".join(signs) + ".",
            remediation="Keep Next.js up to date and do not expose internal headers to clients.")]

    def request_probes(self, baseline: ProbeResult) -> List[Finding]:
        if not is_nextjs(baseline):
            return []
        out = self.guarded("nextjs-headers", self._headers, baseline)
        out += self.guarded("nextjs-params", self._params, baseline)
        return out

    # ── phases ──────────────────────────────────────────────────

    def _headers(self, baseline: ProbeResult) -> List[Finding]:
        out = []
        for entry in self.payloads("nextjs-headers"):
            hname, sep, hvalue = entry.value.partition(": ")
            if not sep:
                continue
            probe = self.probe(baseline.request.with_header(hname, hvalue))
            if probe is None:
                continue
            differs = responses_differ(baseline, probe, self.threshold)
            lname = hname.lower()
            shown = f"{hname}: {hvalue}"

            if lname == "x-middleware-subrequest" and differs:
                out.append(self.finding(
                    "Middleware Bypass", Severity.HIGH, Confidence.FIRM, baseline,
                    parameter=hname, cves=entry.cve_refs, evidence=[probe],
                    detail=f"Sending '{shown}' bypassed the middleware "
                           f"(HTTP {baseline.status_code} -> {probe.status_code}).",
                    remediation="Upgrade Next.js (>= 15.2.3, 14.2.25, 13.5.9) and strip "
                                "x-middleware-subrequest at the reverse proxy."))
                continue

            if (lname == "x-middleware-prefetch" and len(probe.body) < len(baseline.body)
                    and length_differs(baseline, probe, 0.15)):
                out.append(self.finding(
                    "Cache Poisoning via Prefetch Header", Severity.HIGH, Confidence.FIRM,
                    baseline, parameter=hname, cves=entry.cve_refs, evidence=[probe],
                    detail=f"'{shown}' returned a minimal prefetch body "
                           f"({len(probe.body)} vs {len(baseline.body)} bytes).",
                    remediation="Key caches on x-middleware-prefetch or strip it at the CDN."))
                continue

            if lname == "rsc" and "text/x-component" in (probe.header("content-type") or ""):
                out.append(self.finding(
                    "Cache Poisoning via RSC Header", Severity.HIGH, Confidence.FIRM,
                    baseline, parameter=hname, cves=entry.cve_refs, evidence=[probe],
                    detail=f"'{shown}' switched the response to text/x-component.",
                    remediation="Include Rsc in the cache key or send 'Vary: Rsc'."))
                continue

            if differs:
                cached = probe.header("x-nextjs-cache")
                detail = (f"'{shown}' changed the response (HTTP {baseline.status_code} -> "
                          f"{probe.status_code}, similarity {body_similarity(baseline, probe):.2f}).")
                if cached:
                    detail += f" x-nextjs-cache: {cached}."
                out.append(self.finding(
                    f"Cache Poisoning via {hname}", Severity.HIGH if cached else Severity.MEDIUM,
                    Confidence.TENTATIVE, baseline, parameter=hname, cves=entry.cve_refs,
                    evidence=[probe], detail=detail,
                    remediation=f"Include {hname} in the cache key or strip it at the reverse proxy."))
        return out

    def _params(self, baseline: ProbeResult) -> List[Finding]:
        out = []
        for entry in self.payloads("nextjs-params"):
            pname, sep, pvalue = entry.value.partition("=")
            if not sep:
                continue
            pvalue = pvalue.replace("RANDOM", self.rand())
            probe = self.probe(baseline.request.with_param(pname, pvalue))
            if probe is None or not responses_differ(baseline, probe, self.threshold):
                continue
            cacheable = is_cacheable(probe)
            out.append(self.finding(
                f"Cache Key Pollution via {pname}",
                Severity.HIGH if cacheable else Severity.MEDIUM, Confidence.TENTATIVE,
                baseline, parameter=pname, cves=entry.cve_refs, evidence=[probe],
                detail=f"Adding {pname}={pvalue} changed the response"
                       + (" and the response is cacheable." if cacheable else "."),
                remediation=f"Exclude {pname} from routing or include it in the cache key."))
        return out
