"""Shared data models for the logic scanner."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import IntEnum
import uuid
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx


@dataclass
class ProbeRequest:
    """One request variant. Derivation helpers return new instances."""
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""
    target: Optional[str] = None      # raw request-target override, e.g. CONNECT host:port

    def header(self, name: str) -> Optional[str]:
        name = name.lower()
        for k, v in self.headers.items():
            if k.lower() == name:
                return v
        return None

    def with_header(self, name: str, value: str) -> "ProbeRequest":
        hdrs = {k: v for k, v in self.headers.items() if k.lower() != name.lower()}
        hdrs[name] = value
        return replace(self, headers=hdrs)

    def without_header(self, name: str) -> "ProbeRequest":
        hdrs = {k: v for k, v in self.headers.items() if k.lower() != name.lower()}
        return replace(self, headers=hdrs)

    def with_param(self, name: str, value: str) -> "ProbeRequest":
        """Set (or add) one URL query parameter."""
        parts = urlsplit(self.url)
        pairs = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
                 if k != name]
        pairs.append((name, value))
        url = urlunsplit(parts._replace(query=urlencode(pairs)))
        return replace(self, url=url)

    def with_body(self, body: str) -> "ProbeRequest":
        return replace(self, body=body)

    def with_method(self, method: str) -> "ProbeRequest":
        return replace(self, method=method)

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or "/"

    def __str__(self):
        return f"{self.method} {self.url}"


@dataclass
class ProbeResult:
    """Captured data from one HTTP exchange."""
    status_code: int = 0
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)  # lower-cased keys
    elapsed: float = 0.0
    request: Optional[ProbeRequest] = field(default=None, repr=False)

    @property
    def body_length(self) -> int:
        return len(self.body)

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    @classmethod
    def from_response(cls, resp: httpx.Response, request: Optional[ProbeRequest] = None) -> "ProbeResult":
        try:
            elapsed = resp.elapsed.total_seconds()
        except RuntimeError:
            # responses built already-read never get a timing
            elapsed = 0.0
        return cls(
            status_code=resp.status_code,
            body=resp.text,
            headers={k.lower(): v for k, v in resp.headers.items()},
            elapsed=elapsed,
            request=request,
        )


class Severity(IntEnum):
    INFO = 1
    LOW = 2
    MEDIUM = 3
    HIGH = 4
    CRITICAL = 5


class Confidence(IntEnum):
    TENTATIVE = 1
    FIRM = 2
    CERTAIN = 3


def _now() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


@dataclass
class Finding:
    """A single vulnerability finding. Only ``false_positive`` may change after creation."""
    module: str
    name: str
    severity: Severity
    confidence: Confidence
    url: str
    parameter: str = ""
    detail: str = ""
    remediation: str = ""
    cve_refs: Tuple[str, ...] = ()
    timestamp: str = field(default_factory=_now)
    false_positive: bool = False
    evidence: Tuple[ProbeResult, ...] = field(default=(), repr=False, compare=False)

    def __post_init__(self):
        self.cve_refs = tuple(self.cve_refs)
        self.evidence = tuple(e for e in self.evidence if e is not None)
        object.__setattr__(self, "_sealed", True)

    def __setattr__(self, key, value):
        if getattr(self, "_sealed", False) and key != "false_positive":
            raise AttributeError(f"Finding.{key} is read-only")
        object.__setattr__(self, key, value)

    @property
    def dedup_key(self) -> str:
        return f"{self.module}|{self.url}|{self.parameter}|{self.name}"

    @property
    def cve_string(self) -> str:
        return ", ".join(self.cve_refs)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "module": self.module,
            "name": self.name,
            "severity": self.severity.name,
            "confidence": self.confidence.name,
            "url": self.url,
            "parameter": self.parameter,
            "detail": self.detail,
            "remediation": self.remediation,
            "cve_refs": list(self.cve_refs),
            "false_positive": self.false_positive,
        }

    def __str__(self):
        return (f"[{self.severity.name}][{self.confidence.name}] {self.module}: {self.name} "
                f"@ {self.url} ({self.parameter or '-'})")


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class PayloadEntry:
    """A test vector owned by the payload registry."""
    module: str
    category: str
    value: str
    description: str = ""
    cve_refs: List[str] = field(default_factory=list)
    enabled: bool = True
    added_by: str = "user"            # "default" | "user"
    tags: List[str] = field(default_factory=list)
    expected_response: Optional[str] = None   # "token=Engine,token=Engine"
    id: str = field(default_factory=_new_id)

    @property
    def is_default(self) -> bool:
        return self.added_by == "default"

    def content_key(self) -> Tuple[str, str, str]:
        return (self.value, self.module, self.category)

    def copy(self) -> "PayloadEntry":
        """Clone as a new user entry with a fresh id."""
        return replace(self, id=_new_id(), added_by="user",
                       cve_refs=list(self.cve_refs), tags=list(self.tags))

    def expected_markers(self) -> List[Tuple[str, str]]:
        """Parse ``expected_response`` into (token, engine) pairs."""
        pairs = []
        for part in (self.expected_response or "").split(","):
            token, sep, engine = part.partition("=")
            if sep and token.strip():
                pairs.append((token.strip(), engine.strip()))
        return pairs

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "module": self.module,
            "category": self.category,
            "value": self.value,
            "description": self.description,
            "cve_refs": list(self.cve_refs),
            "enabled": self.enabled,
            "added_by": self.added_by,
            "tags": list(self.tags),
            "expected_response": self.expected_response,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PayloadEntry":
        if not isinstance(data, dict):
            raise ValueError("payload record must be an object")
        for key in ("module", "category", "value"):
            if not isinstance(data.get(key), str) or not data[key]:
                raise ValueError(f"payload record missing '{key}'")
        for key in ("cve_refs", "tags"):
            if data.get(key) is not None and not isinstance(data[key], list):
                raise ValueError(f"payload record '{key}' must be a list")
        for key in ("id", "description", "added_by", "expected_response"):
            if data.get(key) is not None and not isinstance(data[key], str):
                raise ValueError(f"payload record '{key}' must be a string")
        if not isinstance(data.get("enabled", True), bool):
            raise ValueError("payload record 'enabled' must be a boolean")
        entry = cls(
            module=data["module"],
            category=data["category"],
            value=data["value"],
            description=str(data.get("description") or ""),
            cve_refs=[str(c) for c in data.get("cve_refs") or []],
            enabled=bool(data.get("enabled", True)),
            added_by=data.get("added_by") or "user",
            tags=[str(t) for t in data.get("tags") or []],
            expected_response=data.get("expected_response") or None,
        )
        if data.get("id"):
            entry.id = str(data["id"])
        return entry
