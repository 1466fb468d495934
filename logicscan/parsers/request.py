from urllib.parse import urlsplit

from logicscan.core.models import ProbeRequest


class Request:
    def __init__(self, requestFilename: str) -> None:
        """
        GET /search?q=x HTTP/1.1
        Host: example.com
        Content-Type: xxx

        data=xxx
        """

        self.method = ""
        self.target = ""
        self.host = ""
        self.headers = {}
        self.raw_body = ""

        self.requestFilename = requestFilename

    def parse(self) -> "Request":

        with open(self.requestFilename, 'r', encoding='utf-8', errors='ignore') as f:
            raw = f.read().replace("\r\n", "\n")

        head, _, body_raw = raw.partition("\n\n")
        if not head.strip():
            raise ValueError("Request file is empty.")

        lines = [l for l in head.split("\n") if l.strip()]

        # METHOD SP TARGET [SP HTTP/x.y]
        parts0 = lines[0].split()
        if len(parts0) < 2:
            raise ValueError(f"Invalid request line: {lines[0]!r}")
        self.method = parts0[0].upper()
        self.target = parts0[1]

        self.headers = {}
        for line in lines[1:]:
            if ':' in line:
                k, v = line.split(':', 1)
                if k.strip().lower() != "content-length":
                    self.headers[k.strip()] = v.strip()

        # body stays raw; insertion points parse it per content type
        self.raw_body = body_raw.strip()

        self.host = self._header("Host") or urlsplit(self.target).netloc
        if not self.host:
            raise ValueError("Request file has no Host header.")
        return self

    def _header(self, name: str) -> str:
        for k, v in self.headers.items():
            if k.lower() == name.lower():
                return v
        return ""

    def url(self, protocol: str = "https") -> str:
        parts = urlsplit(self.target)
        if parts.scheme and parts.netloc:
            return self.target
        return f"{protocol}://{self.host}{self.target}"

    def to_probe(self, protocol: str = "https") -> ProbeRequest:
        """The parsed file as a ProbeRequest."""
        return ProbeRequest(self.method, self.url(protocol), dict(self.headers), self.raw_body)
