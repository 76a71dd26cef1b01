"""HTTP response record and its wire encoding."""

from dataclasses import dataclass

CRLF = "\r\n"


@dataclass
class HttpResponse:
    """Represents an HTTP response to be sent to the notification provider."""

    status_line: str
    headers: dict[str, str]
    body: str

    def encode(self) -> bytes:
        """Serialize as CRLF-joined status line, headers, blank line and body."""
        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in self.headers.items())
        lines.append("")
        lines.append(self.body)
        return CRLF.join(lines).encode("utf-8")

    @property
    def status_code(self) -> int:
        return int(self.status_line.split(" ", 2)[1])
