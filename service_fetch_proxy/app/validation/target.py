"""
Target URL validation for the fetch endpoint.

``validate_target`` never raises: it returns either a :class:`TargetURL` or an
:class:`InvalidTarget` describing why the raw value was refused.
"""

from dataclasses import dataclass, replace
from typing import Optional, Union
from urllib.parse import urlsplit, urlunsplit

import httpx


ALLOWED_SCHEME = "https"
DEFAULT_HTTPS_PORT = 443

MISSING_MESSAGE = 'Missing query param "url". Example: /fetch?url=https://example.com'
MALFORMED_MESSAGE = "Invalid URL provided."
INSECURE_MESSAGE = "Only https URLs are allowed."


@dataclass(frozen=True)
class TargetURL:
    """A validated absolute https URL."""

    scheme: str
    hostname: str
    port: Optional[int]
    path: str
    query: str

    @property
    def netloc(self) -> str:
        host = f"[{self.hostname}]" if ":" in self.hostname else self.hostname
        if self.port is None or self.port == DEFAULT_HTTPS_PORT:
            return host
        return f"{host}:{self.port}"

    def canonical(self) -> str:
        """Canonical string form used for the cache key and the response body."""
        return urlunsplit((self.scheme, self.netloc, self.path, self.query, ""))

    def __str__(self) -> str:
        return self.canonical()


@dataclass(frozen=True)
class InvalidTarget:
    """Why a raw target value was refused."""

    reason: str
    message: str


ValidationResult = Union[TargetURL, InvalidTarget]


def validate_target(raw: Optional[str]) -> ValidationResult:
    """Parse and constrain a user-supplied target URL."""
    if not raw:
        return InvalidTarget("missing", MISSING_MESSAGE)

    candidate = raw.strip()
    try:
        parts = urlsplit(candidate)
        # .port raises ValueError for non-numeric or out-of-range ports
        port = parts.port
    except ValueError:
        return InvalidTarget("malformed", MALFORMED_MESSAGE)

    if not parts.scheme or not parts.netloc or not parts.hostname:
        return InvalidTarget("malformed", MALFORMED_MESSAGE)

    scheme = parts.scheme.lower()
    if scheme != ALLOWED_SCHEME:
        return InvalidTarget("insecure_scheme", INSECURE_MESSAGE)

    if any(ch.isspace() for ch in parts.netloc):
        return InvalidTarget("malformed", MALFORMED_MESSAGE)

    target = TargetURL(
        scheme=scheme,
        hostname=parts.hostname.lower(),
        port=port,
        path=parts.path or "/",
        query=parts.query,
    )
    try:
        # Same parse the origin client applies; rejects hosts IDNA cannot encode
        encoded = httpx.URL(target.canonical())
    except httpx.InvalidURL:
        return InvalidTarget("malformed", MALFORMED_MESSAGE)

    if not target.hostname.isascii():
        target = replace(target, hostname=encoded.raw_host.decode("ascii"))
    return target
