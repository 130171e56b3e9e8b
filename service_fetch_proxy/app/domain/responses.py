"""
JSON response shaping for the fetch proxy.
"""

import json
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

from shared.errors import EdgeProxyException


JSON_CONTENT_TYPE = "application/json; charset=utf-8"

CACHE_HEADER = "X-Cache"
CACHE_HIT = "HIT"
CACHE_MISS = "MISS"
ELAPSED_HEADER = "X-Edge-Fetch-Ms"
CACHE_CONTROL_HEADER = "Cache-Control"


@dataclass(frozen=True)
class ProxyResponse:
    """Status, headers and body of a response produced (or cached) by the proxy."""

    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def with_header(self, name: str, value: str) -> "ProxyResponse":
        """Copy with one header set; the body is shared untouched."""
        headers = {k: v for k, v in self.headers.items() if k.lower() != name.lower()}
        headers[name] = value
        return replace(self, headers=headers)

    def header(self, name: str) -> Optional[str]:
        for key, value in self.headers.items():
            if key.lower() == name.lower():
                return value
        return None

    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8"))

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form for external cache backends."""
        return {
            "status_code": self.status_code,
            "headers": dict(self.headers),
            "body": self.body.decode("utf-8"),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ProxyResponse":
        return cls(
            status_code=int(payload["status_code"]),
            headers=dict(payload.get("headers", {})),
            body=payload.get("body", "").encode("utf-8"),
        )


def json_response(
    data: Any,
    status: int = 200,
    extra_headers: Optional[Dict[str, str]] = None
) -> ProxyResponse:
    """Pretty-printed JSON body with the JSON content type."""
    headers = {"Content-Type": JSON_CONTENT_TYPE}
    headers.update(extra_headers or {})
    body = json.dumps(data, indent=2, ensure_ascii=False).encode("utf-8")
    return ProxyResponse(status_code=status, headers=headers, body=body)


def json_error(code: str, message: str, status: int = 400) -> ProxyResponse:
    """Two-field ``{error, message}`` error body."""
    return json_response({"error": code, "message": message}, status)


def error_response(exc: EdgeProxyException) -> ProxyResponse:
    return json_response(exc.body(), exc.status_code, exc.headers())
