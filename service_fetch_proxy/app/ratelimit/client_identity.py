"""
Heuristic client identity derived from request headers.

The key is not authenticated. Distinct clients behind one proxy can share a
key, and a client that rotates its user agent gets a fresh one.
"""

from typing import Mapping, Optional

KEY_DELIMITER = "|"

TRUSTED_IP_HEADER = "CF-Connecting-IP"
FORWARDED_FOR_HEADER = "X-Forwarded-For"
USER_AGENT_HEADER = "User-Agent"
COUNTRY_HEADER = "CF-IPCountry"
RAY_HEADER = "CF-Ray"

NO_IP = "no-ip"
NO_UA = "no-ua"
NO_COUNTRY = "no-country"
NO_COLO = "no-colo"


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    if value is None:
        return None
    value = value.strip()
    return value or None


def client_ip(headers: Mapping[str, str]) -> Optional[str]:
    """Trusted proxy IP header first, then the first X-Forwarded-For hop."""
    trusted = _header(headers, TRUSTED_IP_HEADER)
    if trusted:
        return trusted

    forwarded_for = _header(headers, FORWARDED_FOR_HEADER)
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop

    return None


def client_country(headers: Mapping[str, str]) -> Optional[str]:
    return _header(headers, COUNTRY_HEADER)


def client_colo(headers: Mapping[str, str]) -> Optional[str]:
    """Edge data-centre code, taken from the ``<ray-id>-<COLO>`` ray header."""
    ray = _header(headers, RAY_HEADER)
    if not ray or "-" not in ray:
        return None
    colo = ray.rsplit("-", 1)[1].strip()
    return colo or None


def client_key(headers: Mapping[str, str]) -> str:
    """Build the rate limit key ``ip|user-agent|country|colo``."""
    return KEY_DELIMITER.join([
        client_ip(headers) or NO_IP,
        _header(headers, USER_AGENT_HEADER) or NO_UA,
        client_country(headers) or NO_COUNTRY,
        client_colo(headers) or NO_COLO,
    ])
