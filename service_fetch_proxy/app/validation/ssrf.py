"""
Private-network guard for fetch targets.

Matching is textual on the literal hostname; nothing is resolved. Hosts that
only resolve to private space, IPv6 private ranges other than loopback and
obfuscated IPv4 literals (decimal, octal, hex) all pass this guard.
"""

BLOCKED_EXACT_HOSTS = frozenset({"localhost", "127.0.0.1", "::1", "[::1]"})
BLOCKED_PREFIXES = ("10.", "192.168.")

CLASS_B_PREFIX = "172."
CLASS_B_PRIVATE_SECOND_OCTET = range(16, 32)


def is_blocked(hostname: str) -> bool:
    """Return True when ``hostname`` names loopback or RFC 1918 space."""
    host = hostname.lower()

    if host in BLOCKED_EXACT_HOSTS:
        return True

    if host.startswith(BLOCKED_PREFIXES):
        return True

    if host.startswith(CLASS_B_PREFIX):
        second_octet = host.split(".")[1]
        # Non-numeric second segments (e.g. "172.abc.1.1") are allowed through
        if second_octet.isdecimal() and int(second_octet) in CLASS_B_PRIVATE_SECOND_OCTET:
            return True

    return False
