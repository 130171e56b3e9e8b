"""
Target validation for the fetch proxy: URL constraints and the
private-network (SSRF) guard. Both are pure functions.
"""

from .target import TargetURL, InvalidTarget, validate_target
from .ssrf import is_blocked

__all__ = ["TargetURL", "InvalidTarget", "validate_target", "is_blocked"]
