"""Rate limit input parsing."""

import math
import re
from typing import Optional, Union

from ..utils.config import settings
from .errors import NotANumber

# No throttling
UNLIMITED = math.inf

RateLimit = Union[int, float]

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MAX = 2**63 - 1


def parse_rate_input(text: str, unit: Optional[int] = None) -> RateLimit:
    """
    Parse a rate limit typed by the user in kb/s.

    Args:
        text: Base-10 integer, optionally signed
        unit: Bytes per typed unit (defaults to settings.rate_unit)

    Returns:
        Limit in bytes/second, or UNLIMITED for "0"

    Raises:
        NotANumber: If text is not an integer
    """
    if not _INTEGER_RE.fullmatch(text or ""):
        raise NotANumber(f"invalid rate: {text!r}")

    value = int(text)
    if abs(value) > _INT64_MAX:
        raise NotANumber(f"rate out of range: {text!r}")

    value *= unit or settings.rate_unit
    if value == 0:
        return UNLIMITED
    return value


def is_unlimited(limit: RateLimit) -> bool:
    """Check whether a limit disables throttling."""
    return limit == UNLIMITED or limit == 0
