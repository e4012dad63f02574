"""Transfer rate and ETA computation.

Everything here is pure: the coordinator feeds in two samples and the
nominal tick interval and gets numbers or display strings back.
"""

import math
from typing import Optional, Tuple, Union

from .models import RateSample

Eta = Union[int, float]

UNKNOWN = "?"
INFINITE = "∞"


def _per_second(delta: int, interval: float) -> Optional[int]:
    # Negative deltas mean the engine counters were reset
    if delta < 0:
        return None
    return int(delta / interval)


def rate(
    previous: RateSample, current: RateSample, interval: float
) -> Tuple[Optional[int], Optional[int]]:
    """
    Compute download and upload rates between two samples.

    Args:
        previous: Older sample
        current: Newer sample
        interval: Nominal seconds between the samples

    Returns:
        (download bytes/s, upload bytes/s); None for a direction whose
        counter went backwards
    """
    if interval <= 0:
        raise ValueError("interval must be positive")
    down, up = current - previous
    return _per_second(down, interval), _per_second(up, interval)


def eta(bytes_missing: int, downloaded: int, interval: float) -> Eta:
    """
    Estimate seconds until completion from the last interval's progress.

    Returns math.inf when nothing was downloaded during the interval.
    """
    if downloaded <= 0:
        return math.inf
    return int(interval * bytes_missing / downloaded)


def format_eta(seconds: Optional[Eta]) -> str:
    """Format an ETA as 1h01m, 02m05s or 09s."""
    if seconds is None:
        return UNKNOWN
    if math.isinf(seconds):
        return INFINITE

    seconds = int(seconds)
    hours, rest = divmod(seconds, 3600)
    mins, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}h{mins:02d}m"
    if mins > 0:
        return f"{mins:02d}m{secs:02d}s"
    return f"{secs:02d}s"


def format_rate(bytes_per_second: Optional[int]) -> str:
    if bytes_per_second is None:
        return UNKNOWN
    return f"{bytes_per_second // 1024}k"


def format_size(num_bytes: int) -> str:
    """Format bytes as mebibytes with one decimal (e.g. 1.5m)."""
    return f"{num_bytes / (1024 * 1024):.1f}m"
