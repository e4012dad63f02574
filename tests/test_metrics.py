"""Tests for rate and ETA computation."""

import math

import pytest

from torrentdesk.session.metrics import eta, format_eta, format_rate, format_size, rate
from torrentdesk.session.models import RateSample


def sample(down, up, at):
    return RateSample(bytes_downloaded=down, bytes_uploaded=up, captured_at=at)


def test_rate_divides_delta_by_interval():
    """Test rate over the nominal interval."""
    assert rate(sample(1000, 0, 1), sample(5096, 3072, 2), 2.0) == (2048, 1536)


def test_rate_truncates_to_integer():
    assert rate(sample(0, 0, 1), sample(3, 1, 2), 2.0) == (1, 0)


def test_rate_zero_without_progress():
    assert rate(sample(10, 10, 1), sample(10, 10, 2), 2.0) == (0, 0)


def test_rate_unknown_on_counter_reset():
    """A counter going backwards is unknown, never negative."""
    assert rate(sample(5000, 100, 1), sample(10, 200, 2), 2.0) == (None, 50)
    assert rate(sample(10, 200, 1), sample(20, 100, 2), 2.0) == (5, None)


def test_rate_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        rate(sample(0, 0, 1), sample(1, 1, 2), 0)


def test_eta_infinite_without_progress():
    """Test ETA is infinite regardless of bytes missing."""
    assert math.isinf(eta(1000, 0, 2.0))
    assert math.isinf(eta(0, 0, 2.0))
    assert math.isinf(eta(1000, -5, 2.0))


def test_eta_scales_interval():
    # 2s * 4096 / 1024
    assert eta(4096, 1024, 2.0) == 8
    assert eta(1000, 3, 2.0) == 666


@pytest.mark.parametrize(
    "seconds,expected",
    [
        (3661, "1h01m"),
        (3600, "1h00m"),
        (36000 + 59 * 60 + 59, "10h59m"),
        (125, "02m05s"),
        (60, "01m00s"),
        (59, "59s"),
        (9, "09s"),
        (0, "00s"),
    ],
)
def test_format_eta(seconds, expected):
    """Test ETA display format."""
    assert format_eta(seconds) == expected


def test_format_eta_special_values():
    assert format_eta(math.inf) == "∞"
    assert format_eta(None) == "?"


def test_format_rate():
    assert format_rate(None) == "?"
    assert format_rate(0) == "0k"
    assert format_rate(1023) == "0k"
    assert format_rate(2048) == "2k"


def test_format_size():
    assert format_size(0) == "0.0m"
    assert format_size(1572864) == "1.5m"
