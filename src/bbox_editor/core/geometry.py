"""Coordinate conversion and locale-independent number formatting."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_EVEN, Decimal
from typing import List, Optional, Sequence

# Tolerance for ratios that land just outside [0, 1] in YOLO files
RATIO_TOLERANCE = 1e-6

# Tolerance for geometric equality of shapes
EQUALITY_EPSILON = 1e-8


def to_relative(points: Sequence[float], width: float, height: float) -> List[float]:
    """
    Convert a flat [x0, y0, x1, y1, ...] list from pixels to image ratios.

    Args:
        points: Flat list of absolute coordinates
        width: Image width in pixels
        height: Image height in pixels

    Returns:
        Flat list of coordinates relative to the image size
    """
    return [
        value / width if index % 2 == 0 else value / height
        for index, value in enumerate(points)
    ]


def to_absolute(points: Sequence[float], width: float, height: float) -> List[float]:
    """
    Convert a flat [x0, y0, x1, y1, ...] list from image ratios to pixels.

    Args:
        points: Flat list of relative coordinates
        width: Image width in pixels
        height: Image height in pixels

    Returns:
        Flat list of absolute coordinates
    """
    return [
        value * width if index % 2 == 0 else value * height
        for index, value in enumerate(points)
    ]


def format_decimal(value: float, places: int) -> str:
    """
    Format a number with at most `places` fraction digits.

    Rounds half-even, always uses '.' as decimal separator, never uses an
    exponent and drops trailing zeros (and the separator if nothing
    remains after it). Negative zero is written as "0".

    Args:
        value: Number to format
        places: Maximum number of fraction digits

    Returns:
        Formatted number string

    Raises:
        ValueError: If value is not finite
    """
    if not math.isfinite(value):
        raise ValueError(f"Cannot format non-finite value: {value}")

    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_EVEN)
    text = format(rounded, "f")

    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text in ("-0", ""):
        text = "0"
    return text


def is_ratio(value: float) -> bool:
    """Return True if value lies within [0, 1]."""
    return 0.0 <= value <= 1.0


def snap_ratio(value: float, tolerance: float = RATIO_TOLERANCE) -> Optional[float]:
    """
    Validate a ratio, snapping values just outside [0, 1] onto the boundary.

    Args:
        value: Ratio to check
        tolerance: Maximum distance outside the boundary that is accepted

    Returns:
        The (possibly snapped) ratio, or None if it is out of range
    """
    if is_ratio(value):
        return value
    if -tolerance <= value < 0.0:
        return 0.0
    if 1.0 < value <= 1.0 + tolerance:
        return 1.0
    return None


def almost_equal(first: float, second: float, epsilon: float = EQUALITY_EPSILON) -> bool:
    """Compare two numbers with an absolute tolerance."""
    return abs(first - second) <= epsilon
