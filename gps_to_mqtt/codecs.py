"""Decoders for NMEA coordinate, time, date and numeric fields.

NMEA encodes coordinates as degrees and decimal minutes packed into one
field (``DDMM.mmmm`` for latitude, ``DDDMM.mmmm`` for longitude), times as
``HHMMSS[.ss]`` and dates as ``DDMMYY``. None of the functions here raise:
malformed input decodes to a zero value so that a single bad field never
costs the rest of the sentence.
"""

import math
from decimal import Decimal
from typing import Optional, Tuple

import structlog

logger = structlog.get_logger(__name__)

HEMISPHERES = ("N", "S", "E", "W")

LATITUDE_DEGREE_DIGITS = 2
LONGITUDE_DEGREE_DIGITS = 3


def int_or_zero(value: str) -> int:
    """Parse an integer field, returning 0 when it is empty or invalid."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def float_or_zero(value: str) -> float:
    """Parse a float field, returning 0.0 when it is empty or invalid."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def format_number(value: float) -> str:
    """
    Render a float as a payload: shortest round-trip digits, never an exponent.

    Whole numbers lose their fractional part, so ``90.0`` becomes ``"90"``
    and ``9.999999999999999e-06`` becomes ``"0.000009999999999999999"``.
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"

    text = repr(float(value))
    if "e" in text:
        text = format(Decimal(text), "f")
    if text.endswith(".0"):
        text = text[:-2]
    return text


def decode_coordinate(value: str, hemisphere: str, degree_digits: int) -> float:
    """
    Convert an NMEA degree-minute coordinate to decimal degrees.

    Args:
        value: Coordinate field, e.g. ``"4807.038"``
        hemisphere: One of ``N``, ``S``, ``E`` or ``W``
        degree_digits: Width of the degree prefix (2 for latitude, 3 for longitude)

    Returns:
        Decimal degrees, negative for the southern and western hemispheres,
        or 0.0 if the input cannot be decoded
    """
    if not value or not hemisphere:
        logger.debug("Empty coordinate field", value=value, hemisphere=hemisphere)
        return 0.0

    if len(value) <= degree_digits:
        logger.warning("Coordinate too short", value=value, hemisphere=hemisphere)
        return 0.0

    if hemisphere not in HEMISPHERES:
        logger.warning("Invalid hemisphere", value=value, hemisphere=hemisphere)
        return 0.0

    try:
        degrees = float(value[:degree_digits])
        minutes = float(value[degree_digits:])
    except ValueError:
        logger.warning("Failed to parse coordinate", value=value, hemisphere=hemisphere)
        return 0.0

    result = degrees + minutes / 60.0
    if hemisphere in ("S", "W"):
        return -result
    return result


def decode_latitude(value: str, hemisphere: str) -> float:
    """Decode a ``DDMM.mmmm`` latitude."""
    return decode_coordinate(value, hemisphere, LATITUDE_DEGREE_DIGITS)


def decode_longitude(value: str, hemisphere: str) -> float:
    """Decode a ``DDDMM.mmmm`` longitude."""
    return decode_coordinate(value, hemisphere, LONGITUDE_DEGREE_DIGITS)


def _two_digit_groups(value: str) -> Optional[Tuple[int, int, int]]:
    """Read the first three two-digit groups of a field, or None if any is not numeric."""
    groups = (value[0:2], value[2:4], value[4:6])
    if not all(len(group) == 2 and group.isdecimal() for group in groups):
        return None
    return (int(groups[0]), int(groups[1]), int(groups[2]))


def decode_utc_time(value: str) -> Tuple[int, int, int]:
    """
    Split an ``HHMMSS[.ss]`` time into hour, minute and second.

    Fractional seconds are ignored. Returns ``(0, 0, 0)`` when the field
    is shorter than six characters, a group is not a number, or a
    component is out of range.
    """
    if len(value) < 6:
        return (0, 0, 0)

    groups = _two_digit_groups(value)
    if groups is None:
        return (0, 0, 0)

    hour, minute, second = groups

    if hour > 23 or minute > 59 or second > 59:
        return (0, 0, 0)

    return (hour, minute, second)


def decode_date(value: str) -> Tuple[int, int, int]:
    """
    Split a ``DDMMYY`` date into day, month and two-digit year.

    The year is passed through without a century. Returns ``(0, 0, 0)``
    unless the field is exactly six characters with a day in 1-31 and a
    month in 1-12.
    """
    if len(value) != 6:
        return (0, 0, 0)

    groups = _two_digit_groups(value)
    if groups is None:
        return (0, 0, 0)

    day, month, year = groups

    if day == 0 or day > 31 or month == 0 or month > 12:
        return (0, 0, 0)

    return (day, month, year)
