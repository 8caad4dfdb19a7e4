"""
Price normalization: turn heterogeneous listing price encodings into a canonical amount.

Listings arrive with prices such as 45000000, "₦45,000,000", "2.5 million" or
"₦1.2 Billion". Every encoding is reduced to a finite, non-negative float.
Anything unparseable becomes 0 so one bad listing never blocks the rest of a
search.
"""

import logging
import math
import re
import unicodedata
from numbers import Real
from typing import Iterable, List, Optional

from config import DEFAULT_LATITUDE, DEFAULT_LONGITUDE
from models import NormalizedProperty, Position, PropertyRecord, RawPrice

logger = logging.getLogger(__name__)

DEFAULT_POSITION = Position(lat=DEFAULT_LATITUDE, lng=DEFAULT_LONGITUDE)

MAGNITUDES = {
    "million": 1_000_000,
    "billion": 1_000_000_000,
}

# Leading number (optionally signed, decimal, exponent) and an optional magnitude word
_PRICE_PATTERN = re.compile(
    r"^(?P<number>[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:e[+-]?\d+)?)"
    r"(?P<rest>.*)$"
)
_MAGNITUDE_PATTERN = re.compile(r"(million|billion)")


def _clean_price_string(raw: str) -> str:
    """Drop currency symbols, thousands separators and whitespace; lowercase."""
    kept = [
        ch
        for ch in raw
        if unicodedata.category(ch) != "Sc" and ch != "," and not ch.isspace()
    ]
    return "".join(kept).lower()


def _finite_non_negative(value: float) -> Optional[float]:
    if math.isnan(value) or math.isinf(value) or value < 0:
        return None
    return float(value)


def parse_price(raw_price: Optional[RawPrice]) -> Optional[float]:
    """
    Parse a raw listing price.

    Args:
        raw_price: Number or string, possibly with currency symbols, commas
            and a "million"/"billion" right after the number

    Returns:
        The amount, or None when there is no usable finite non-negative price
    """
    if raw_price is None or isinstance(raw_price, bool):
        return None

    if isinstance(raw_price, Real):
        try:
            return _finite_non_negative(float(raw_price))
        except (OverflowError, ValueError):
            return None

    if not isinstance(raw_price, str):
        return None

    match = _PRICE_PATTERN.match(_clean_price_string(raw_price))
    if not match:
        return None

    try:
        amount = float(match.group("number"))
    except ValueError:
        return None

    # "2.5 million naira": the word must follow the number, anything may come after
    magnitude = _MAGNITUDE_PATTERN.match(match.group("rest"))
    if magnitude:
        amount *= MAGNITUDES[magnitude.group(1)]

    return _finite_non_negative(amount)


def normalize_price(raw_price: Optional[RawPrice]) -> float:
    """Canonical finite non-negative price; 0.0 when the input cannot be parsed."""
    price = parse_price(raw_price)
    return 0.0 if price is None else price


def format_price(price: float) -> str:
    """Compact naira label for the sidebar, e.g. ₦23.8M."""
    if price >= 1_000_000_000:
        return f"₦{price / 1_000_000_000:.1f}B"
    if price >= 1_000_000:
        return f"₦{price / 1_000_000:.1f}M"
    if price >= 1_000:
        return f"₦{price / 1_000:.1f}K"
    return f"₦{price:.0f}"


def normalize_property(record: PropertyRecord) -> NormalizedProperty:
    """Attach canonical price and position to a record."""
    price = parse_price(record.raw_price)
    if price is None:
        if record.raw_price is not None:
            logger.warning(
                "Listing %s has unparseable price %r; using 0",
                record.id,
                record.raw_price,
            )
        price = 0.0
    position = record.coordinates or DEFAULT_POSITION
    return NormalizedProperty(
        **record.model_dump(exclude={"coordinates"}),
        coordinates=record.coordinates,
        price=price,
        position=position,
    )


def normalize_properties(records: Iterable[PropertyRecord]) -> List[NormalizedProperty]:
    """Normalize a collection, preserving order."""
    normalized = [normalize_property(record) for record in records]
    missing_coordinates = sum(1 for p in normalized if p.coordinates is None)
    if missing_coordinates:
        logger.info(
            "%d of %d listings have no coordinates; placed at default position",
            missing_coordinates,
            len(normalized),
        )
    return normalized
