"""
Utility functions for filtering normalized properties by viewport bounds and price.
"""

from typing import Iterable, List, Optional, Sequence, Tuple

from models import NormalizedProperty, Position, ViewportBounds


def within_price_range(price: float, price_range: Tuple[float, float]) -> bool:
    """Inclusive price range test."""
    min_price, max_price = price_range
    return min_price <= price <= max_price


def within_bounds(position: Position, bounds: Optional[ViewportBounds]) -> bool:
    """Inclusive bounds test; no bounds means everything is visible."""
    if bounds is None:
        return True
    return bounds.contains(position)


def filter_properties(
    properties: Sequence[NormalizedProperty],
    bounds: Optional[ViewportBounds],
    price_range: Tuple[float, float],
) -> List[NormalizedProperty]:
    """
    Filter properties to those inside the viewport and the price range.

    Args:
        properties: Normalized properties, in display order
        bounds: Current viewport, or None before the map has reported one
        price_range: (min, max) price, both inclusive

    Returns:
        New list of matching properties in their original order
    """
    return [
        prop
        for prop in properties
        if within_bounds(prop.position, bounds)
        and within_price_range(prop.price, price_range)
    ]


def bounding_box(positions: Iterable[Position]) -> Optional[ViewportBounds]:
    """Smallest bounds containing every position, or None when there are none."""
    positions = list(positions)
    if not positions:
        return None

    lats = [p.lat for p in positions]
    lngs = [p.lng for p in positions]
    return ViewportBounds(
        south=min(lats),
        north=max(lats),
        west=min(lngs),
        east=max(lngs),
    )
