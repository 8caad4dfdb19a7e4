"""
Statistical summary of the properties currently visible on the map.
"""

from typing import List, Sequence

import numpy as np
import pandas as pd

from config import POPULAR_AREAS_LIMIT
from models import MapStatistics, NormalizedProperty, PriceRange
from api.services.price_normalizer import format_price


def calculate_popular_areas(
    properties: Sequence[NormalizedProperty], limit: int = POPULAR_AREAS_LIMIT
) -> List[str]:
    """
    Most frequent area keys, most common first.

    Ties keep the order in which the areas first appear in ``properties``.
    Properties without an area key are ignored here only.

    Args:
        properties: Filtered properties in display order
        limit: Number of areas to return

    Returns:
        Up to ``limit`` area keys
    """
    area_keys = [p.area_key for p in properties if p.area_key]
    if not area_keys or limit <= 0:
        return []

    df = pd.DataFrame({"area": area_keys, "position": range(len(area_keys))})
    grouped = df.groupby("area", sort=False).agg(
        count=("position", "size"), first_seen=("position", "min")
    )
    grouped = grouped.sort_values(["count", "first_seen"], ascending=[False, True])
    return [str(area) for area in grouped.index[:limit]]


def calculate_map_statistics(
    properties: Sequence[NormalizedProperty],
) -> MapStatistics:
    """
    Calculate summary statistics for a filtered collection.

    Args:
        properties: Filtered properties

    Returns:
        MapStatistics; the zero state when ``properties`` is empty
    """
    if not properties:
        return MapStatistics()

    prices = np.array([p.price for p in properties], dtype=float)
    min_price = float(np.min(prices))
    max_price = float(np.max(prices))
    # Rounding in the mean can drift just outside [min, max]
    average_price = float(np.clip(np.mean(prices), min_price, max_price))

    return MapStatistics(
        total_count=len(properties),
        average_price=average_price,
        price_range=PriceRange(min=min_price, max=max_price),
        popular_areas=calculate_popular_areas(properties),
        average_price_label=format_price(average_price),
        min_price_label=format_price(min_price),
        max_price_label=format_price(max_price),
    )
