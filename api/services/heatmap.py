"""
Heatmap computation: price-weighted grid aggregation with NumPy.
"""

from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from config import HEATMAP_GRID_CELLS
from models import NormalizedProperty, ViewportBounds
from api.services.property_filtering import bounding_box

# Minimum span in degrees so a single point still gets a grid
MIN_SPAN = 0.01


def _edges(low: float, high: float, grid_cells: int) -> np.ndarray:
    if high - low < MIN_SPAN:
        center = (low + high) / 2
        low, high = center - MIN_SPAN / 2, center + MIN_SPAN / 2
    return np.linspace(low, high, grid_cells + 1)


def compute_heatmap_cells(
    properties: Sequence[NormalizedProperty],
    bounds: Optional[ViewportBounds] = None,
    grid_cells: int = HEATMAP_GRID_CELLS,
) -> List[Dict[str, Any]]:
    """
    Aggregate properties into a grid and return one entry per non-empty cell.

    Intensity is the cell's summed price relative to the heaviest cell, so
    expensive areas glow brighter than merely dense ones.

    Args:
        properties: Filtered properties
        bounds: Grid extent; defaults to the properties' bounding box
        grid_cells: Cells per side

    Returns:
        List of {"bounds", "count", "avg_price", "intensity"} dicts
    """
    if not properties or grid_cells <= 0:
        return []

    extent = bounds or bounding_box(p.position for p in properties)
    lats = np.array([p.position.lat for p in properties], dtype=float)
    lngs = np.array([p.position.lng for p in properties], dtype=float)
    prices = np.array([p.price for p in properties], dtype=float)

    lat_edges = _edges(extent.south, extent.north, grid_cells)
    lng_edges = _edges(extent.west, extent.east, grid_cells)

    count_2d, _, _ = np.histogram2d(lats, lngs, bins=[lat_edges, lng_edges])
    price_sum_2d, _, _ = np.histogram2d(
        lats, lngs, bins=[lat_edges, lng_edges], weights=prices
    )

    max_price_sum = float(np.max(price_sum_2d))
    cells: List[Dict[str, Any]] = []

    for i, j in zip(*np.nonzero(count_2d)):
        count = int(count_2d[i, j])
        price_sum = float(price_sum_2d[i, j])
        intensity = price_sum / max_price_sum if max_price_sum > 0 else 0.0
        cells.append(
            {
                "bounds": {
                    "south": float(lat_edges[i]),
                    "north": float(lat_edges[i + 1]),
                    "west": float(lng_edges[j]),
                    "east": float(lng_edges[j + 1]),
                },
                "count": count,
                "avg_price": price_sum / count,
                "intensity": min(intensity, 1.0),
            }
        )

    return cells
