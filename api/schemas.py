"""
Pydantic schemas for API requests and responses.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

from config import SIDEBAR_PREVIEW_LIMIT
from models import (
    FilterSettings,
    MapStatistics,
    NormalizedProperty,
    RawPrice,
    ViewportBounds,
)
from api.services.price_normalizer import format_price


# ============================================================================
# Listing Schemas
# ============================================================================


class ListingCreate(BaseModel):
    """Raw listing as submitted by the marketplace."""

    title: Optional[str] = None
    raw_price: Optional[RawPrice] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    city: Optional[str] = None
    address: Optional[str] = None
    image: Optional[str] = None
    bedrooms: Optional[int] = Field(default=None, ge=0)
    bathrooms: Optional[int] = Field(default=None, ge=0)


class ListingResponse(BaseModel):
    """Listing response schema."""

    id: int
    created_at: datetime
    title: Optional[str] = None
    raw_price: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    city: Optional[str] = None
    address: Optional[str] = None
    image: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None

    class Config:
        from_attributes = True


class ListingPage(BaseModel):
    """Paginated listings."""

    listings: List[ListingResponse]
    total: int
    page: int
    page_size: int


class BulkListingRequest(BaseModel):
    """Bulk listing upload."""

    listings: List[ListingCreate]


class BulkListingResponse(BaseModel):
    """Bulk listing upload result."""

    created: int
    ids: List[int]


# ============================================================================
# Map Schemas
# ============================================================================


class MapViewport(BaseModel):
    """Viewport reported by the map widget."""

    north: float = Field(ge=-90, le=90)
    south: float = Field(ge=-90, le=90)
    east: float
    west: float
    zoom: Optional[int] = None
    # Client-side counter; lower or equal values than the last accepted one are dropped
    sequence: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_latitude_order(self):
        if self.south > self.north:
            raise ValueError("south must be less than or equal to north")
        return self

    def to_bounds(self) -> ViewportBounds:
        return ViewportBounds(
            south=self.south, north=self.north, west=self.west, east=self.east
        )


class SessionCreateRequest(BaseModel):
    """Optional initial settings for a new search session."""

    settings: Optional[FilterSettings] = None


class MapPropertyItem(BaseModel):
    """A filtered property as shown on the map and in the sidebar."""

    id: int
    title: Optional[str] = None
    price: float
    price_label: str
    raw_price: Optional[RawPrice] = None
    latitude: float
    longitude: float
    has_coordinates: bool
    area: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    image: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None

    @classmethod
    def from_property(cls, prop: NormalizedProperty) -> "MapPropertyItem":
        return cls(
            id=prop.id,
            title=prop.title,
            price=prop.price,
            price_label=format_price(prop.price),
            raw_price=prop.raw_price,
            latitude=prop.position.lat,
            longitude=prop.position.lng,
            has_coordinates=prop.coordinates is not None,
            area=prop.area_key,
            city=prop.city,
            address=prop.address,
            image=prop.image,
            bedrooms=prop.bedrooms,
            bathrooms=prop.bathrooms,
        )


class SessionClosedResponse(BaseModel):
    """Final map commands of a deleted session."""

    session_id: str
    map_commands: List[Dict[str, Any]] = []


class SelectionResponse(BaseModel):
    """Selection and popup visibility."""

    selected_id: Optional[int] = None
    popup_visible: bool = False


class HeatmapCell(BaseModel):
    """One heatmap grid cell."""

    bounds: Dict[str, float]
    count: int
    avg_price: float
    intensity: float


class SearchStateResponse(BaseModel):
    """Full derived state of a search session plus pending map commands."""

    session_id: str
    version: int
    status: str
    stale: bool = False
    bounds: Optional[ViewportBounds] = None
    settings: FilterSettings
    statistics: MapStatistics
    total: int
    properties: List[MapPropertyItem] = []
    preview: List[MapPropertyItem] = []
    remaining_count: int = 0
    selection: SelectionResponse
    heatmap: List[HeatmapCell] = []
    map_commands: List[Dict[str, Any]] = []


# ============================================================================
# Statistics Schemas
# ============================================================================


class StatisticsRequest(BaseModel):
    """Stateless statistics query over all listings."""

    bounds: Optional[ViewportBounds] = None
    settings: FilterSettings = Field(default_factory=FilterSettings)


def build_preview(
    items: List[MapPropertyItem], limit: int = SIDEBAR_PREVIEW_LIMIT
) -> Tuple[List[MapPropertyItem], int]:
    """First ``limit`` items for the sidebar and how many were left out."""
    return items[:limit], max(len(items) - limit, 0)
