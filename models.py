"""
Pydantic domain models and SQLAlchemy ORM models for listings and map search state.
"""

from datetime import datetime
from typing import List, Optional, Tuple, Union

from pydantic import BaseModel, Field, model_validator
from sqlalchemy import Column, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base

from config import (
    DEFAULT_CLUSTERING,
    DEFAULT_HEATMAP,
    DEFAULT_MAX_PRICE,
    DEFAULT_MIN_PRICE,
    DEFAULT_RADIUS_KM,
)

Base = declarative_base()

RawPrice = Union[float, int, str]


# ============================================================================
# SQLAlchemy ORM Models
# ============================================================================


class ListingModel(Base):
    """SQLAlchemy model for a raw marketplace listing."""

    __tablename__ = "listings"
    __table_args__ = (
        Index("idx_listing_lat_lng", "latitude", "longitude"),
        Index("idx_listing_city", "city"),
    )

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    title = Column(String, nullable=True)
    # Stored exactly as entered: "₦45,000,000", "2.5 million", "75000000", ...
    raw_price = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    city = Column(String, nullable=True)
    address = Column(Text, nullable=True)
    image = Column(String, nullable=True)
    bedrooms = Column(Integer, nullable=True)
    bathrooms = Column(Integer, nullable=True)


# ============================================================================
# Pydantic Models
# ============================================================================


class Position(BaseModel):
    """A point on the map."""

    lat: float
    lng: float

    class Config:
        frozen = True


class PropertyRecord(BaseModel):
    """Listing as supplied by the data source; display fields are opaque payload."""

    id: int
    raw_price: Optional[RawPrice] = None
    coordinates: Optional[Position] = None
    city: Optional[str] = None
    address: Optional[str] = None
    title: Optional[str] = None
    image: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None

    class Config:
        from_attributes = True
        frozen = True

    @property
    def area_key(self) -> Optional[str]:
        return derive_area_key(self.city, self.address)

    @classmethod
    def from_listing(cls, listing: ListingModel) -> "PropertyRecord":
        """Build a record from a listing row; coordinates need both lat and lng."""
        coordinates = None
        if listing.latitude is not None and listing.longitude is not None:
            coordinates = Position(lat=listing.latitude, lng=listing.longitude)
        return cls(
            id=listing.id,
            raw_price=listing.raw_price,
            coordinates=coordinates,
            city=listing.city,
            address=listing.address,
            title=listing.title,
            image=listing.image,
            bedrooms=listing.bedrooms,
            bathrooms=listing.bathrooms,
        )


class NormalizedProperty(PropertyRecord):
    """Property with a canonical price and an always-placeable position."""

    price: float
    position: Position


class ViewportBounds(BaseModel):
    """Geographic rectangle currently visible on the map."""

    south: float
    north: float
    west: float
    east: float

    class Config:
        frozen = True

    @model_validator(mode="after")
    def check_latitude_order(self):
        if self.south > self.north:
            raise ValueError("south must be less than or equal to north")
        return self

    def contains(self, position: Position) -> bool:
        """Inclusive point-in-rectangle test."""
        return (
            self.south <= position.lat <= self.north
            and self.west <= position.lng <= self.east
        )


class FilterSettings(BaseModel):
    """Sidebar filter settings. Layer toggles and radius are passed through untouched."""

    price_range: Tuple[float, float] = (DEFAULT_MIN_PRICE, DEFAULT_MAX_PRICE)
    heatmap: bool = DEFAULT_HEATMAP
    clustering: bool = DEFAULT_CLUSTERING
    radius: float = DEFAULT_RADIUS_KM

    class Config:
        frozen = True

    @model_validator(mode="after")
    def check_price_range(self):
        low, high = self.price_range
        if low < 0 or high < 0:
            raise ValueError("price_range bounds must be non-negative")
        if low > high:
            raise ValueError("price_range min must be less than or equal to max")
        return self

    @property
    def min_price(self) -> float:
        return self.price_range[0]

    @property
    def max_price(self) -> float:
        return self.price_range[1]


class PriceRange(BaseModel):
    """Min/max price pair."""

    min: float = 0.0
    max: float = 0.0

    class Config:
        frozen = True


class MapStatistics(BaseModel):
    """Summary of a filtered collection. All-zero when the collection is empty."""

    total_count: int = 0
    average_price: float = 0.0
    price_range: PriceRange = Field(default_factory=PriceRange)
    popular_areas: List[str] = Field(default_factory=list)
    average_price_label: str = "₦0"
    min_price_label: str = "₦0"
    max_price_label: str = "₦0"

    class Config:
        frozen = True


class SelectionState(BaseModel):
    """Currently selected property; the popup is visible iff something is selected."""

    selected_id: Optional[int] = None

    class Config:
        frozen = True

    @property
    def popup_visible(self) -> bool:
        return self.selected_id is not None


# ============================================================================
# Utility Functions
# ============================================================================


def derive_area_key(city: Optional[str], address: Optional[str]) -> Optional[str]:
    """Grouping label for popular areas: city, else first address segment."""
    if city and city.strip():
        return city.strip()
    if address:
        first_segment = address.split(",")[0].strip()
        if first_segment:
            return first_segment
    return None
