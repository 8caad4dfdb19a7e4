"""Tests for map statistics aggregation."""

import pytest

from models import MapStatistics, NormalizedProperty, Position
from api.services.statistics import calculate_map_statistics, calculate_popular_areas


def _prop(pid, price, city=None, address=None):
    return NormalizedProperty(
        id=pid,
        raw_price=price,
        price=price,
        position=Position(lat=6.5, lng=3.4),
        city=city,
        address=address,
    )


def test_empty_collection_is_zero_state():
    """No properties: every numeric field is 0 and there are no popular areas."""
    stats = calculate_map_statistics([])

    assert stats == MapStatistics()
    assert stats.total_count == 0
    assert stats.average_price == 0.0
    assert stats.price_range.min == 0.0
    assert stats.price_range.max == 0.0
    assert stats.popular_areas == []


def test_basic_statistics():
    """Count, mean and range over the filtered set."""
    props = [_prop(1, 45000000, "Lagos"), _prop(2, 2500000, "Lagos")]
    stats = calculate_map_statistics(props)

    assert stats.total_count == 2
    assert stats.average_price == pytest.approx(23750000)
    assert stats.price_range.min == 2500000
    assert stats.price_range.max == 45000000
    assert stats.popular_areas == ["Lagos"]
    assert stats.average_price_label == "₦23.8M"


def test_average_stays_within_range_for_repeated_values():
    """Floating point rounding never pushes the mean outside [min, max]."""
    props = [_prop(i, 0.1) for i in range(3)]
    stats = calculate_map_statistics(props)

    assert stats.price_range.min <= stats.average_price <= stats.price_range.max


def test_popular_areas_by_frequency_with_first_seen_tie_break():
    """Most frequent first; equal counts keep first-appearance order; top three only."""
    props = [
        _prop(1, 1, "Ikeja"),
        _prop(2, 1, "Lekki"),
        _prop(3, 1, "Lekki"),
        _prop(4, 1, "Yaba"),
        _prop(5, 1, "Ikoyi"),
        _prop(6, 1, "Ikeja"),
        _prop(7, 1, "Ikoyi"),
    ]

    assert calculate_popular_areas(props) == ["Ikeja", "Lekki", "Ikoyi"]


def test_area_key_falls_back_to_first_address_segment():
    """Without a city, the first comma-separated address segment is the area."""
    props = [
        _prop(1, 1, address="Victoria Island, Lagos"),
        _prop(2, 1, address="Victoria Island, Plot 4"),
        _prop(3, 1, city="Abuja"),
    ]

    assert calculate_popular_areas(props) == ["Victoria Island", "Abuja"]


def test_properties_without_area_count_everywhere_else():
    """Missing area keys only drop out of popular areas."""
    props = [_prop(1, 100), _prop(2, 300, city="  "), _prop(3, 200, city="Lagos")]
    stats = calculate_map_statistics(props)

    assert stats.total_count == 3
    assert stats.average_price == pytest.approx(200)
    assert stats.popular_areas == ["Lagos"]
