"""Tests for listing, statistics and health endpoints."""

import pytest

LISTINGS = [
    {"title": "Flat in Ikoyi", "raw_price": "₦45,000,000", "latitude": 6.43, "longitude": 3.42, "city": "Lagos"},
    {"title": "Duplex in Lekki", "raw_price": "2.5 million", "latitude": 6.47, "longitude": 3.59, "city": "Lagos"},
    {"title": "Manhattan loft", "raw_price": 999999999999, "latitude": 40.7, "longitude": -74.0, "city": "NYC"},
    {"title": "Plot without coordinates", "raw_price": "Price on request", "address": "Wuse II, Abuja"},
]


@pytest.fixture
def seeded(client):
    response = client.post("/api/properties/bulk", json={"listings": LISTINGS})
    assert response.status_code == 201
    return response.json()


def test_bulk_create_keeps_raw_prices(client, seeded):
    """Prices are stored in their original encoding."""
    assert seeded["created"] == 4

    listing = client.get(f"/api/properties/{seeded['ids'][0]}").json()
    assert listing["raw_price"] == "₦45,000,000"
    assert listing["city"] == "Lagos"


def test_list_listings_paginates(client, seeded):
    response = client.get("/api/properties/", params={"page": 2, "page_size": 3})
    assert response.status_code == 200
    data = response.json()

    assert data["total"] == 4
    assert data["page"] == 2
    assert [item["id"] for item in data["listings"]] == seeded["ids"][3:]


def test_get_missing_listing_returns_404(client):
    response = client.get("/api/properties/12345")
    assert response.status_code == 404
    assert response.json()["detail"] == "Listing not found"


def test_bulk_create_rejects_invalid_latitude(client):
    response = client.post(
        "/api/properties/bulk", json={"listings": [{"latitude": 123.0, "longitude": 3.4}]}
    )
    assert response.status_code == 422


def test_statistics_summary_for_viewport(client, seeded):
    """Stateless summary over the Lagos viewport and a price floor."""
    response = client.post(
        "/api/statistics/summary",
        json={
            "bounds": {"south": 6.3, "north": 6.7, "west": 3.0, "east": 3.8},
            "settings": {"price_range": [1, 1000000000]},
        },
    )
    assert response.status_code == 200
    stats = response.json()

    assert stats["total_count"] == 2
    assert stats["average_price"] == pytest.approx(23750000)
    assert stats["price_range"] == {"min": 2500000, "max": 45000000}
    assert stats["popular_areas"] == ["Lagos"]


def test_listing_without_coordinates_lands_at_default_position(client, seeded):
    """The Abuja plot has no coordinates, so it is placed in Lagos at price 0."""
    stats = client.post(
        "/api/statistics/summary",
        json={"bounds": {"south": 6.3, "north": 6.7, "west": 3.0, "east": 3.8}},
    ).json()

    assert stats["total_count"] == 3
    assert stats["price_range"]["min"] == 0
    assert stats["popular_areas"] == ["Lagos", "Wuse II"]


def test_statistics_summary_without_bounds(client, seeded):
    """No bounds: price range only. Unparseable and missing coordinates still count."""
    stats = client.post("/api/statistics/summary", json={}).json()

    # NYC is above the default maximum price; the Abuja plot normalizes to 0
    assert stats["total_count"] == 3
    assert stats["price_range"]["min"] == 0
    assert stats["popular_areas"] == ["Lagos", "Wuse II"]


def test_statistics_summary_empty_database(client):
    stats = client.post("/api/statistics/summary", json={}).json()

    assert stats["total_count"] == 0
    assert stats["average_price"] == 0
    assert stats["popular_areas"] == []


def test_statistics_summary_rejects_inverted_price_range(client):
    response = client.post(
        "/api/statistics/summary", json={"settings": {"price_range": [5, 1]}}
    )
    assert response.status_code == 422


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()

    assert data["status"] == "healthy"
    assert data["database"]["type"] == "sqlite"
    assert "total_sessions" in data["sessions"]


def test_root(client):
    assert client.get("/").json()["message"] == "Property Map Search API"
