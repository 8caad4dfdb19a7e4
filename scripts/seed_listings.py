#!/usr/bin/env python3
"""
Load marketplace listings from a CSV or JSON file into the database.

Run from the project root:
  python scripts/seed_listings.py listings.csv
  python scripts/seed_listings.py listings.json --db-path /tmp/listings.db

Expected columns (all optional): title, price (or raw_price), latitude,
longitude, city, address, image, bedrooms, bathrooms. Prices are stored as
given ("₦45,000,000", "2.5 million", ...); the search engine normalizes them.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd
from dotenv import load_dotenv

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Ensure project root is on path when run as scripts/seed_listings.py
_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

load_dotenv(_project_root / ".env")

from database import Database, ListingRepository  # noqa: E402

LISTING_COLUMNS = [
    "title",
    "raw_price",
    "latitude",
    "longitude",
    "city",
    "address",
    "image",
    "bedrooms",
    "bathrooms",
]
INTEGER_COLUMNS = ("bedrooms", "bathrooms")
FLOAT_COLUMNS = ("latitude", "longitude")


def load_listings_frame(path: Path) -> pd.DataFrame:
    """Read a CSV or JSON file of listings into a DataFrame with known columns only."""
    if path.suffix.lower() == ".json":
        df = pd.read_json(path, dtype={"price": "object", "raw_price": "object"})
    else:
        df = pd.read_csv(path, dtype={"price": "object", "raw_price": "object"})

    df.columns = [str(c).strip().lower() for c in df.columns]
    if "raw_price" not in df.columns and "price" in df.columns:
        df = df.rename(columns={"price": "raw_price"})

    unknown = sorted(set(df.columns) - set(LISTING_COLUMNS))
    if unknown:
        logger.info("Ignoring columns: %s", ", ".join(unknown))
    return df[[c for c in LISTING_COLUMNS if c in df.columns]]


def frame_to_listings(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Convert rows to listing dicts; blank cells become None."""
    listings = []
    for row in df.to_dict(orient="records"):
        listing: Dict[str, Any] = {}
        for key, value in row.items():
            if value is None or (not isinstance(value, str) and pd.isna(value)):
                listing[key] = None
            elif key in INTEGER_COLUMNS:
                listing[key] = int(value)
            elif key in FLOAT_COLUMNS:
                listing[key] = float(value)
            else:
                listing[key] = str(value).strip() or None
        listings.append(listing)
    return listings


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Seed the listings table from a CSV or JSON file"
    )
    parser.add_argument("path", type=Path, help="CSV or JSON file with listings")
    parser.add_argument(
        "--db-path",
        default=None,
        help="SQLite database path (development mode; defaults to DB_PATH)",
    )
    args = parser.parse_args()

    if not args.path.exists():
        print(f"File not found: {args.path}", file=sys.stderr)
        return 1

    try:
        listings = frame_to_listings(load_listings_frame(args.path))
    except (ValueError, KeyError) as e:
        print(f"Could not read listings: {e}", file=sys.stderr)
        return 1

    db = Database(db_path=args.db_path)
    db.create_tables()
    session = db.get_session()
    try:
        created = ListingRepository(session).bulk_create(listings)
    finally:
        session.close()
        db.close()

    print(f"Seeded {len(created)} listings from {args.path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
