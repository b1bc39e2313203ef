"""
Bulk venue import over the machine-auth path.

    PYTHONPATH=src ADMIN_IMPORT_SECRET=... python -m admin.importer places.json \\
        --base-url https://admin.example.com --limit 10

Reads a JSON array of place records, normalizes them to the venues-create body
and posts them one by one with the ``x-admin-import-secret`` header. Records
missing required fields, or repeating a ``destinationSlug:id`` already seen in
the file, are skipped. The ``inserted`` flag in each response decides whether
the venue counts as inserted or updated.
"""

import argparse
import json
import logging
import math
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

import httpx

from shared.auth import IMPORT_SECRET_HEADER

logger = logging.getLogger(__name__)

CREATE_PATH = "/api/venues-create"


@dataclass
class ImportSummary:
    total: int = 0
    inserted: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    skipped_missing: list[dict] = field(default_factory=list)
    skipped_duplicate: list[str] = field(default_factory=list)
    failed: list[dict] = field(default_factory=list)   # {id, status, error}


def _number_or_none(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    return n if math.isfinite(n) else None


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v not in (None, "")]


def _lower(value: Any) -> str:
    return str(value or "").strip().lower()


def normalize_place(place: dict) -> dict:
    """Map a raw place record onto the venues-create body."""
    if isinstance(place.get("categories"), list):
        categories = place["categories"]
    elif place.get("category"):
        categories = [place["category"]]
    else:
        categories = []

    offers = place.get("offers")
    if not isinstance(offers, list):
        offers = place.get("offer") if isinstance(place.get("offer"), list) else []

    venue = {
        "id": _lower(place.get("id") or place.get("slug")),
        "destinationSlug": _lower(place.get("destinationSlug")),
        "name": str(place.get("name") or "").strip(),
        "slug": _lower(place.get("slug")),
        "status": str(place.get("status") or "active").lower(),
        "categories": _string_list(categories),
        "emoji": _string_list(place.get("emoji")),
        "stars": _number_or_none(place.get("stars")),
        "reviews": place.get("reviews"),
        "discount": _number_or_none(place.get("discount")),
        "bestFor": _string_list(place.get("bestFor")),
        "tags": _string_list(place.get("tags")),
        "offers": offers,
        "lat": _number_or_none(place.get("lat")),
        "lng": _number_or_none(place.get("lng")),
    }
    for key in (
        "excerpt",
        "description",
        "cardPerk",
        "howToClaim",
        "restrictions",
        "area",
        "logo",
        "image",
        "ogImage",
        "mapUrl",
        "instagramUrl",
        "whatsapp",
    ):
        venue[key] = place.get(key)
    return venue


def import_venues(
    places: Iterable[dict],
    client: httpx.Client,
    secret: str,
    limit: int = 0,
) -> ImportSummary:
    """Post each place to venues-create. ``client`` must have its base_url set."""
    if not secret:
        raise ValueError("Missing ADMIN_IMPORT_SECRET")

    places = list(places)
    if limit > 0:
        places = places[:limit]

    summary = ImportSummary(total=len(places))
    seen: set[str] = set()

    for place in places:
        venue = normalize_place(place)
        vid = venue["id"] or venue["slug"] or "(unknown)"

        if not (venue["id"] and venue["destinationSlug"] and venue["name"] and venue["slug"]):
            summary.skipped_missing.append(
                {
                    "id": vid,
                    "destinationSlug": venue["destinationSlug"],
                    "slug": venue["slug"],
                    "name": venue["name"],
                }
            )
            logger.info("Skipped (missing fields) %s", vid)
            continue

        key = f"{venue['destinationSlug']}:{venue['id']}"
        if key in seen:
            summary.skipped_duplicate.append(venue["id"])
            logger.info("Skipped (duplicate in file) %s", venue["id"])
            continue
        seen.add(key)

        try:
            r = client.post(CREATE_PATH, json=venue, headers={IMPORT_SECRET_HEADER: secret})
        except httpx.HTTPError as exc:
            summary.failed.append({"id": venue["id"], "status": "ERR", "error": str(exc)})
            logger.error("Error importing %s: %s", venue["id"], exc)
            continue

        try:
            data = r.json()
        except ValueError:
            data = {}

        if r.status_code != 200:
            summary.failed.append(
                {"id": venue["id"], "status": r.status_code, "error": data.get("error") or r.text}
            )
            logger.error("Failed %s: %s", venue["id"], r.status_code)
        elif data.get("inserted") is True:
            summary.inserted.append(venue["id"])
            logger.info("Inserted %s", venue["id"])
        else:
            summary.updated.append(venue["id"])
            logger.info("Updated %s", venue["id"])

    return summary


def log_summary(summary: ImportSummary) -> None:
    logger.info(
        "Import summary: total=%d inserted=%d updated=%d skipped_missing=%d "
        "skipped_duplicate=%d failed=%d",
        summary.total,
        len(summary.inserted),
        len(summary.updated),
        len(summary.skipped_missing),
        len(summary.skipped_duplicate),
        len(summary.failed),
    )
    if summary.failed:
        logger.warning("Failed: %s", summary.failed)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Bulk-import venues through venues-create.")
    parser.add_argument("file", type=Path, help="JSON array of place records")
    parser.add_argument("--base-url", default=os.getenv("BASE_URL", "http://localhost:8001"))
    parser.add_argument("--limit", type=int, default=int(os.getenv("IMPORT_LIMIT", "0")))
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    places = json.loads(args.file.read_text(encoding="utf-8"))
    secret = os.getenv("ADMIN_IMPORT_SECRET", "").strip()

    with httpx.Client(base_url=args.base_url, timeout=30.0) as client:
        summary = import_venues(places, client, secret, limit=args.limit)

    log_summary(summary)
    return 1 if summary.failed else 0


if __name__ == "__main__":
    sys.exit(main())
