"""
Venue record store: create-or-upsert, partial update, delete and list/search.

Create and update are deliberately asymmetric:

  create  INSERT ... ON CONFLICT (id) DO UPDATE overwrites every mutable column
          with the supplied values (omitted fields fall back to their defaults).
  update  writes only the keys present in the request body; everything else
          keeps its stored value.

Uniqueness (id, and slug within a destination) is enforced by the database;
an IntegrityError from either write path is reported as a 409.
"""

import logging
import math
from datetime import datetime
from typing import Any, Mapping

from sqlalchemy import Text, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shared.db import now_utc, string_set_elements, upsert_insert
from shared.errors import Conflict, NotFound, ValidationError
from shared.tables import PowerBackup, venues

logger = logging.getLogger(__name__)

MAX_LIST_ROWS = 500

POWER_BACKUP_VALUES = tuple(p.value for p in PowerBackup)
_POWER_BACKUP_ERROR = "powerBackup must be one of [{}]".format(
    ", ".join(f'"{v}"' for v in POWER_BACKUP_VALUES)
)

# DTO field -> column. Order is the DTO order.
FIELD_COLUMNS: dict[str, str] = {
    "id": "id",
    "destinationSlug": "destination_slug",
    "name": "name",
    "slug": "slug",
    "status": "status",
    "live": "live",
    "editorialTags": "editorial_tags",
    "isPassVenue": "is_pass_venue",
    "staffPick": "staff_pick",
    "priorityScore": "priority_score",
    "laptopFriendly": "laptop_friendly",
    "powerBackup": "power_backup",
    "categories": "categories",
    "emoji": "emoji",
    "stars": "stars",
    "reviews": "reviews",
    "discount": "discount",
    "excerpt": "excerpt",
    "description": "description",
    "bestFor": "best_for",
    "tags": "tags",
    "cardPerk": "card_perk",
    "offers": "offers",
    "howToClaim": "how_to_claim",
    "restrictions": "restrictions",
    "area": "area",
    "lat": "lat",
    "lng": "lng",
    "logo": "logo",
    "image": "image",
    "ogImage": "og_image",
    "mapUrl": "map_url",
    "instagramUrl": "instagram_url",
    "whatsapp": "whatsapp",
    "updatedAt": "updated_at",
    "createdAt": "created_at",
}

STRING_SET_FIELDS = ("editorialTags", "categories", "emoji", "bestFor", "tags")
LIST_FIELDS = STRING_SET_FIELDS + ("offers",)

BOOLEAN_DEFAULTS = {
    "live": True,
    "isPassVenue": False,
    "staffPick": False,
    "laptopFriendly": False,
}

# Written as given (explicit null allowed).
NULLABLE_FIELDS = (
    "stars",
    "reviews",
    "excerpt",
    "description",
    "cardPerk",
    "howToClaim",
    "restrictions",
    "area",
    "lat",
    "lng",
    "logo",
    "image",
    "ogImage",
    "mapUrl",
    "instagramUrl",
    "whatsapp",
)

# Text columns that are NOT NULL and lower-cased on write.
_LOWERED = ("destinationSlug", "slug", "status")


# ── Field normalization ────────────────────────────────────────────────────────

def normalize_string_set(value: Any) -> list[str]:
    """Trim, drop empties, dedupe keeping first-occurrence order. Non-lists become []."""
    if not isinstance(value, (list, tuple)):
        return []
    cleaned = (str(v).strip() for v in value if v is not None)
    return list(dict.fromkeys(s for s in cleaned if s))


def normalize_offers(value: Any) -> list:
    return list(value) if isinstance(value, (list, tuple)) else []


def parse_power_backup(value: Any) -> str:
    v = str(value).strip().lower()
    if v not in POWER_BACKUP_VALUES:
        raise ValidationError(_POWER_BACKUP_ERROR)
    return v


def parse_priority_score(value: Any) -> float:
    try:
        n = float(value)
    except (TypeError, ValueError):
        raise ValidationError("priorityScore must be a number") from None
    if not math.isfinite(n):
        raise ValidationError("priorityScore must be a number")
    if n < 0:
        raise ValidationError("priorityScore must be >= 0")
    return n


def normalize_discount(value: Any) -> float | None:
    """
    Stored discounts are fractions in [0, 1].

    0..1 is taken as a fraction already; 1 < v <= 100 is a legacy percentage
    and divided by 100. Anything else is rejected.
    """
    if value is None:
        return None
    try:
        n = float(value)
    except (TypeError, ValueError):
        raise ValidationError("discount must be a number") from None
    if not math.isfinite(n) or n < 0 or n > 100:
        raise ValidationError("discount must be a fraction between 0 and 1")
    return n / 100 if n > 1 else n


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


# ── DTO ────────────────────────────────────────────────────────────────────────

def _iso(value: Any) -> Any:
    return value.isoformat() if isinstance(value, datetime) else value


def to_venue_dto(row: Mapping[str, Any]) -> dict:
    """camelCase projection of a venues row; list fields default to []."""
    dto = {}
    for field, column in FIELD_COLUMNS.items():
        value = row.get(column)
        if field in LIST_FIELDS and value is None:
            value = []
        dto[field] = _iso(value)
    return dto


# ── Create / upsert ────────────────────────────────────────────────────────────

def build_create_values(data: Mapping[str, Any]) -> dict:
    """Validate a create body and return the full column dict (without timestamps)."""
    destination_slug = _text(data.get("destinationSlug")).lower()
    name = _text(data.get("name"))
    slug = _text(data.get("slug")).lower()
    venue_id = (_text(data.get("id")) or slug).lower()

    if not destination_slug:
        raise ValidationError("destinationSlug is required")
    if not name:
        raise ValidationError("name is required")
    if not slug:
        raise ValidationError("slug is required")

    values: dict[str, Any] = {
        "id": venue_id,
        "destination_slug": destination_slug,
        "name": name,
        "slug": slug,
        "status": (_text(data.get("status")) or "active").lower(),
    }

    for field, default in BOOLEAN_DEFAULTS.items():
        flag = data.get(field)
        values[FIELD_COLUMNS[field]] = flag if isinstance(flag, bool) else default

    score = data.get("priorityScore")
    values["priority_score"] = 0.0 if score in (None, "") else parse_priority_score(score)

    backup = data.get("powerBackup")
    values["power_backup"] = (
        PowerBackup.UNKNOWN.value if backup in (None, "") else parse_power_backup(backup)
    )

    for field in STRING_SET_FIELDS:
        values[FIELD_COLUMNS[field]] = normalize_string_set(data.get(field))
    values["offers"] = normalize_offers(data.get("offers"))
    values["discount"] = normalize_discount(data.get("discount"))

    for field in NULLABLE_FIELDS:
        values[FIELD_COLUMNS[field]] = data.get(field)

    return values


def create_or_upsert(db: Session, data: Mapping[str, Any]) -> tuple[dict, bool]:
    """Insert, or overwrite every mutable column when the id exists. Returns (dto, inserted)."""
    values = build_create_values(data)
    ts = now_utc()
    values["created_at"] = ts
    values["updated_at"] = ts

    stmt = upsert_insert(db, venues).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=[venues.c.id],
        set_={
            column: stmt.excluded[column]
            for column in values
            if column not in ("id", "created_at")
        },
    ).returning(*venues.c)

    try:
        row = db.execute(stmt).mappings().one()
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Duplicate venue id or slug") from None

    # Both timestamps come from ``ts`` on insert; a conflict keeps the old created_at.
    inserted = row["created_at"] == row["updated_at"]
    logger.info("Upserted venue %s (inserted=%s)", row["id"], inserted)
    return to_venue_dto(row), inserted


# ── Partial update ─────────────────────────────────────────────────────────────

def build_update_values(data: Mapping[str, Any], present: set[str]) -> dict:
    """Column dict for the keys present in the request body only."""
    values: dict[str, Any] = {}

    def given(field: str) -> bool:
        return field in present

    for field in ("destinationSlug", "name", "slug", "status"):
        if not given(field):
            continue
        raw = data.get(field)
        if raw is None:
            raise ValidationError(f"{field} cannot be null")
        text = _text(raw)
        if not text:
            raise ValidationError(f"{field} cannot be blank")
        values[FIELD_COLUMNS[field]] = text.lower() if field in _LOWERED else text

    for field in BOOLEAN_DEFAULTS:
        if given(field):
            flag = data.get(field)
            if flag is None:
                raise ValidationError(f"{field} cannot be null")
            if not isinstance(flag, bool):
                raise ValidationError(f"{field} must be a boolean")
            values[FIELD_COLUMNS[field]] = flag

    if given("powerBackup"):
        if data.get("powerBackup") is None:
            raise ValidationError("powerBackup cannot be null")
        values["power_backup"] = parse_power_backup(data["powerBackup"])

    if given("priorityScore"):
        if data.get("priorityScore") is None:
            raise ValidationError("priorityScore cannot be null")
        values["priority_score"] = parse_priority_score(data["priorityScore"])

    for field in STRING_SET_FIELDS:
        if given(field):
            values[FIELD_COLUMNS[field]] = normalize_string_set(data.get(field))

    if given("offers"):
        values["offers"] = normalize_offers(data.get("offers"))

    if given("discount"):
        values["discount"] = normalize_discount(data.get("discount"))

    for field in NULLABLE_FIELDS:
        if given(field):
            values[FIELD_COLUMNS[field]] = data.get(field)

    return values


def partial_update(db: Session, data: Mapping[str, Any], present: set[str]) -> dict:
    """Apply a PATCH. ``present`` is the set of keys the caller actually sent."""
    venue_id = _text(data.get("id")).lower()
    if not venue_id:
        raise ValidationError("id is required")

    values = build_update_values(data, present)
    values["updated_at"] = now_utc()

    stmt = (
        update(venues)
        .where(venues.c.id == venue_id)
        .values(**values)
        .returning(*venues.c)
    )

    try:
        row = db.execute(stmt).mappings().first()
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Duplicate venue id or slug") from None

    if row is None:
        raise NotFound("Venue not found")

    logger.info("Updated venue %s fields=%s", venue_id, sorted(present - {"id"}))
    return to_venue_dto(row)


# ── Delete ─────────────────────────────────────────────────────────────────────

def delete_venue(db: Session, venue_id: Any) -> str:
    venue_id = _text(venue_id).lower()
    if not venue_id:
        raise ValidationError("id is required")

    deleted = db.execute(
        delete(venues).where(venues.c.id == venue_id).returning(venues.c.id)
    ).scalar_one_or_none()
    db.commit()

    if deleted is None:
        raise NotFound("Venue not found")

    logger.info("Deleted venue %s", deleted)
    return deleted


# ── List / search ──────────────────────────────────────────────────────────────

def list_venues(
    db: Session,
    destination_slug: str,
    query: str = "",
    category: str = "",
    limit: int = MAX_LIST_ROWS,
) -> list[dict]:
    """Venues in one destination, newest update first, at most ``limit`` rows."""
    query = _text(query).lower()
    category = _text(category).lower()

    stmt = select(venues).where(venues.c.destination_slug == _text(destination_slug).lower())

    if query:
        tag = string_set_elements(db, venues.c.tags)
        stmt = stmt.where(
            or_(
                func.lower(venues.c.name, type_=Text).contains(query, autoescape=True),
                func.lower(func.coalesce(venues.c.excerpt, ""), type_=Text).contains(
                    query, autoescape=True
                ),
                func.lower(func.coalesce(venues.c.card_perk, ""), type_=Text).contains(
                    query, autoescape=True
                ),
                select(tag.c.value)
                .where(func.lower(tag.c.value, type_=Text).contains(query, autoescape=True))
                .exists(),
            )
        )

    if category:
        cat = string_set_elements(db, venues.c.categories)
        stmt = stmt.where(
            select(cat.c.value).where(func.lower(cat.c.value, type_=Text) == category).exists()
        )

    stmt = stmt.order_by(venues.c.updated_at.desc()).limit(limit)
    return [to_venue_dto(row) for row in db.execute(stmt).mappings().all()]
