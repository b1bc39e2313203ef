"""Admin routes for venues: create/upsert, partial update, delete, list.

Every route runs the admin gate before touching the body or the database.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shared.auth import require_admin
from shared.config import Settings, get_settings
from shared.db import get_db
from shared.models import VenueCreate, VenueDelete, VenueUpdate, json_body
from shared.venues import create_or_upsert, delete_venue, list_venues, partial_update

router = APIRouter()


@router.post("/api/venues-create")
def create_venue(
    _: dict = Depends(require_admin),
    venue: VenueCreate = Depends(json_body(VenueCreate)),
    db: Session = Depends(get_db),
):
    dto, inserted = create_or_upsert(db, venue.model_dump())
    return {"ok": True, "inserted": inserted, "venue": dto}


@router.api_route("/api/venues-update", methods=["PATCH", "PUT"])
def update_venue(
    _: dict = Depends(require_admin),
    update: VenueUpdate = Depends(json_body(VenueUpdate)),
    db: Session = Depends(get_db),
):
    dto = partial_update(db, update.model_dump(), set(update.model_fields_set))
    return {"ok": True, "venue": dto}


@router.delete("/api/venues-delete")
def remove_venue(
    id: Optional[str] = Query(None),
    _: dict = Depends(require_admin),
    body: Optional[VenueDelete] = Depends(json_body(VenueDelete, tolerant=True)),
    db: Session = Depends(get_db),
):
    # id may come from the query string or the JSON body; an unparseable body is ignored
    venue_id = (id or "").strip() or (body.id if body else None)
    return {"ok": True, "deletedId": delete_venue(db, venue_id)}


@router.get("/api/venues-list")
def search_venues(
    destinationSlug: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    _: dict = Depends(require_admin),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
):
    destination = (destinationSlug or "").strip() or settings.default_destination_slug
    venues = list_venues(db, destination, query=q or "", category=category or "")
    return {"ok": True, "venues": venues}
