import json
from typing import Any, Optional, Sequence

from fastapi import Request
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as ModelValidationError

from shared.errors import ValidationError


# ── Venues ────────────────────────────────────────────────────────────────────

class VenueFields(BaseModel):
    """Every writable venue field. Names are camelCase to match the admin UI."""

    # NaN / Infinity would be stored and then break JSON rendering of the row.
    model_config = ConfigDict(allow_inf_nan=False)

    destinationSlug: Optional[str] = None
    name: Optional[str] = None
    slug: Optional[str] = None
    status: Optional[str] = None
    live: Optional[Any] = None          # non-booleans: default on create, 400 on update

    # Curation
    editorialTags: Optional[list[Any]] = None
    isPassVenue: Optional[Any] = None
    staffPick: Optional[Any] = None
    priorityScore: Optional[float] = None
    laptopFriendly: Optional[Any] = None
    powerBackup: Optional[str] = None   # "generator" | "inverter" | "none" | "unknown"

    # Taxonomy / content
    categories: Optional[list[Any]] = None
    emoji: Optional[list[Any]] = None
    stars: Optional[float] = None
    reviews: Optional[int] = None
    discount: Optional[float] = None    # fraction (0.1); legacy percent (10) accepted
    excerpt: Optional[str] = None
    description: Optional[str] = None
    bestFor: Optional[list[Any]] = None
    tags: Optional[list[Any]] = None
    cardPerk: Optional[str] = None
    offers: Optional[Any] = None        # anything but a list is stored as []
    howToClaim: Optional[str] = None
    restrictions: Optional[str] = None

    # Location / media
    area: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    logo: Optional[str] = None
    image: Optional[str] = None
    ogImage: Optional[str] = None
    mapUrl: Optional[str] = None
    instagramUrl: Optional[str] = None
    whatsapp: Optional[str] = None


class VenueCreate(VenueFields):
    id: Optional[str] = None   # defaults to slug


class VenueUpdate(VenueFields):
    """PATCH body. Only keys present in the JSON (model_fields_set) are written."""

    id: Optional[str] = None


class VenueDelete(BaseModel):
    id: Optional[str] = None


# ── Upload ─────────────────────────────────────────────────────────────────────

class UploadGrantRequest(BaseModel):
    id: Optional[str] = None     # venue id
    kind: Optional[str] = None   # "logo" | "image" | "ogImage"


class UploadGrant(BaseModel):
    url: str                # presigned POST target
    fields: dict[str, str]  # form fields to send alongside the file
    key: str                # S3 object key  e.g. "venues/sunset-cafe/logo.jpg"
    publicUrl: str          # store on the venue via /api/venues-update
    maxBytes: int
    contentType: str


# ── Auth ───────────────────────────────────────────────────────────────────────

class GoogleExchangeRequest(BaseModel):
    idToken: Optional[str] = None


# ── Request bodies ─────────────────────────────────────────────────────────────

def describe_errors(errors: Sequence[dict]) -> str:
    """``"<field>: <message>"`` for the first pydantic error."""
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query"))
    message = first.get("msg", "Invalid request")
    return f"{field}: {message}" if field else message


def _reject_constant(token: str):
    raise ValueError(f"Invalid JSON token {token}")


def parse_body(raw: bytes, model: type[BaseModel]) -> BaseModel:
    """Decode a JSON request body into ``model``. An empty body reads as ``{}``."""
    try:
        data = json.loads(raw.strip() or b"{}", parse_constant=_reject_constant)
    except ValueError:
        raise ValidationError("Invalid JSON body") from None
    try:
        return model.model_validate(data)
    except ModelValidationError as exc:
        raise ValidationError(describe_errors(exc.errors())) from None


def json_body(model: type[BaseModel], tolerant: bool = False):
    """
    Dependency that parses the body as ``model``.

    Declare it after ``require_admin`` so the gate answers before the body is
    read. With ``tolerant`` a body that does not parse becomes ``None``.
    """

    async def dependency(request: Request):
        raw = await request.body()
        try:
            return parse_body(raw, model)
        except ValidationError:
            if tolerant:
                return None
            raise

    return dependency
