"""Relational schema for the venue store. Mirrors migrations/001_create_venues.sql."""

import enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# text[] / jsonb on PostgreSQL, plain JSON elsewhere.
StringSet = JSON().with_variant(ARRAY(Text), "postgresql")
JSONList = JSON().with_variant(JSONB(), "postgresql")


class PowerBackup(str, enum.Enum):
    GENERATOR = "generator"
    INVERTER = "inverter"
    NONE = "none"
    UNKNOWN = "unknown"


class Venue(Base):
    __tablename__ = "venues"
    __table_args__ = (
        UniqueConstraint("destination_slug", "slug", name="venues_destination_slug_slug_key"),
    )

    id = Column(Text, primary_key=True)
    destination_slug = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    slug = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="active")
    live = Column(Boolean, nullable=False, default=True)

    # Curation
    editorial_tags = Column(StringSet, nullable=False, default=list)
    is_pass_venue = Column(Boolean, nullable=False, default=False)
    staff_pick = Column(Boolean, nullable=False, default=False)
    priority_score = Column(Float, nullable=False, default=0)
    laptop_friendly = Column(Boolean, nullable=False, default=False)
    power_backup = Column(Text, nullable=False, default=PowerBackup.UNKNOWN.value)

    # Taxonomy / content
    categories = Column(StringSet, nullable=False, default=list)
    emoji = Column(StringSet, nullable=False, default=list)
    stars = Column(Float, nullable=True)
    reviews = Column(Integer, nullable=True)
    discount = Column(Float, nullable=True)  # fraction, 0.1 == 10%
    excerpt = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    best_for = Column(StringSet, nullable=False, default=list)
    tags = Column(StringSet, nullable=False, default=list)
    card_perk = Column(Text, nullable=True)
    offers = Column(JSONList, nullable=False, default=list)
    how_to_claim = Column(Text, nullable=True)
    restrictions = Column(Text, nullable=True)

    # Location / media
    area = Column(Text, nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    logo = Column(Text, nullable=True)
    image = Column(Text, nullable=True)
    og_image = Column(Text, nullable=True)
    map_url = Column(Text, nullable=True)
    instagram_url = Column(Text, nullable=True)
    whatsapp = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, index=True)


venues = Venue.__table__
