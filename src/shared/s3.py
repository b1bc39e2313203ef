"""S3 client helpers: presigned POST grants for venue image slots."""

import boto3

from shared.config import Settings
from shared.errors import ConfigurationError, ValidationError

UPLOAD_CONTENT_TYPE = "image/jpeg"
UPLOAD_EXPIRY_SECONDS = 60

# slot -> (object filename, max bytes)
UPLOAD_SLOTS: dict[str, tuple[str, int]] = {
    "logo": ("logo.jpg", 50 * 1024),
    "image": ("image.jpg", 100 * 1024),
    "ogImage": ("og.jpg", 100 * 1024),
}


def _s3(settings: Settings):
    kwargs: dict = {"region_name": settings.s3_region}
    if settings.s3_access_key_id and settings.s3_secret_access_key:
        kwargs["aws_access_key_id"] = settings.s3_access_key_id
        kwargs["aws_secret_access_key"] = settings.s3_secret_access_key
    return boto3.client("s3", **kwargs)


def build_s3_key(venue_id: str, kind: str) -> str:
    """
    Construct the canonical S3 key for a venue image slot.

    Patterns (re-uploading a slot overwrites the same object):
      logo:    venues/<id>/logo.jpg
      image:   venues/<id>/image.jpg
      ogImage: venues/<id>/og.jpg
    """
    if kind not in UPLOAD_SLOTS:
        raise ValidationError("Invalid kind")
    return f"venues/{venue_id}/{UPLOAD_SLOTS[kind][0]}"


def public_url_for_key(key: str, settings: Settings) -> str:
    if settings.s3_public_base_url:
        return f"{settings.s3_public_base_url.rstrip('/')}/{key}"
    if settings.s3_region == "us-east-1":
        base = f"https://{settings.s3_bucket}.s3.amazonaws.com"
    else:
        base = f"https://{settings.s3_bucket}.s3.{settings.s3_region}.amazonaws.com"
    return f"{base}/{key}"


def grant_upload(venue_id: str | None, kind: str | None, settings: Settings) -> dict:
    """
    Issue a presigned POST for one image slot of a venue.

    S3 enforces the content type and the size cap; the grant does not touch
    the venue row. Callers PATCH the returned publicUrl onto the venue.
    """
    if not settings.s3_bucket:
        raise ConfigurationError("Missing S3_BUCKET env var")

    venue_id = (venue_id or "").strip().lower()
    if not venue_id:
        raise ValidationError("id is required")

    kind = (kind or "").strip()
    key = build_s3_key(venue_id, kind)
    max_bytes = UPLOAD_SLOTS[kind][1]

    fields = {"Content-Type": UPLOAD_CONTENT_TYPE}
    conditions: list = [
        ["content-length-range", 1, max_bytes],
        {"Content-Type": UPLOAD_CONTENT_TYPE},
    ]
    if settings.s3_use_acl_public_read:
        fields["acl"] = "public-read"
        conditions.append({"acl": "public-read"})

    presigned = _s3(settings).generate_presigned_post(
        Bucket=settings.s3_bucket,
        Key=key,
        Fields=fields,
        Conditions=conditions,
        ExpiresIn=UPLOAD_EXPIRY_SECONDS,
    )

    return {
        "url": presigned["url"],
        "fields": presigned["fields"],
        "key": key,
        "publicUrl": public_url_for_key(key, settings),
        "maxBytes": max_bytes,
        "contentType": UPLOAD_CONTENT_TYPE,
    }
