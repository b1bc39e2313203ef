import os
from dataclasses import dataclass
from functools import lru_cache


def _csv_lower(raw: str) -> frozenset[str]:
    return frozenset(s.strip().lower() for s in raw.split(",") if s.strip())


def _truthy(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class Settings:
    """Process configuration, read once from the environment."""

    env: str = "production"
    aws_region: str = "us-east-1"
    log_level: str = "INFO"

    database_url: str = ""

    jwt_secret: str = ""
    admin_emails: frozenset[str] = frozenset()
    admin_import_secret: str = ""
    google_client_id: str = ""

    default_destination_slug: str = "ahangama"

    s3_bucket: str = ""
    s3_region: str = "us-east-1"
    s3_public_base_url: str = ""
    s3_access_key_id: str = ""
    s3_secret_access_key: str = ""
    s3_use_acl_public_read: bool = False

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        aws_region = os.getenv("AWS_REGION", "us-east-1")
        return cls(
            env=os.getenv("ENV", "production"),
            aws_region=aws_region,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            database_url=os.getenv("DATABASE_URL", ""),
            jwt_secret=os.getenv("JWT_SECRET", ""),
            admin_emails=_csv_lower(os.getenv("ADMIN_EMAILS", "")),
            admin_import_secret=os.getenv("ADMIN_IMPORT_SECRET", ""),
            google_client_id=os.getenv("GOOGLE_CLIENT_ID", ""),
            default_destination_slug=(
                os.getenv("DEFAULT_DESTINATION_SLUG", "ahangama").strip().lower()
            ),
            s3_bucket=os.getenv("S3_BUCKET", "").strip(),
            # Lambda reserves AWS_* in some hosts, so S3_* wins when both are set.
            s3_region=(os.getenv("S3_REGION", "").strip() or aws_region or "us-east-1"),
            s3_public_base_url=os.getenv("S3_PUBLIC_BASE_URL", "").strip(),
            s3_access_key_id=os.getenv("S3_ACCESS_KEY_ID", "").strip(),
            s3_secret_access_key=os.getenv("S3_SECRET_ACCESS_KEY", "").strip(),
            s3_use_acl_public_read=_truthy(os.getenv("S3_USE_ACL_PUBLIC_READ", "")),
        )


@lru_cache
def get_settings() -> Settings:
    """FastAPI dependency. Cached for the life of the process."""
    return Settings.from_env()


def reload_settings() -> Settings:
    get_settings.cache_clear()
    return get_settings()
