"""
Shared pytest fixtures.

Environment variables are set at module level, before any src/ imports,
so config.py reads the correct test values when settings are first loaded.
"""

import os

# Must be set before any shared.* imports.
# Use setdefault so externally-passed env vars (integration tests) take precedence.
os.environ.setdefault("ENV", "test")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_SESSION_TOKEN", "testing")
os.environ.setdefault("AWS_REGION", "us-west-2")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("S3_BUCKET", "venue-media-test")
os.environ.setdefault("S3_REGION", "us-west-2")
os.environ.setdefault("ADMIN_EMAILS", "admin@example.com, Ops@Example.com")
os.environ.setdefault("ADMIN_IMPORT_SECRET", "import-secret-for-tests")
os.environ.setdefault("JWT_SECRET", "test-secret-32-chars-exactly-ok!")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client.apps.googleusercontent.com")

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import boto3
import pytest
from fastapi.testclient import TestClient
from jose import jwt
from moto import mock_aws

ADMIN_EMAIL = "admin@example.com"
JWT_SECRET = "test-secret-32-chars-exactly-ok!"
IMPORT_SECRET = "import-secret-for-tests"
BUCKET = "venue-media-test"


# ── Auth helpers ────────────────────────────────────────────────────────────────

def make_token(
    email: str = ADMIN_EMAIL,
    secret: str = JWT_SECRET,
    expired: bool = False,
) -> str:
    now = datetime.now(timezone.utc)
    exp = now + (timedelta(seconds=-1) if expired else timedelta(hours=1))
    return jwt.encode(
        {"email": email, "name": "Test Admin", "picture": None, "iat": now, "exp": exp},
        secret,
        algorithm="HS256",
    )


def auth_headers(email: str = ADMIN_EMAIL) -> dict[str, str]:
    return {"Cookie": f"admin_session={make_token(email)}"}


def import_headers(secret: str = IMPORT_SECRET) -> dict[str, str]:
    return {"x-admin-import-secret": secret}


# ── Fixtures ────────────────────────────────────────────────────────────────────

@pytest.fixture()
def db_engine():
    """Fresh venues table on the shared in-memory SQLite engine."""
    from shared.db import get_engine
    from shared.tables import Base

    engine = get_engine()
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture()
def aws_env():
    """Start moto mock, create the media bucket, yield, teardown."""
    with mock_aws():
        s3 = boto3.client("s3", region_name="us-west-2")
        s3.create_bucket(
            Bucket=BUCKET,
            CreateBucketConfiguration={"LocationConstraint": "us-west-2"},
        )
        yield


@pytest.fixture()
def client(db_engine, aws_env):
    """FastAPI TestClient with a live SQLite store and mocked AWS. Import app
    inside the fixture so settings are read after the env above is in place."""
    from admin.handler import app  # noqa: PLC0415

    return TestClient(app, raise_server_exceptions=True)


@pytest.fixture()
def override_settings():
    """Swap individual settings for one test via FastAPI dependency overrides."""
    from admin.handler import app  # noqa: PLC0415
    from shared.config import get_settings

    def _apply(**changes):
        settings = replace(get_settings(), **changes)
        app.dependency_overrides[get_settings] = lambda: settings
        return settings

    yield _apply
    app.dependency_overrides.pop(get_settings, None)
