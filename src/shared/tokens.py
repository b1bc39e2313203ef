"""Operator session tokens: HS256 JWTs carried in the ``admin_session`` cookie."""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from shared.config import Settings
from shared.errors import ConfigurationError, InvalidToken

ALGORITHM = "HS256"
SESSION_TTL = timedelta(days=7)
SESSION_COOKIE = "admin_session"


def _secret(settings: Settings) -> str:
    if not settings.jwt_secret:
        raise ConfigurationError("Missing env var: JWT_SECRET")
    return settings.jwt_secret


def issue_session_token(
    email: str,
    settings: Settings,
    name: str | None = None,
    picture: str | None = None,
) -> str:
    secret = _secret(settings)
    now = datetime.now(timezone.utc)
    claims = {
        "email": email.strip().lower(),
        "name": name,
        "picture": picture,
        "iat": int(now.timestamp()),
        "exp": int((now + SESSION_TTL).timestamp()),
    }
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def verify_session_token(token: str, settings: Settings) -> dict:
    """Return the decoded claims or raise InvalidToken (bad signature, malformed, expired)."""
    secret = _secret(settings)
    try:
        return jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError as exc:
        # ExpiredSignatureError is a JWTError subclass.
        raise InvalidToken(str(exc)) from exc
