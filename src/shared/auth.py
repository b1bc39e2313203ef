"""
Admin authorization gate.

Two ways in, checked in this order:

1. Machine clients (bulk import) send a shared secret:

       x-admin-import-secret: <ADMIN_IMPORT_SECRET>

   An exact match returns a synthetic identity; a mismatch is a hard 403 and
   never falls through to cookie auth.

2. Operators send the ``admin_session`` cookie issued by /api/auth-google.
   The token must verify under JWT_SECRET and carry an "email" claim present
   in ADMIN_EMAILS (comma-separated, case-insensitive).
"""

import logging
from typing import Mapping
from urllib.parse import unquote

from fastapi import Depends, Request
from starlette.requests import cookie_parser

from shared.config import Settings, get_settings
from shared.errors import Forbidden, InvalidToken, Unauthenticated
from shared.tokens import SESSION_COOKIE, verify_session_token

logger = logging.getLogger(__name__)

IMPORT_SECRET_HEADER = "x-admin-import-secret"
SYSTEM_IDENTITY_EMAIL = "import@system"


def parse_cookies(cookie_header: str) -> dict[str, str]:
    """Split on ``;`` then on the first ``=``, trim, drop empties, URL-decode values."""
    return {k: unquote(v) for k, v in cookie_parser(cookie_header or "").items() if k}


def session_from_cookies(cookie_header: str, settings: Settings) -> dict:
    token = parse_cookies(cookie_header).get(SESSION_COOKIE)
    if not token:
        raise Unauthenticated()
    try:
        return verify_session_token(token, settings)
    except InvalidToken:
        raise Unauthenticated() from None


def authorize(headers: Mapping[str, str], settings: Settings) -> dict:
    """Return the caller's identity or raise Unauthenticated / Forbidden.

    ``headers`` must do case-insensitive lookups (Starlette ``Headers`` does).
    """
    import_secret = headers.get(IMPORT_SECRET_HEADER)
    if import_secret and settings.admin_import_secret:
        if import_secret == settings.admin_import_secret:
            return {"email": SYSTEM_IDENTITY_EMAIL}
        logger.warning("Rejected request with a wrong import secret")
        raise Forbidden()

    payload = session_from_cookies(headers.get("cookie", ""), settings)

    email = str(payload.get("email") or "").lower()
    if not email or email not in settings.admin_emails:
        logger.warning("Rejected session for non-allow-listed email %r", email)
        raise Forbidden()

    return payload


def require_admin(request: Request, settings: Settings = Depends(get_settings)) -> dict:
    """Dependency injected into every protected route."""
    return authorize(request.headers, settings)
