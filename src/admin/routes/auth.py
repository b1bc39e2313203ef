"""Operator session routes: /api/auth-google, /api/auth-me, /api/auth-logout.

The admin UI signs in with Google Identity Services and posts the resulting ID
token here. We verify it, check the allow-list, and hand back our own 7-day
session JWT in an HttpOnly cookie; Google tokens are never stored.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response
from google.auth.exceptions import GoogleAuthError
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from shared.auth import session_from_cookies
from shared.config import Settings, get_settings
from shared.errors import ConfigurationError, Forbidden, Unauthenticated, ValidationError
from shared.models import GoogleExchangeRequest
from shared.tokens import SESSION_COOKIE, SESSION_TTL, issue_session_token

router = APIRouter()
logger = logging.getLogger(__name__)


def verify_google_id_token(token: str, client_id: str) -> dict:
    """Return the verified Google claims. Raises ValueError/GoogleAuthError on failure."""
    return id_token.verify_oauth2_token(token, google_requests.Request(), audience=client_id)


def _set_session_cookie(response: Response, token: str, max_age: int, settings: Settings) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=max_age,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )


@router.post("/api/auth-google")
def exchange_google_token(
    req: GoogleExchangeRequest,
    response: Response,
    settings: Settings = Depends(get_settings),
):
    if not req.idToken:
        raise ValidationError("Missing idToken")
    if not settings.google_client_id:
        raise ConfigurationError("Missing env var: GOOGLE_CLIENT_ID")

    try:
        claims = verify_google_id_token(req.idToken, settings.google_client_id)
    except (ValueError, GoogleAuthError):
        raise Unauthenticated("Invalid Google token") from None

    email = str(claims.get("email") or "").lower()
    if not email or email not in settings.admin_emails:
        logger.warning("Google sign-in refused for %r", email)
        raise Forbidden("Not authorized")

    token = issue_session_token(
        email,
        settings,
        name=claims.get("name"),
        picture=claims.get("picture"),
    )
    _set_session_cookie(response, token, int(SESSION_TTL.total_seconds()), settings)
    logger.info("Issued admin session for %s", email)
    return {"ok": True}


@router.get("/api/auth-me")
def current_session(request: Request, settings: Settings = Depends(get_settings)):
    """Session check for the UI. Checks the cookie only, not the allow-list."""
    user = session_from_cookies(request.headers.get("cookie", ""), settings)
    return {"ok": True, "user": user}


@router.post("/api/auth-logout")
def logout(response: Response, settings: Settings = Depends(get_settings)):
    _set_session_cookie(response, "", 0, settings)
    return {"ok": True}
