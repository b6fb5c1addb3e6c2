# auth_routes.py
import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse

import google_oauth
from auth import issue_token, set_token_cookie
from config import config
from deps import get_user_service
from users import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

STATE_COOKIE = "oauth_state"


def _failure() -> RedirectResponse:
    response = RedirectResponse(f"{config.CLIENT_URL}/auth/failure", status_code=302)
    response.delete_cookie(STATE_COOKIE, path="/auth")
    return response


@router.get("/google")
def google_login():
    """Send the browser to Google's consent screen"""
    state = secrets.token_urlsafe(24)
    response = RedirectResponse(google_oauth.authorization_url(state), status_code=302)
    response.set_cookie(
        STATE_COOKIE,
        state,
        max_age=10 * 60,
        httponly=True,
        secure=config.is_production,
        samesite="lax",
        path="/auth",
    )
    return response


@router.get("/google/callback")
def google_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    users: UserService = Depends(get_user_service),
):
    expected = request.cookies.get(STATE_COOKIE)
    if error or not code or not state or not expected or not secrets.compare_digest(state, expected):
        logger.info(f"Google callback rejected (error={error}, state ok={bool(expected) and state == expected})")
        return _failure()

    try:
        profile = google_oauth.exchange_code(code)
        user = users.find_or_create_federated_user(profile)
        token = issue_token(user["_id"], user.get("role", "student"), days=config.FEDERATED_TOKEN_DAYS)
    except Exception:
        logger.exception("Google auth callback error")
        return _failure()

    response = RedirectResponse(f"{config.CLIENT_URL}/auth/success", status_code=302)
    set_token_cookie(response, token, config.FEDERATED_TOKEN_DAYS)
    response.delete_cookie(STATE_COOKIE, path="/auth")
    return response


@router.get("/failure")
def google_failure():
    return JSONResponse(status_code=401, content={"success": False, "message": "Google authentication failed"})
