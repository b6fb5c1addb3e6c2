# google_oauth.py
"""
Google OAuth 2.0 authorization-code flow.

Only the pieces this service needs: the consent URL, the code exchange
and the userinfo lookup that yields a FederatedProfile.
"""
import logging
from urllib.parse import urlencode

import requests

from config import config
from errors import Unauthorized
from schemas import FederatedProfile

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
SCOPES = ["openid", "profile", "email"]
TIMEOUT = 10


def authorization_url(state: str) -> str:
    params = {
        "client_id": config.GOOGLE_CLIENT_ID,
        "redirect_uri": config.GOOGLE_CALLBACK_URL,
        "response_type": "code",
        "scope": " ".join(SCOPES),
        "state": state,
        "prompt": "select_account",
    }
    return f"{AUTHORIZE_URL}?{urlencode(params)}"


def exchange_code(code: str, session: requests.Session = None) -> FederatedProfile:
    """Trade an authorization code for the caller's verified Google profile"""
    http = session or requests
    try:
        token_resp = http.post(
            TOKEN_URL,
            data={
                "code": code,
                "client_id": config.GOOGLE_CLIENT_ID,
                "client_secret": config.GOOGLE_CLIENT_SECRET,
                "redirect_uri": config.GOOGLE_CALLBACK_URL,
                "grant_type": "authorization_code",
            },
            timeout=TIMEOUT,
        )
        token_resp.raise_for_status()
        access_token = token_resp.json()["access_token"]

        info_resp = http.get(
            USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=TIMEOUT,
        )
        info_resp.raise_for_status()
        info = info_resp.json()
    except (requests.RequestException, KeyError, ValueError) as e:
        logger.warning(f"Google code exchange failed: {e}")
        raise Unauthorized("Google authentication failed")

    if not info.get("sub") or not info.get("email") or not info.get("email_verified", False):
        raise Unauthorized("Google account email is not verified")

    return FederatedProfile(
        google_id=info["sub"],
        email=info["email"],
        name=info.get("name") or info["email"].split("@")[0],
        photo_url=info.get("picture", ""),
    )
