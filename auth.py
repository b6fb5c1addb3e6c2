# auth.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Request, Response
from passlib.context import CryptContext
from pydantic import BaseModel

from config import config
from errors import Unauthorized, ValidationError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

TOKEN_COOKIE = "token"
RESET_PURPOSE = "password_reset"


class CurrentUser(BaseModel):
    user_id: str
    role: str


# -------------------- Passwords --------------------
def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(password, hashed)


# -------------------- Tokens --------------------
def issue_token(user_id, role: str, days: int = config.LOGIN_TOKEN_DAYS) -> str:
    """Signed login token carrying the user id and role"""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "role": role,
        "iat": now,
        "exp": now + timedelta(days=days),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def verify_token(token: Optional[str]) -> CurrentUser:
    if not token:
        raise Unauthorized("User not authenticated")
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Session expired, please log in again")
    except jwt.InvalidTokenError:
        raise Unauthorized("Invalid token")

    if payload.get("purpose") or not payload.get("sub"):
        raise Unauthorized("Invalid token")
    return CurrentUser(user_id=payload["sub"], role=payload.get("role", "student"))


def issue_reset_token(user_id) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "purpose": RESET_PURPOSE,
        "iat": now,
        "exp": now + timedelta(minutes=config.RESET_TOKEN_MINUTES),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def verify_reset_token(token: str) -> str:
    """Return the user id a reset token was issued for"""
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        raise ValidationError("Invalid or expired reset link. Please request a new one.")
    if payload.get("purpose") != RESET_PURPOSE:
        raise ValidationError("Invalid or expired reset link. Please request a new one.")
    return payload["sub"]


# -------------------- Cookies --------------------
def set_token_cookie(response: Response, token: str, days: int) -> None:
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=days * 24 * 60 * 60,
        httponly=True,
        secure=config.is_production,
        samesite="strict",
        path="/",
    )


def clear_token_cookie(response: Response) -> None:
    response.set_cookie(
        TOKEN_COOKIE,
        "",
        max_age=0,
        httponly=True,
        secure=config.is_production,
        samesite="strict",
        path="/",
    )


def get_current_user(request: Request) -> CurrentUser:
    """Dependency: the caller's identity from the token cookie or a Bearer header"""
    token = request.cookies.get(TOKEN_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header.split(" ", 1)[1]
    try:
        return verify_token(token)
    except Unauthorized as e:
        logger.info(f"Rejected request to {request.url.path}: {e.message}")
        raise
