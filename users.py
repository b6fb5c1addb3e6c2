# users.py
import logging
from pathlib import Path
from typing import Optional

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from auth import hash_password, issue_reset_token, verify_password, verify_reset_token
from config import config
from database import create_document, serialize, to_object_id, utcnow
from errors import NotFound, ValidationError
from mailer import Mailer
from schemas import FederatedProfile, RegisterRequest, User
from storage import MediaStore, best_effort_delete

logger = logging.getLogger(__name__)

USER_EXISTS = "User already exist with this email."
BAD_CREDENTIALS = "Incorrect email or password"


def public_user(doc: dict) -> dict:
    """The user fields safe to return to clients"""
    return serialize({
        "_id": doc["_id"],
        "name": doc.get("name"),
        "email": doc.get("email"),
        "role": doc.get("role", "student"),
        "photo_url": doc.get("photo_url", ""),
        "enrolled_courses": doc.get("enrolled_courses", []),
    })


class UserService:
    """Accounts, login, profile and password reset"""

    def __init__(self, db: Database, media: MediaStore, mailer: Optional[Mailer] = None,
                 production: Optional[bool] = None):
        self.users = db["user"]
        self.db = db
        self.media = media
        self.mailer = mailer
        self.production = config.is_production if production is None else production

    def register(self, payload: RegisterRequest) -> dict:
        if self.users.find_one({"email": payload.email}):
            raise ValidationError(USER_EXISTS)

        user = User(name=payload.name, email=payload.email, password_hash=hash_password(payload.password))
        try:
            doc = create_document(self.db, "user", user.model_dump(exclude_none=True))
        except DuplicateKeyError:
            raise ValidationError(USER_EXISTS)
        logger.info(f"Registered user {doc['_id']}")
        return doc

    def authenticate(self, email: str, password: str) -> dict:
        user = self.users.find_one({"email": email})
        if not user or not verify_password(password, user.get("password_hash")):
            logger.info(f"Failed login for {email}")
            raise ValidationError(BAD_CREDENTIALS)
        return user

    def get(self, user_id) -> dict:
        user = self.users.find_one({"_id": to_object_id(user_id, "User")})
        if not user:
            raise NotFound("User not found")
        return user

    def update_profile(self, user_id, name: Optional[str] = None, photo_path: Optional[Path] = None) -> dict:
        user = self.get(user_id)
        updates = {"updated_at": utcnow()}
        if name:
            updates["name"] = name

        if photo_path is not None:
            asset = self.media.upload(photo_path, "image")
            best_effort_delete(self.media, user.get("photo_key"), "image")
            updates["photo_url"] = asset.url
            updates["photo_key"] = asset.delete_key

        return self.users.find_one_and_update(
            {"_id": user["_id"]},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )

    def request_password_reset(self, email: str) -> dict:
        """
        Issue a one hour reset link.

        Outside production, or when no mailer is configured, the link is
        returned in the response instead of being e-mailed.
        """
        user = self.users.find_one({"email": email})
        if not user:
            raise NotFound("If an account exists with this email, you will receive a password reset link.")

        token = issue_reset_token(user["_id"])
        reset_link = f"{config.CLIENT_URL}/reset-password/{token}"

        if not self.production or self.mailer is None:
            return {
                "success": True,
                "message": "Development mode: Use the link below to reset your password",
                "dev_link": reset_link,
            }

        self.mailer.send_password_reset(email, user.get("name", ""), reset_link)
        return {
            "success": True,
            "message": "Password reset instructions have been sent to your email",
        }

    def reset_password(self, token: str, new_password: str) -> None:
        user_id = verify_reset_token(token)
        user = self.get(user_id)
        self.users.update_one(
            {"_id": user["_id"]},
            {"$set": {"password_hash": hash_password(new_password), "updated_at": utcnow()}},
        )
        logger.info(f"Password reset for user {user['_id']}")

    def find_or_create_federated_user(self, profile: FederatedProfile) -> dict:
        """Map a Google identity to a local account, linking or creating as needed"""
        user = self.users.find_one({"google_id": profile.google_id})
        if user:
            return user

        user = self.users.find_one({"email": profile.email})
        if user:
            if not user.get("google_id"):
                user = self.users.find_one_and_update(
                    {"_id": user["_id"]},
                    {"$set": {"google_id": profile.google_id, "photo_url": profile.photo_url, "updated_at": utcnow()}},
                    return_document=ReturnDocument.AFTER,
                )
                logger.info(f"Linked Google account to user {user['_id']}")
            return user

        new_user = User(
            name=profile.name,
            email=profile.email,
            google_id=profile.google_id,
            photo_url=profile.photo_url,
        )
        doc = create_document(self.db, "user", new_user.model_dump(exclude_none=True))
        logger.info(f"Created user {doc['_id']} from Google login")
        return doc
