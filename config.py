"""
Application configuration loaded from environment variables.
"""

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent
load_dotenv(BASE_DIR / ".env")


class Config:
    """Runtime settings"""

    # --- Database ---
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    DATABASE_NAME: str = os.getenv("DATABASE_NAME", "lms")

    # --- Auth ---
    JWT_SECRET: str = os.getenv("JWT_SECRET", "supersecretjwt")
    JWT_ALGORITHM: str = "HS256"
    LOGIN_TOKEN_DAYS: int = 7
    FEDERATED_TOKEN_DAYS: int = 30
    RESET_TOKEN_MINUTES: int = 60

    # --- Environment ---
    APP_ENV: str = os.getenv("APP_ENV", "development")
    CLIENT_URL: str = os.getenv("CLIENT_URL", "http://localhost:5173")
    CORS_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", os.getenv("CLIENT_URL", "http://localhost:5173")).split(",")
        if origin.strip()
    ]
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    PORT: int = int(os.getenv("PORT", "8000"))

    # --- Google OAuth ---
    GOOGLE_CLIENT_ID: str = os.getenv("GOOGLE_CLIENT_ID", "")
    GOOGLE_CLIENT_SECRET: str = os.getenv("GOOGLE_CLIENT_SECRET", "")
    GOOGLE_CALLBACK_URL: str = os.getenv("GOOGLE_CALLBACK_URL", "http://localhost:8000/auth/google/callback")

    # --- Media host (S3 compatible) ---
    AWS_ACCESS_KEY: str = os.getenv("AWS_ACCESS_KEY", "")
    AWS_SECRET_KEY: str = os.getenv("AWS_SECRET_KEY", "")
    REGION_NAME: str = os.getenv("REGION_NAME", "us-east-1")
    BUCKET_NAME: str = os.getenv("BUCKET_NAME", "")
    MEDIA_ENDPOINT_URL: str = os.getenv("MEDIA_ENDPOINT_URL", "")
    MEDIA_PUBLIC_BASE_URL: str = os.getenv("MEDIA_PUBLIC_BASE_URL", "")

    # --- Mail ---
    EMAIL_USER: str = os.getenv("EMAIL_USER", "")
    EMAIL_PASS: str = os.getenv("EMAIL_PASS", "")
    SMTP_HOST: str = os.getenv("SMTP_HOST", "smtp.gmail.com")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", "465"))

    # --- Uploads ---
    UPLOAD_FOLDER: str = os.getenv("UPLOAD_FOLDER", "uploads")
    MAX_UPLOAD_MB: int = int(os.getenv("MAX_UPLOAD_MB", "100"))

    @property
    def is_production(self) -> bool:
        return self.APP_ENV.lower() == "production"

    @property
    def max_upload_bytes(self) -> int:
        return self.MAX_UPLOAD_MB * 1024 * 1024

    @classmethod
    def validate(cls) -> List[str]:
        """Return the names of required settings that are missing"""
        errors = []

        if not cls.DATABASE_URL:
            errors.append("DATABASE_URL is not set")
        if cls.JWT_SECRET == "supersecretjwt":
            errors.append("JWT_SECRET is using the development default")
        if not cls.BUCKET_NAME:
            errors.append("BUCKET_NAME is not set")
        if not cls.GOOGLE_CLIENT_ID or not cls.GOOGLE_CLIENT_SECRET:
            errors.append("GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET are not set")

        return errors


config = Config()
