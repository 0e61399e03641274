# app/core/config.py
from typing import *

from pydantic_settings import BaseSettings



class Settings(BaseSettings):
    APP_NAME: str = "KayanLive Dashboard"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Security
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    SESSION_COOKIE_NAME: str = "kayanlive_session"
    SESSION_COOKIE_SECURE: bool = False

    # Locales
    SUPPORTED_LOCALES: List[str] = ["en", "ar", "fr", "ru", "zh"]
    DEFAULT_LOCALE: str = "en"

    # Where each role lands after a denied navigation. "{locale}" is filled
    # with the locale of the request (or DEFAULT_LOCALE for /admin paths).
    ROLE_LANDING_PAGES: Dict[str, str] = {
        "ADMIN": "/admin/dashboard",
        "MODERATOR": "/admin/dashboard",
        "CONTENT_CREATOR": "/admin/dashboard",
        "CLIENT": "/{locale}/dashboard",
    }
    FALLBACK_LANDING_PAGE: str = "/{locale}/dashboard"

    # Request gate allow-list (prefix match)
    PUBLIC_PATHS: List[str] = [
        "/api/v1/auth/",
        "/api/v1/leads/public",
        "/static/",
        "/health",
        "/docs",
        "/openapi.json",
    ]

    CORS_ORIGINS: List[str] = []

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./kayanlive.db"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
