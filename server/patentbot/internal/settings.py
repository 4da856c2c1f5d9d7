"""
Runtime configuration

All settings come from environment variables (optionally a .env file).
Settings are rebuilt on every call so that a changed environment is picked up
without restarting, which also keeps tests free to patch os.environ.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

load_dotenv(override=True)  # Force override of environment variables


DEFAULT_AI_GATEWAY_URL = "https://ai.gateway.lovable.dev/v1"
DEFAULT_MANAGEMENT_API_URL = "https://api.supabase.com"


@dataclass(frozen=True)
class Settings:
    database_url: str
    auth_url: str
    auth_anon_key: str
    ai_gateway_url: str
    ai_gateway_api_key: Optional[str]
    ai_model: str
    ai_claims_model: str
    ai_image_model: str
    stripe_secret_key: Optional[str]
    stripe_webhook_secret: Optional[str]
    app_url: str
    public_api_url: str
    management_api_url: str
    management_oauth_client_id: Optional[str]
    management_oauth_client_secret: Optional[str]
    free_searches_limit: int = 3
    admin_emails: tuple[str, ...] = field(default_factory=tuple)


def _split_emails(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(e.strip().lower() for e in raw.split(",") if e.strip())


def get_settings() -> Settings:
    """Build settings from the current environment."""
    return Settings(
        database_url=os.getenv("DATABASE_URL") or "sqlite:///./patentbot.db",
        auth_url=(os.getenv("AUTH_URL") or "").rstrip("/"),
        auth_anon_key=os.getenv("AUTH_ANON_KEY") or "",
        ai_gateway_url=os.getenv("AI_GATEWAY_URL") or DEFAULT_AI_GATEWAY_URL,
        ai_gateway_api_key=os.getenv("AI_GATEWAY_API_KEY"),
        ai_model=os.getenv("AI_MODEL") or "google/gemini-2.5-flash",
        ai_claims_model=os.getenv("AI_CLAIMS_MODEL") or "google/gemini-2.5-pro",
        ai_image_model=os.getenv("AI_IMAGE_MODEL") or "google/gemini-2.5-flash-image-preview",
        stripe_secret_key=os.getenv("STRIPE_SECRET_KEY"),
        stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET"),
        app_url=(os.getenv("APP_URL") or "https://patentbot-ai.com").rstrip("/"),
        public_api_url=(os.getenv("PUBLIC_API_URL") or "http://localhost:8000").rstrip("/"),
        management_api_url=(os.getenv("MANAGEMENT_API_URL") or DEFAULT_MANAGEMENT_API_URL).rstrip("/"),
        management_oauth_client_id=os.getenv("MANAGEMENT_OAUTH_CLIENT_ID"),
        management_oauth_client_secret=os.getenv("MANAGEMENT_OAUTH_CLIENT_SECRET"),
        free_searches_limit=int(os.getenv("FREE_SEARCHES_LIMIT") or 3),
        admin_emails=_split_emails(os.getenv("ADMIN_EMAILS")),
    )
