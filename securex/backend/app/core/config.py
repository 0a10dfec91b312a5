# backend/app/core/config.py
from typing import Annotated, List, Optional
from pathlib import Path
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic import field_validator

# Locate the .env file relative to the project root
BASE_DIR = Path(__file__).resolve().parent.parent.parent.parent  # Goes to securex root
ENV_FILE = BASE_DIR / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=str(ENV_FILE), extra="ignore")

    # Application
    PROJECT_NAME: str = "SecureX"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Hosted backend (auth, storage, roles)
    SUPABASE_URL: str = "http://localhost:54321"
    SUPABASE_ANON_KEY: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    SUPABASE_TIMEOUT_SECONDS: float = 15.0

    # AI analysis endpoint (OpenAI-compatible chat completions)
    AI_GATEWAY_URL: str = "https://ai.gateway.lovable.dev/v1"
    AI_GATEWAY_API_KEY: Optional[str] = None
    AI_MODEL: str = "google/gemini-2.5-flash"
    AI_MAX_TOKENS: int = 4000
    AI_TEMPERATURE: float = 0.3
    AI_TIMEOUT_SECONDS: float = 120.0

    # Stripe
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    STRIPE_API_BASE: str = "https://api.stripe.com/v1"
    STRIPE_PRICE_MONTHLY: str = "price_1SW0BQ1Ve27RXeTv816at3Mf"
    STRIPE_PRICE_ANNUAL: str = "price_1SW0BQ1Ve27RXeTvVaWITrHh"
    STRIPE_WEBHOOK_TOLERANCE_SECONDS: int = 300

    # Operational chat
    DISCORD_WEBHOOK_URL: Optional[str] = None
    OPS_TIMEZONE: str = "America/Sao_Paulo"

    # External code registry (promo and plan codes)
    CODE_REGISTRY_URL: str = "http://localhost:3000/v1"
    CODE_REGISTRY_TOKEN: Optional[str] = None

    # CORS
    BACKEND_CORS_ORIGINS: Annotated[List[str], NoDecode] = []

    # Checkout return URL allow-list
    CHECKOUT_ALLOWED_ORIGINS: Annotated[List[str], NoDecode] = [
        "http://localhost:5173",
        "http://localhost:8080",
    ]
    CHECKOUT_TRUSTED_DOMAIN_SUFFIX: str = ".lovable.app"

    # Built SPA served for the page routes
    FRONTEND_DIST_DIR: Optional[str] = None

    @field_validator("BACKEND_CORS_ORIGINS", "CHECKOUT_ALLOWED_ORIGINS", mode="before")
    @classmethod
    def assemble_origins(cls, v):
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        return v


settings = Settings()
