from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Environment-driven settings for the clinic admin API.

    Read once at import time; modules depend on these attributes rather than
    reading os.environ themselves.
    """

    # Relational store. The in-memory SQLite default keeps local runs and tests
    # self-contained; production deployments point this at PostgreSQL.
    database_url: str = os.getenv("DATABASE_URL", "sqlite+pysqlite:///:memory:")
    sql_echo: bool = os.getenv("SQL_ECHO", "false").lower() == "true"

    # Bearer token verification for the identity provider.
    auth_jwt_secret: str = os.getenv("AUTH_JWT_SECRET", "dev-only-change-me-0123456789abcdef")
    auth_jwt_algorithm: str = os.getenv("AUTH_JWT_ALGORITHM", "HS256")
    auth_jwt_audience: str = os.getenv("AUTH_JWT_AUDIENCE", "authenticated")
    auth_token_ttl_seconds: int = int(os.getenv("AUTH_TOKEN_TTL_SECONDS", "3600"))

    # CORS headers attached to every response, including preflight and errors.
    cors_allow_origins: str = os.getenv("CORS_ALLOW_ORIGINS", "*")
    cors_allow_headers: str = os.getenv(
        "CORS_ALLOW_HEADERS", "authorization, x-client-info, apikey, content-type"
    )
    cors_allow_methods: str = os.getenv("CORS_ALLOW_METHODS", "GET, POST, PUT, DELETE, OPTIONS")

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Number of random card codes tried before gift-card creation gives up.
    gift_card_code_attempts: int = int(os.getenv("GIFT_CARD_CODE_ATTEMPTS", "10"))
    # Due date offset for forms auto-assigned after a patient state change.
    compliance_form_due_days: int = int(os.getenv("COMPLIANCE_FORM_DUE_DAYS", "7"))


settings = Settings()
