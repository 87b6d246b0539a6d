# contact_relay/core/settings.py
import logging
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

log = logging.getLogger("uvicorn.error")

CREDENTIAL_FIELDS = ("ZOHO_USER", "ZOHO_PASS")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    api_title: str = Field(default="Contact Relay API", alias="API_TITLE")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=5000, alias="PORT")

    # Relay account; also used as the sender and recipient of every message
    zoho_user: str = Field(alias="ZOHO_USER", min_length=1)
    zoho_pass: str = Field(alias="ZOHO_PASS", min_length=1, repr=False)

    smtp_host: str = Field(default="smtp.zoho.com", alias="SMTP_HOST")
    # 465 with implicit TLS; set SMTP_SECURE=false for 587 + STARTTLS
    smtp_port: int = Field(default=465, alias="SMTP_PORT")
    smtp_secure: bool = Field(default=True, alias="SMTP_SECURE")
    smtp_timeout: float = Field(default=10.0, gt=0, alias="SMTP_TIMEOUT")

    # "smtp" (real relay) or "fake" (local dev, nothing leaves the process)
    mail_provider: str = Field(default="smtp", alias="MAIL_PROVIDER")
    verify_on_startup: bool = Field(default=True, alias="VERIFY_ON_STARTUP")

    cors_origin: str = Field(default="http://localhost:5173", alias="CORS_ORIGIN")

    rate_limit_window_ms: int = Field(default=60000, gt=0, alias="RATE_LIMIT_WINDOW_MS")
    rate_limit_max: int = Field(default=10, ge=0, alias="RATE_LIMIT_MAX")
    # When set, rate-limit counters are shared through redis instead of process memory
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")
    # Socket timeout for the rate-limit redis, so a hung server cannot stall requests
    redis_timeout: float = Field(default=0.5, gt=0, alias="REDIS_TIMEOUT")
    trust_proxy: bool = Field(default=False, alias="TRUST_PROXY")


def load_settings(**overrides) -> Settings:
    """Read settings from the environment, exiting the process if they are unusable."""
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        fields = {str(err["loc"][0]) for err in exc.errors() if err.get("loc")}
        if fields & set(CREDENTIAL_FIELDS):
            log.error("Missing ZOHO_USER or ZOHO_PASS in environment. Exiting.")
        else:
            log.error("Invalid configuration (%s). Exiting.", ", ".join(sorted(fields)))
        raise SystemExit(1)
