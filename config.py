"""Application configuration loaded from environment variables."""

from __future__ import annotations

import logging
import os
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, model_validator

load_dotenv()

_PROJECT_ROOT = Path(__file__).resolve().parent

_DEFAULT_SECRET_KEY = "change-me-in-production"  # noqa: S105

logger = logging.getLogger(__name__)


class Config(BaseModel):
    """Centralised app configuration backed by env vars."""

    # Database
    database_path: str = str(_PROJECT_ROOT / "data" / "shop_ledger.db")
    db_busy_timeout: float = 5.0  # seconds to wait for the write lock

    # Flask
    flask_host: str = "127.0.0.1"
    flask_port: int = 5000
    flask_debug: bool = True
    flask_secret_key: str = _DEFAULT_SECRET_KEY
    cors_origins: list[str] = ["http://localhost:5173"]
    auth_token_max_age: int = 24 * 60 * 60

    # Profit sharing
    owner_count: int = 2
    profit_share_ratio: Decimal = Decimal("0.5")
    profit_share_day: int = 24

    log_level: str = "INFO"

    @model_validator(mode="after")
    def _check_profit_sharing(self) -> Config:
        """Reject impossible profit-share settings and warn on an unsafe secret."""
        if self.owner_count < 1:
            msg = "OWNER_COUNT must be at least 1"
            raise ValueError(msg)
        if not Decimal(0) < self.profit_share_ratio <= Decimal(1):
            msg = "PROFIT_SHARE_RATIO must be greater than 0 and at most 1"
            raise ValueError(msg)
        if not 1 <= self.profit_share_day <= 28:
            msg = "PROFIT_SHARE_DAY must be between 1 and 28"
            raise ValueError(msg)
        if self.flask_secret_key == _DEFAULT_SECRET_KEY:
            logger.warning("FLASK_SECRET_KEY is not set; auth tokens use the default key")
        return self

    @classmethod
    def from_env(cls) -> Config:
        """Build config from environment variables."""
        cors_raw = os.getenv("CORS_ORIGINS", "http://localhost:5173")
        cors_origins = [o.strip() for o in cors_raw.split(",") if o.strip()]

        return cls(
            database_path=os.getenv(
                "DATABASE_PATH", str(_PROJECT_ROOT / "data" / "shop_ledger.db")
            ),
            db_busy_timeout=float(os.getenv("DB_BUSY_TIMEOUT", "5.0")),
            flask_host=os.getenv("FLASK_HOST", "127.0.0.1"),
            flask_port=int(os.getenv("FLASK_PORT", "5000")),
            flask_debug=os.getenv("FLASK_DEBUG", "true").lower() in ("1", "true", "yes"),
            flask_secret_key=os.getenv("FLASK_SECRET_KEY", _DEFAULT_SECRET_KEY),
            cors_origins=cors_origins,
            auth_token_max_age=int(os.getenv("AUTH_TOKEN_MAX_AGE", str(24 * 60 * 60))),
            owner_count=int(os.getenv("OWNER_COUNT", "2")),
            profit_share_ratio=Decimal(os.getenv("PROFIT_SHARE_RATIO", "0.5")),
            profit_share_day=int(os.getenv("PROFIT_SHARE_DAY", "24")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


settings = Config.from_env()
