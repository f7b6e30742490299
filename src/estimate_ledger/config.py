"""Configuration management for the estimate ledger."""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment."""

    database_url: str
    host: str
    port: int
    debug: bool
    store_retries: int
    store_retry_backoff: float
    default_markup_percentage: Decimal
    default_payment_terms: str
    estimate_sequence_start: int
    invoice_sequence_start: int
    sequence_width: int

    @property
    def HOST(self) -> str:
        """Alias for host."""
        return self.host

    @property
    def PORT(self) -> int:
        """Alias for port."""
        return self.port

    @property
    def DEBUG(self) -> bool:
        """Alias for debug."""
        return self.debug

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        return cls(
            database_url=os.getenv(
                "DATABASE_URL",
                "sqlite+aiosqlite:///./estimate_ledger.db",
            ),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            store_retries=int(os.getenv("STORE_RETRIES", "1")),
            store_retry_backoff=float(os.getenv("STORE_RETRY_BACKOFF", "0.05")),
            default_markup_percentage=Decimal(
                os.getenv("DEFAULT_MARKUP_PERCENTAGE", "15")
            ),
            default_payment_terms=os.getenv("DEFAULT_PAYMENT_TERMS", "Net 30"),
            estimate_sequence_start=int(os.getenv("ESTIMATE_SEQUENCE_START", "0")),
            invoice_sequence_start=int(os.getenv("INVOICE_SEQUENCE_START", "1000")),
            sequence_width=int(os.getenv("SEQUENCE_WIDTH", "4")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()

