from pydantic_settings import BaseSettings
from pydantic import field_validator
from decimal import Decimal, ROUND_HALF_UP, ROUND_HALF_EVEN, ROUND_HALF_DOWN, ROUND_UP, ROUND_DOWN
from functools import lru_cache
import json


ROUNDING_MODES = {
    "ROUND_HALF_UP": ROUND_HALF_UP,
    "ROUND_HALF_EVEN": ROUND_HALF_EVEN,
    "ROUND_HALF_DOWN": ROUND_HALF_DOWN,
    "ROUND_UP": ROUND_UP,
    "ROUND_DOWN": ROUND_DOWN,
}

# Decimal places of stored ledger amounts; ROUND_OFF_UNIT cannot be finer
MONEY_SCALE = 2


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    # App Settings
    APP_NAME: str = "GST Ledger Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Ledger storage (append-only adapter)
    DATABASE_URL: str = "sqlite+aiosqlite:///./gst_ledger.db"

    # Tax rate records: allowed drift between total and component sum
    TAX_RATE_TOLERANCE: Decimal = Decimal("0.01")

    # Document totals
    ROUND_OFF_UNIT: Decimal = Decimal("0.01")  # 1 = whole-rupee invoicing
    ROUNDING_MODE: str = "ROUND_HALF_UP"

    # Overdue aging: upper day limits of each bucket, last bucket is open ended
    AGING_BUCKET_LIMITS: list[int] = [7, 30, 60]

    # Reject postings dated before the party's latest ledger entry
    ENFORCE_CHRONOLOGICAL_POSTING: bool = True

    @field_validator('ROUNDING_MODE')
    @classmethod
    def validate_rounding_mode(cls, v):
        v = v.strip().upper()
        if v not in ROUNDING_MODES:
            raise ValueError(f"Unsupported rounding mode '{v}'. Use one of: {', '.join(ROUNDING_MODES)}")
        return v

    @field_validator('ROUND_OFF_UNIT', 'TAX_RATE_TOLERANCE')
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("must be greater than zero")
        if v.normalize().as_tuple().digits != (1,):
            raise ValueError("must be a power of ten (0.01, 0.1, 1, ...)")
        return v

    @field_validator('ROUND_OFF_UNIT')
    @classmethod
    def validate_storable_unit(cls, v):
        if v < Decimal(1).scaleb(-MONEY_SCALE):
            raise ValueError(f"cannot be finer than the stored scale of {MONEY_SCALE} decimal places")
        return v

    @field_validator('AGING_BUCKET_LIMITS', mode='before')
    @classmethod
    def parse_bucket_limits(cls, v):
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except json.JSONDecodeError:
                v = [limit.strip() for limit in v.split(',') if limit.strip()]
        limits = [int(limit) for limit in v]
        if limits != sorted(set(limits)) or any(limit < 0 for limit in limits):
            raise ValueError("bucket limits must be distinct, ascending and non-negative")
        return limits

    @property
    def rounding(self) -> str:
        """Decimal rounding constant for ROUNDING_MODE."""
        return ROUNDING_MODES[self.ROUNDING_MODE]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
