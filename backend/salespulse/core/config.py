"""Analytics configuration."""
import logging

from pydantic_settings import BaseSettings


class AnalyticsSettings(BaseSettings):
    """Analytics settings."""

    # Calendar
    TIMEZONE: str = "UTC"
    WEEK_START: int = 0  # 0 = Monday ... 6 = Sunday
    DEFAULT_GRANULARITY: str = "day"

    # Trends
    GROWTH_WINDOW: int = 7
    MONTHLY_GROWTH_MULTIPLIER: int = 4

    # Rankings
    TOP_N: int = 3
    FALLBACK_PROFIT_RATE: float = 0.2
    UNKNOWN_PRODUCT_LABEL: str = "Unknown product"
    UNKNOWN_CLIENT_LABEL: str = "Unknown client"
    UNKNOWN_SELLER_LABEL: str = "Unknown seller"

    # Client segmentation
    VIP_MIN_PURCHASES: int = 5           # strictly more than
    VIP_MIN_SPEND: float = 100000.0      # strictly more than
    LOYAL_MIN_PURCHASES: int = 2         # strictly more than
    LOYAL_MAX_RECENCY_DAYS: int = 30     # strictly less than
    INACTIVE_MIN_RECENCY_DAYS: int = 90  # strictly more than

    # Anomaly detection
    ANOMALY_MIN_SALES: int = 10
    ANOMALY_Z_THRESHOLD: float = 3.0

    # Application
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = AnalyticsSettings()


def configure_logging(level: str = None):
    """Apply LOG_LEVEL to the root logger."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
