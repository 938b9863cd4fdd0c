from pydantic_settings import BaseSettings
import os

# Pre-load .env into os.environ using python-dotenv so that pydantic-settings
# picks up values even when the process is started from another directory.
from dotenv import load_dotenv as _load_dotenv

_load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), "..", ".env"), override=False)


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Aid Distribution Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_DIR: str = "logs"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./aid_distribution.db"
    SEED_DEFAULTS: bool = True

    # Allocation
    DUPLICATE_WINDOW_MINUTES: int = 5
    FRAUD_ALERT_DETAILS: str = "Attempted duplicate allocation"
    # Shown to the disburser when an allocation is rejected as a duplicate
    FRAUD_REJECTION_MESSAGE: str = "The servers are responding slowly. Please try again later."

    # Inventory
    LOW_STOCK_THRESHOLD: int = 5

    # Fraud monitoring
    FRAUD_MONITOR_ENABLED: bool = True
    FRAUD_POLL_INTERVAL_SECONDS: float = 300.0     # 5 minutes
    FRAUD_CHECK_URL: str = ""                      # empty → read the local ledger
    FRAUD_CHECK_TIMEOUT: float = 10.0
    FRAUD_CHECK_LOOKBACK_HOURS: int = 24
    NOTIFICATION_FEED_SIZE: int = 200

    # Fraud check tiers
    DUPLICATE_ALERTS_MEDIUM: int = 2
    DUPLICATE_ALERTS_HIGH: int = 3
    DISBURSER_ALERTS_MEDIUM: int = 3
    DISBURSER_ALERTS_HIGH: int = 5

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
