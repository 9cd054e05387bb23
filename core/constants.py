"""
Hard-coded constants - values that practically never change

Paths must always be pathlib.Path (cross-platform).
"""

from decimal import Decimal
from pathlib import Path


# Project root (two levels up from this file: core/constants.py -> project/)
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent


class Defaults:
    """Default values"""

    COMPANY_ID: str = "default"
    CURRENCY: str = "EUR"

    WEB_HOST: str = "127.0.0.1"
    WEB_PORT: int = 8000

    LOG_LEVEL: str = "INFO"

    REPAIR_BATCH_SIZE: int = 10
    REPAIR_BATCH_DELAY_SEC: float = 0.5


class Paths:
    """Project paths (pathlib - OS independent)"""

    # directories
    CONFIG_DIR: Path = PROJECT_ROOT / "config"
    DATA_DIR: Path = PROJECT_ROOT / "data"
    LOGS_DIR: Path = PROJECT_ROOT / "logs"
    WEB_LOGS_DIR: Path = LOGS_DIR / "web"
    CLI_LOGS_DIR: Path = LOGS_DIR / "cli"

    # config file
    SETTINGS_FILE: Path = CONFIG_DIR / "settings.yaml"

    # DB file
    DEFAULT_DB: Path = DATA_DIR / "ledger.db"


class Tolerances:
    """Rounding slack used by the ledger"""

    # |sum(debit) - sum(credit)| allowed on a single entry
    ENTRY_BALANCE: Decimal = Decimal("0.02")

    # stored vs computed balance difference considered drift
    BALANCE_DRIFT: Decimal = Decimal("0.01")


class TransactionRetry:
    """Retry budget for locked/busy SQLite transactions"""

    MAX_ATTEMPTS: int = 3
    BACKOFF_SEC: float = 0.2
    BUSY_TIMEOUT_MS: int = 30000
