"""
Settings loader

Loads config/settings.yaml and builds the runtime settings.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from core.constants import PROJECT_ROOT, Defaults, Paths

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class LedgerConfig:
    """Ledger defaults"""

    default_company_id: str
    default_currency: str


@dataclass(frozen=True)
class RepairConfig:
    """Batch repair settings"""

    batch_size: int
    batch_delay_sec: float


@dataclass(frozen=True)
class AppConfig:
    """Complete application settings

    Immutable so nothing can change settings at runtime.
    """

    db_path: Path
    ledger: LedgerConfig
    repair: RepairConfig
    web_host: str
    web_port: int
    log_level: str


class SettingsLoadError(Exception):
    """settings.yaml could not be loaded"""

    pass


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise SettingsLoadError(f"settings.yaml section '{name}' must be a mapping")
    return value


def load_app_config(path: Path | None = None) -> AppConfig:
    """Load settings.yaml

    A missing file is not an error: built-in defaults are used.

    Args:
        path: settings.yaml path (None means the default path)

    Returns:
        AppConfig instance

    Raises:
        SettingsLoadError: the file is malformed
    """
    if path is None:
        path = Paths.SETTINGS_FILE

    data: dict[str, Any] = {}
    if path.exists():
        try:
            content = path.read_text(encoding="utf-8")
            loaded = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise SettingsLoadError(f"Failed to parse settings.yaml: {e}") from e

        if loaded is not None:
            if not isinstance(loaded, dict):
                raise SettingsLoadError("settings.yaml must contain a mapping")
            data = loaded

    database = _section(data, "database")
    ledger = _section(data, "ledger")
    repair = _section(data, "repair")
    web = _section(data, "web")
    logging_section = _section(data, "logging")

    db_path = Path(database.get("path") or Paths.DEFAULT_DB)
    if not db_path.is_absolute():
        db_path = PROJECT_ROOT / db_path

    try:
        batch_size = int(repair.get("batch_size", Defaults.REPAIR_BATCH_SIZE))
        batch_delay = float(repair.get("batch_delay_sec", Defaults.REPAIR_BATCH_DELAY_SEC))
        web_port = int(web.get("port", Defaults.WEB_PORT))
    except (TypeError, ValueError) as e:
        raise SettingsLoadError(f"Invalid numeric value in settings.yaml: {e}") from e

    if batch_size < 1:
        raise SettingsLoadError("repair.batch_size must be at least 1")
    if batch_delay < 0:
        raise SettingsLoadError("repair.batch_delay_sec cannot be negative")

    log_level = str(logging_section.get("level") or Defaults.LOG_LEVEL).upper()
    if log_level not in LOG_LEVELS:
        raise SettingsLoadError(f"Unknown logging.level: {log_level}")

    return AppConfig(
        db_path=db_path,
        ledger=LedgerConfig(
            default_company_id=str(ledger.get("default_company_id") or Defaults.COMPANY_ID),
            default_currency=str(ledger.get("default_currency") or Defaults.CURRENCY).upper(),
        ),
        repair=RepairConfig(
            batch_size=batch_size,
            batch_delay_sec=batch_delay,
        ),
        web_host=str(web.get("host") or Defaults.WEB_HOST),
        web_port=web_port,
        log_level=log_level,
    )


class Settings:
    """Application settings (singleton)

    Loads settings.yaml once and exposes the values.
    """

    _instance: "Settings | None" = None
    _config: AppConfig | None = None

    def __new__(cls, settings_path: Path | None = None) -> "Settings":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, settings_path: Path | None = None) -> None:
        if self._config is None:
            self._config = load_app_config(settings_path)

    @property
    def config(self) -> AppConfig:
        """Full loaded configuration"""
        assert self._config is not None
        return self._config

    @property
    def db_path(self) -> Path:
        """SQLite database path"""
        return self.config.db_path

    @property
    def default_company_id(self) -> str:
        """Company used when a caller does not name one"""
        return self.config.ledger.default_company_id

    @property
    def default_currency(self) -> str:
        """Currency used when a record does not carry one"""
        return self.config.ledger.default_currency

    @property
    def repair(self) -> RepairConfig:
        """Batch repair settings"""
        return self.config.repair

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton (tests)"""
        cls._instance = None
        cls._config = None


def get_settings(settings_path: Path | None = None) -> Settings:
    """Return the Settings instance

    Args:
        settings_path: settings.yaml path (None means the default path)

    Returns:
        Settings singleton
    """
    return Settings(settings_path)
