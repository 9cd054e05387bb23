"""
core/config/loader.py tests

settings.yaml loading, defaults and validation
"""

from pathlib import Path

import pytest

from core.config.loader import (
    AppConfig,
    Settings,
    SettingsLoadError,
    get_settings,
    load_app_config,
)
from core.constants import PROJECT_ROOT, Defaults


def write_settings(temp_dir: Path, content: str) -> Path:
    path = temp_dir / "settings.yaml"
    path.write_text(content, encoding="utf-8")
    return path


class TestLoadAppConfig:
    """load_app_config tests"""

    def test_missing_file_uses_defaults(self, temp_dir: Path) -> None:
        config = load_app_config(temp_dir / "missing.yaml")

        assert isinstance(config, AppConfig)
        assert config.ledger.default_company_id == Defaults.COMPANY_ID
        assert config.ledger.default_currency == Defaults.CURRENCY
        assert config.repair.batch_size == Defaults.REPAIR_BATCH_SIZE
        assert config.web_port == Defaults.WEB_PORT
        assert config.log_level == Defaults.LOG_LEVEL

    def test_empty_file_uses_defaults(self, temp_dir: Path) -> None:
        config = load_app_config(write_settings(temp_dir, ""))

        assert config.repair.batch_delay_sec == Defaults.REPAIR_BATCH_DELAY_SEC

    def test_full_file(self, temp_dir: Path) -> None:
        path = write_settings(
            temp_dir,
            """
database:
  path: /var/lib/ledger/books.db
ledger:
  default_company_id: acme
  default_currency: usd
repair:
  batch_size: 25
  batch_delay_sec: 0
web:
  host: 0.0.0.0
  port: 9000
logging:
  level: debug
""",
        )

        config = load_app_config(path)

        assert config.db_path == Path("/var/lib/ledger/books.db")
        assert config.ledger.default_company_id == "acme"
        assert config.ledger.default_currency == "USD"
        assert config.repair.batch_size == 25
        assert config.repair.batch_delay_sec == 0.0
        assert config.web_host == "0.0.0.0"
        assert config.web_port == 9000
        assert config.log_level == "DEBUG"

    def test_relative_db_path_resolves_against_project_root(self, temp_dir: Path) -> None:
        config = load_app_config(write_settings(temp_dir, "database:\n  path: data/test.db\n"))

        assert config.db_path == PROJECT_ROOT / "data" / "test.db"

    def test_invalid_yaml(self, temp_dir: Path) -> None:
        with pytest.raises(SettingsLoadError, match="parse"):
            load_app_config(write_settings(temp_dir, "ledger: [unclosed\n"))

    def test_not_a_mapping(self, temp_dir: Path) -> None:
        with pytest.raises(SettingsLoadError):
            load_app_config(write_settings(temp_dir, "- a\n- b\n"))

    def test_section_not_a_mapping(self, temp_dir: Path) -> None:
        with pytest.raises(SettingsLoadError, match="repair"):
            load_app_config(write_settings(temp_dir, "repair: 5\n"))

    def test_batch_size_must_be_positive(self, temp_dir: Path) -> None:
        with pytest.raises(SettingsLoadError, match="batch_size"):
            load_app_config(write_settings(temp_dir, "repair:\n  batch_size: 0\n"))

    def test_negative_delay(self, temp_dir: Path) -> None:
        with pytest.raises(SettingsLoadError, match="batch_delay_sec"):
            load_app_config(write_settings(temp_dir, "repair:\n  batch_delay_sec: -1\n"))

    def test_non_numeric_port(self, temp_dir: Path) -> None:
        with pytest.raises(SettingsLoadError):
            load_app_config(write_settings(temp_dir, "web:\n  port: eighty\n"))

    def test_unknown_log_level(self, temp_dir: Path) -> None:
        with pytest.raises(SettingsLoadError, match="logging.level"):
            load_app_config(write_settings(temp_dir, "logging:\n  level: chatty\n"))

    def test_config_is_frozen(self, temp_dir: Path) -> None:
        config = load_app_config(temp_dir / "missing.yaml")

        with pytest.raises(AttributeError):
            config.web_port = 1  # type: ignore


class TestSettings:
    """Settings singleton tests"""

    def test_singleton(self, temp_dir: Path) -> None:
        path = write_settings(temp_dir, "ledger:\n  default_company_id: acme\n")

        first = get_settings(path)
        second = get_settings()

        assert first is second
        assert second.default_company_id == "acme"

    def test_properties(self, temp_dir: Path) -> None:
        path = write_settings(
            temp_dir,
            "database:\n  path: /tmp/x.db\nledger:\n  default_currency: gbp\nrepair:\n  batch_size: 3\n",
        )

        settings = Settings(path)

        assert settings.db_path == Path("/tmp/x.db")
        assert settings.default_currency == "GBP"
        assert settings.repair.batch_size == 3

    def test_reset(self, temp_dir: Path) -> None:
        get_settings(write_settings(temp_dir, "ledger:\n  default_company_id: one\n"))
        Settings.reset()

        other = temp_dir / "other.yaml"
        other.write_text("ledger:\n  default_company_id: two\n", encoding="utf-8")

        assert get_settings(other).default_company_id == "two"
