"""Configuration and environment settings for Savings Jars."""

from pathlib import Path

from pydantic import PositiveFloat, PositiveInt
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings for Savings Jars."""

    data_dir: Path = Path("data")
    shared_dir: Path = Path("data/shared")
    jars_file: str = "savingsJars.json"
    legacy_csv_file: str = "savingsJars.csv"
    snapshot_file: str = "widget_data.json"
    refresh_request_file: str = "widget_refresh.json"
    defaults_database_url: str = "sqlite:///data/defaults.db"
    store_backend: str = "mirrored"
    # Unbounded when None; otherwise older entries are folded into a carried-forward balance.
    transaction_history_limit: PositiveInt | None = None
    refresh_poll_interval: PositiveFloat = 2.0
    currency_code: str = "USD"
    show_cents: bool = True
    default_target: PositiveFloat = 1000.0
    default_color: str = "blue"
    default_icon: str = "banknote.fill"
    log_level: str = "INFO"
    log_file: Path | None = None
    server_host: str = "127.0.0.1"
    server_port: int = 8000

    model_config = SettingsConfigDict(env_prefix="JARS_", env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def jars_path(self) -> Path:
        """Location of the persisted jar collection."""
        return self.data_dir / self.jars_file

    @property
    def legacy_csv_path(self) -> Path:
        """Location of the CSV file written by older releases."""
        return self.data_dir / self.legacy_csv_file

    @property
    def snapshot_path(self) -> Path:
        """Location of the published widget snapshot."""
        return self.shared_dir / self.snapshot_file

    @property
    def refresh_request_path(self) -> Path:
        """Location of the refresh marker written by the widget reader."""
        return self.shared_dir / self.refresh_request_file


def get_settings() -> "Settings":
    """Return an instance of the application settings."""
    return Settings()
