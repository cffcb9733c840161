"""CLI configuration via pydantic-settings."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings


class MetaAdsSettings(BaseSettings):
    config_dir: Path = Path.home() / ".meta-ads-cli"
    auth_timeout_seconds: int = 300
    open_browser: bool = True
    http_timeout_seconds: float = 30.0
    log_level: str = "WARNING"

    model_config = {"env_prefix": "META_ADS_", "env_file": ".env", "extra": "ignore"}

    @property
    def store_dir(self) -> Path:
        return self.config_dir.expanduser()


def get_settings() -> MetaAdsSettings:
    """Load settings from the environment (and .env) on every call."""
    return MetaAdsSettings()
