"""
Configuration management using pydantic-settings.

Every setting can be given as a WALRUS_* environment variable or in a .env
file; command-line flags take precedence.
"""

from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from walrus_cli.constants import DEFAULT_API_ADDR, DEFAULT_REQUEST_TIMEOUT


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="WALRUS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    api_addr: str = DEFAULT_API_ADDR
    # seed phrase for hot signing; never logged
    seed: SecretStr | None = None
    hot: bool = False

    log_level: str = "INFO"
    request_timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0)

    device_interface: Literal["hid", "tcp"] = "hid"
    # sign for this height instead of the server's consensus height
    protocol_height: int | None = Field(default=None, ge=0)
    # use the server's /seedindex instead of scanning tracked addresses
    query_seed_index: bool = False


def get_settings() -> Settings:
    return Settings()
