"""SDK configuration using Pydantic Settings."""

import os
from pathlib import Path
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def default_config_dir() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return root / "ledgerlink"


class SdkSettings(BaseSettings):
    """SDK settings.

    Consumers construct this explicitly from their own configuration files and
    pass it to the client. Environment variables prefixed with ``LEDGERLINK_``
    override the defaults; no file is ever read here.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGERLINK_",
        case_sensitive=False,
    )

    debug: bool = False

    # Endpoints
    base_url: str = "https://api.xero.com/api.xro/2.0/"
    authorize_url: str = "https://login.xero.com/identity/connect/authorize"
    token_url: str = "https://identity.xero.com/connect/token"
    connections_url: str = "https://api.xero.com/connections"

    # Requests
    timeout: float = 30.0  # seconds
    max_retries: int = 3
    allow_writes: bool = False

    # Rate limiting
    rate_limit_enabled: bool = True
    max_concurrent: int = 5
    max_per_minute: int = 60
    max_jitter: float = 2.0  # seconds

    # Auth
    client_id: str = ""
    refresh_margin: float = 300.0  # 5 minutes
    callback_port: int = 0  # 0 picks a free port
    callback_timeout: float = 300.0
    default_scopes: List[str] = Field(
        default_factory=lambda: [
            "openid",
            "offline_access",
            "accounting.transactions",
            "accounting.contacts",
            "accounting.settings",
            "accounting.journals.read",
        ]
    )

    # Credential storage
    keyring_service: str = "ledgerlink"
    config_dir: Path = Field(default_factory=default_config_dir)
    # Empty string stores the fallback token file as plain JSON
    encryption_key: str = ""


# Create settings instance
settings = SdkSettings()
