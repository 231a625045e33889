"""Settings module with unified configuration precedence: CLI > ENV > CONFIG FILE."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import tomllib
from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from .constants import (
    DEFAULT_COINGECKO_API_URL,
    DEFAULT_HELIUS_API_URL,
    DEFAULT_HELIUS_RPC_URL,
    PRICE_FEED_IDS,
    WHIRLPOOL_PROGRAM_ID,
)

load_dotenv()

SECRET_FIELDS = frozenset({"helius_api_key", "coingecko_api_key"})


class AnalyticsSettings(BaseSettings):
    """Single source of truth for configuration. Values may come from:
    - CLI (init kwargs)
    - ENV / .env (prefixed with LP_ANALYTICS_)
    - Config file (TOML), lowest precedence

    Do not read os.environ or files elsewhere in the codebase.
    """

    # --- helius (blockchain data source) ---
    chain_source: str = "helius"
    helius_api_key: SecretStr | None = None
    helius_rpc_url: str | None = None
    helius_api_url: str = DEFAULT_HELIUS_API_URL
    whirlpool_program_id: str = WHIRLPOOL_PROGRAM_ID
    transaction_limit: int = Field(default=500, gt=0)
    transaction_page_size: int = Field(default=100, ge=1, le=100)

    # --- price feed ---
    price_feed: str = "coingecko"
    coingecko_api_url: str = DEFAULT_COINGECKO_API_URL
    coingecko_api_key: SecretStr | None = None
    coingecko_pro: bool = False
    price_feed_ids: dict[str, str] = Field(default_factory=dict)

    # --- http ---
    request_timeout: float = Field(default=15.0, gt=0)

    # --- boundary ---
    global_timeout_seconds: float | None = 120.0

    # --- logging ---
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="LP_ANALYTICS_",
        env_file=".env",
        extra="ignore",  # ignore unknown keys in env/config file
    )

    @field_validator("helius_api_key", "coingecko_api_key", mode="before")
    @classmethod
    def wrap_secrets(cls, v: Any) -> SecretStr | None:
        """Wrap string secrets in SecretStr."""
        if v is None or isinstance(v, SecretStr):
            return v
        return SecretStr(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Custom config-file source with explicit precedence: CLI > ENV > FILE."""
        env_cfg = os.environ.get("LP_ANALYTICS_CONFIG")
        cfg_path = Path(env_cfg) if env_cfg else None

        class TomlConfigSource(PydanticBaseSettingsSource):
            def __init__(self, settings_cls: type[BaseSettings], path: Path | None):
                super().__init__(settings_cls)
                self._path = path

            def get_field_value(
                self, field: Any, field_name: str
            ) -> tuple[Any, str, bool]:
                return None, "", False

            def __call__(self) -> dict[str, Any]:
                if not self._path:
                    local_config = Path("lp-analytics.toml")
                    user_config = (
                        Path.home() / ".config" / "lp-analytics" / "config.toml"
                    )
                    if local_config.exists():
                        self._path = local_config
                    elif user_config.exists():
                        self._path = user_config
                    else:
                        return {}

                if not self._path.exists():
                    return {}

                with self._path.open("rb") as f:
                    data = tomllib.load(f)  # supports top-level or [lp_analytics]
                body = data.get("lp_analytics", data)
                if not isinstance(body, dict):
                    return {}

                for key in SECRET_FIELDS:
                    if key in body:
                        raise ValueError(
                            f"Security violation: '{key}' found in TOML config file. "
                            f"Secrets must only be provided via environment variables or CLI flags."
                        )

                return body

        return (
            init_settings,  # CLI (highest)
            env_settings,  # ENV
            dotenv_settings,  # .env
            TomlConfigSource(settings_cls, cfg_path),  # CONFIG (lowest)
            file_secret_settings,
        )

    def as_safe_dict(self) -> dict[str, Any]:
        """Return the config as a dict with secrets redacted."""
        data = self.model_dump()
        for key in SECRET_FIELDS:
            if data.get(key):
                data[key] = "***redacted***"
        return data

    @property
    def helius_rpc_endpoint(self) -> str:
        """JSON-RPC endpoint, explicit or built from the Helius API key."""
        if self.helius_rpc_url:
            return self.helius_rpc_url
        if self.helius_api_key is None:
            raise ValueError("helius_rpc_url or helius_api_key must be configured")
        return f"{DEFAULT_HELIUS_RPC_URL}/?api-key={self.helius_api_key.get_secret_value()}"

    @property
    def feed_id_table(self) -> dict[str, str]:
        """Built-in token -> price feed id table with configured overrides."""
        return {**PRICE_FEED_IDS, **self.price_feed_ids}
