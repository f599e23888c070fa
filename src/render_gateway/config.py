"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (RENDER_GATEWAY__UPSTREAM__TOKEN=...)
  2. Platform variables     (BROWSERLESS_TOKEN, BROWSERLESS_URL, PORT,
                             SELF_PING_URL, RENDER_EXTERNAL_URL)
  3. render-gateway.yaml    (searched in cwd, then ~/.config/render-gateway/)
  4. Hardcoded defaults

The config file is optional. The only value without a usable default is the
upstream token; its absence is reported per request as a ConfigurationError
rather than at startup, so /health keeps answering.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo


def _find_config_file() -> str | None:
    """Return the path of the first render-gateway.yaml found, or None."""
    candidates = [
        Path("render-gateway.yaml"),
        Path.home() / ".config" / "render-gateway" / "render-gateway.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ServerSettings(_Section):
    host: str = "0.0.0.0"
    port: int = 3000
    max_body_bytes: int = 1024 * 1024
    cors_allow_origins: list[str] = ["*"]
    # Externally reachable base URL, used to build the keep-alive target
    public_url: str | None = None


class UpstreamSettings(_Section):
    content_url: str = "https://production-sfo.browserless.io/content"
    screenshot_url: str = "https://production-sfo.browserless.io/screenshot"
    token: str | None = None
    wait_until: Literal["load", "domcontentloaded", "networkidle0", "networkidle2"] = (
        "networkidle2"
    )
    navigation_timeout_ms: int = 30_000
    capture_delay_ms: int = 2_000
    empty_body_retry_increment_ms: int = 3_000
    screenshot_retries: int = 3
    screenshot_backoff_ms: int = 1_000
    screenshot_type: Literal["png", "jpeg", "webp"] = "png"
    request_timeout_seconds: float = 60.0


class StylesheetSettings(_Section):
    user_agent: str = "Mozilla/5.0 (compatible; render-gateway/0.1; +stylesheet-inliner)"
    timeout_seconds: float = 15.0


class CacheSettings(_Section):
    ttl_seconds: int = 300
    max_entries: int = 100


class KeepaliveSettings(_Section):
    enabled: bool = True
    interval_seconds: int = 300
    url: str | None = None


class LoggingSettings(_Section):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class PlatformEnvSource(PydanticBaseSettingsSource):
    """Unprefixed variables set by hosting platforms and existing deployments.

    Empty values count as unset. ``BROWSERLESS_URL`` names the content
    endpoint; when it ends in ``/content`` the screenshot endpoint on the same
    host is derived from it.
    """

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        # Values are assembled per section in __call__
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        values: dict[str, dict[str, Any]] = {}

        def put(section: str, key: str, env_name: str) -> str | None:
            value = os.environ.get(env_name, "").strip()
            if not value:
                return None
            values.setdefault(section, {})[key] = value
            return value

        put("upstream", "token", "BROWSERLESS_TOKEN")
        content_url = put("upstream", "content_url", "BROWSERLESS_URL")
        if content_url is not None and content_url.rstrip("/").endswith("/content"):
            base = content_url.rstrip("/").removesuffix("/content")
            values["upstream"]["screenshot_url"] = f"{base}/screenshot"
        put("server", "port", "PORT")
        put("server", "public_url", "RENDER_EXTERNAL_URL")
        put("keepalive", "url", "SELF_PING_URL")
        return values


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: RENDER_GATEWAY__CACHE__TTL_SECONDS=60
        env_prefix="RENDER_GATEWAY__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    upstream: UpstreamSettings = UpstreamSettings()
    stylesheets: StylesheetSettings = StylesheetSettings()
    cache: CacheSettings = CacheSettings()
    keepalive: KeepaliveSettings = KeepaliveSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            PlatformEnvSource(settings_cls),  # Unprefixed platform variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
