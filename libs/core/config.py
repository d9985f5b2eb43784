"""Configuration management for PineUI Builder."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AnthropicSettings(BaseSettings):
    """Model provider settings."""

    api_key: Optional[str] = Field(default=None, alias="ANTHROPIC_API_KEY")
    model: str = Field(default="claude-sonnet-4-6", alias="ANTHROPIC_MODEL")
    max_tokens: int = Field(default=8192, alias="ANTHROPIC_MAX_TOKENS")


class PineUISettings(BaseSettings):
    """Remote PineUI context resources."""

    package: str = Field(default="@pineui/react", alias="PINEUI_PACKAGE")
    prompt_url: str = Field(
        default="https://raw.githubusercontent.com/PineUI/PineUI/main/PROMPT.md",
        alias="PINEUI_PROMPT_URL",
    )
    registry_url: str = Field(
        default="https://registry.npmjs.org/@pineui/react/latest",
        alias="PINEUI_REGISTRY_URL",
    )
    bundle_base_url: str = Field(default="https://unpkg.com", alias="PINEUI_BUNDLE_BASE_URL")
    script_asset: str = Field(default="pineui.standalone.js", alias="PINEUI_SCRIPT_ASSET")
    style_asset: str = Field(default="style.css", alias="PINEUI_STYLE_ASSET")

    # TTL shared by the context document and the version
    cache_ttl_seconds: float = Field(default=300.0, alias="CONTEXT_CACHE_TTL_SECONDS")
    version_refresh_interval_seconds: float = Field(
        default=300.0, alias="VERSION_REFRESH_INTERVAL_SECONDS"
    )


class ServerSettings(BaseSettings):
    """HTTP server settings."""

    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, alias="PORT")
    # Honor X-Forwarded-For only behind a known reverse proxy
    trust_proxy: bool = Field(default=False, alias="TRUST_PROXY")


class RateLimitSettings(BaseSettings):
    """Per-IP limits on the generate endpoint."""

    max_requests: int = Field(default=10, alias="RATE_LIMIT_MAX_REQUESTS")
    window_seconds: float = Field(default=60.0, alias="RATE_LIMIT_WINDOW_SECONDS")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Sub-settings
    anthropic: AnthropicSettings = Field(default_factory=AnthropicSettings)
    pineui: PineUISettings = Field(default_factory=PineUISettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)

    # Paths
    project_root: Path = Field(default_factory=lambda: Path(__file__).parent.parent.parent)
    data_dir_override: Optional[Path] = Field(default=None, alias="DATA_DIR")
    public_dir_override: Optional[Path] = Field(default=None, alias="PUBLIC_DIR")

    @property
    def data_dir(self) -> Path:
        """Get data directory (manifest, PROMPT.md mirror, DESIGN.md)."""
        return self.data_dir_override or self.project_root / "data"

    @property
    def public_dir(self) -> Path:
        """Get public directory served as static files."""
        return self.public_dir_override or self.project_root / "public"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
