import json
import re
from pathlib import Path
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_cors_origins(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, list):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []
    if raw == "*":
        return ["*"]

    # Prefer JSON, but tolerate bare host lists so a misconfigured deployment
    # still starts.
    if raw.startswith(("[", '"', "'")):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]
        if isinstance(parsed, str):
            raw = parsed.strip()
            if not raw or raw == "[]":
                return []
            if raw == "*":
                return ["*"]

    parts = [p for p in re.split(r"[,\s]+", raw) if p]
    origins: list[str] = []
    for part in parts:
        if part == "*":
            return ["*"]
        if "://" in part:
            origins.append(part)
            continue
        # Browsers send the scheme in the Origin header, so a bare host
        # allows both.
        origins.append(f"http://{part}")
        origins.append(f"https://{part}")

    seen: set[str] = set()
    result: list[str] = []
    for origin in origins:
        if origin in seen:
            continue
        seen.add(origin)
        result.append(origin)
    return result


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    Values are read once at startup; there is no hot reload.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # Server settings
    host: str = "0.0.0.0"
    port: int = 3000

    # Public address used to build links to stored images
    app_url: str = ""

    # Provider settings
    image_provider: str = "stability"  # stability | openai | mock

    # Stability AI settings
    stability_api_key: str = ""
    stability_base_url: str = "https://api.stability.ai/v1"
    stability_engine: str = "stable-diffusion-xl-1024-v1-0"

    # OpenAI settings
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_image_model: str = "dall-e-3"
    openai_organization: str | None = None

    # HTTP Client connection pool settings
    httpx_connect_timeout: float = 10.0  # Time to establish connection
    httpx_read_timeout: float = 120.0  # Image generation is slow
    httpx_write_timeout: float = 10.0  # Time to send request data
    httpx_pool_timeout: float = 5.0  # Time to acquire connection from pool
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 100
    httpx_max_keepalive_connections: int = 20

    # Rate limiting settings
    disable_rate_limit: bool = False
    rate_limit_daily: int = 500  # requests per client per day
    rate_limit_hourly: int = 50  # requests per client per hour
    rate_limit_burst: int = 20  # requests per client per minute
    rate_limit_max_entries: int = 10000  # tracked client identities
    trust_proxy: bool = True  # take the client address from X-Forwarded-For
    trusted_proxy_hops: int = 1  # proxies in front of us that append to X-Forwarded-For

    # Storage settings
    upload_dir: Path = Path("uploads")

    # Request body limit (data URIs are large)
    max_body_size: int = 50 * 1024 * 1024

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # CORS settings
    # NoDecode keeps a bare host value (e.g. "43.163.94.63") from crashing
    # JSON parsing at startup.
    cors_origins: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["*"])

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator("image_provider")
    @classmethod
    def validate_image_provider(cls, v: str) -> str:
        """Validate the provider name is one we know how to build."""
        v = v.strip().lower()
        if v not in ("stability", "openai", "mock"):
            raise ValueError("image_provider must be one of: stability, openai, mock")
        return v

    @field_validator(
        "rate_limit_daily",
        "rate_limit_hourly",
        "rate_limit_burst",
        "rate_limit_max_entries",
        "trusted_proxy_hops",
    )
    @classmethod
    def validate_rate_limit_positive(cls, v: int) -> int:
        """Validate rate limit values are positive."""
        if v < 1:
            raise ValueError("Rate limit values must be at least 1")
        return v

    @field_validator(
        "httpx_connect_timeout",
        "httpx_read_timeout",
        "httpx_write_timeout",
        "httpx_pool_timeout",
    )
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        """Validate timeout values are positive."""
        if v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    @field_validator("max_body_size")
    @classmethod
    def validate_max_body_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_body_size must be at least 1 byte")
        return v

    @property
    def rate_limit_enabled(self) -> bool:
        return not self.disable_rate_limit

    @property
    def public_base_url(self) -> str:
        """Base address for links returned to clients.

        Falls back to localhost on the configured port when APP_URL is unset.
        """
        if self.app_url:
            return self.app_url.rstrip("/")
        return f"http://localhost:{self.port}"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
