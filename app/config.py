"""Application settings using pydantic-settings."""

from dataclasses import dataclass
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True, slots=True)
class UpstreamConfig:
    """Fixed parameters of the upstream certificate API, built once at startup."""

    url: str
    secret: str
    timeout_seconds: float


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = "Certificate Lookup Proxy"
    debug: bool = False
    environment: str = "local"  # local, development, production

    # Server settings
    host: str = "0.0.0.0"
    port: int = 3000
    static_dir: str = "public"
    ssl_certfile: str = "cert/cert.pem"
    ssl_keyfile: str = "cert/key.pem"

    # Upstream (GAS) API
    gas_api_url: str = ""
    gas_secret_key: str = ""
    upstream_timeout_seconds: float = 5.0

    # Fetch coordination
    fetch_max_concurrency: int = 15
    # Queued fetches beyond this are rejected instead of buffered.
    fetch_max_queue: int = 1000

    # In-process cache
    cache_enabled: bool = True
    cache_max_entries: int = 1000
    cache_certificate_ttl_seconds: int = 600
    cache_default_ttl_seconds: int = 300

    @property
    def tls_enabled(self) -> bool:
        """Serve HTTPS only when both PEM files are present."""
        if not self.ssl_certfile or not self.ssl_keyfile:
            return False
        return Path(self.ssl_certfile).is_file() and Path(self.ssl_keyfile).is_file()

    def upstream_config(self) -> UpstreamConfig:
        return UpstreamConfig(
            url=self.gas_api_url,
            secret=self.gas_secret_key,
            timeout_seconds=self.upstream_timeout_seconds,
        )


settings = Settings()
