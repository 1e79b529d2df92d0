"""Core configuration management using pydantic-settings."""
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DaemonSettings(BaseSettings):
    """Transmission daemon endpoint and credentials."""

    model_config = SettingsConfigDict(env_prefix="TRANSMISSION_")

    host: str = Field(default="localhost", description="Daemon host")
    port: int | None = Field(default=9091, description="Daemon RPC port")
    ssl: bool = Field(default=False, description="Use HTTPS")
    path: str = Field(default="/transmission/rpc", description="RPC path")
    username: str = Field(default="", description="RPC username")
    password: str = Field(default="", description="RPC password")

    @field_validator("path")
    @classmethod
    def ensure_leading_slash(cls, v: str) -> str:
        """Ensure the RPC path is absolute."""
        if v and not v.startswith("/"):
            return f"/{v}"
        return v

    @property
    def url(self) -> str:
        """Build the RPC URL from settings."""
        url = f"{'https' if self.ssl else 'http'}://{self.host}"
        if self.port:
            url += f":{self.port}"
        if self.path:
            url += self.path
        return url


class HttpSettings(BaseSettings):
    """HTTP transport configuration."""

    model_config = SettingsConfigDict(env_prefix="TRANSRPC_HTTP_")

    connect_timeout: int = Field(default=10, description="Connection timeout in seconds")
    read_timeout: int = Field(default=30, description="Read timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    user_agent: str = Field(
        default="transrpc/0.1.0", description="User agent for requests"
    )


class ProxySettings(BaseSettings):
    """Proxy configuration for reaching the daemon."""

    model_config = SettingsConfigDict(env_prefix="TRANSRPC_")

    proxy_enabled: bool = Field(default=False, description="Route RPC calls through a proxy")
    proxy_type: Literal["http", "https", "socks4", "socks5"] = Field(
        default="socks5", description="Proxy type"
    )
    proxy_host: str | None = Field(default=None, description="Proxy host")
    proxy_port: int | None = Field(default=None, description="Proxy port")
    proxy_username: str | None = Field(default=None, description="Proxy username")
    proxy_password: str | None = Field(default=None, description="Proxy password")

    @property
    def proxy_url(self) -> str | None:
        """Build proxy URL from settings."""
        if not self.proxy_host or not self.proxy_port:
            return None

        auth = ""
        if self.proxy_username and self.proxy_password:
            auth = f"{self.proxy_username}:{self.proxy_password}@"

        return f"{self.proxy_type}://{auth}{self.proxy_host}:{self.proxy_port}"


class PollSettings(BaseSettings):
    """Poll engine configuration."""

    model_config = SettingsConfigDict(env_prefix="TRANSRPC_POLL_")

    interval: float = Field(default=1.0, gt=0, description="Seconds between poll ticks")
    timeout: float | None = Field(
        default=None, description="Default wait_for_state deadline in seconds (None=forever)"
    )


class MonitoringSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="TRANSRPC_")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING", description="Log level"
    )


class Settings(BaseSettings):
    """Main client settings."""

    model_config = SettingsConfigDict(
        env_prefix="TRANSRPC_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    daemon: DaemonSettings = Field(default_factory=DaemonSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    proxy: ProxySettings = Field(default_factory=ProxySettings)
    poll: PollSettings = Field(default_factory=PollSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)


# Global settings instance
settings = Settings()
