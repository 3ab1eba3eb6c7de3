"""Broker connection settings loaded from the environment.

Uses pydantic-settings for validation. A process-wide default can be assigned
once at startup with configure(); workers fall back to it when no explicit
settings are passed.
"""

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(RuntimeError):
    """Raised when the process-wide settings are assigned more than once."""


class Settings(BaseSettings):
    """Runtime settings for the STOMP broker connection and queue naming."""

    model_config = SettingsConfigDict(env_prefix="STOMP_", extra="ignore")

    host: str = Field(default="localhost", description="Broker host name")
    port: int = Field(default=61613, description="Broker STOMP port")
    login: str | None = Field(default=None, description="Broker user")
    passcode: SecretStr | None = Field(default=None, description="Broker password")
    vhost: str | None = Field(default=None, description="Virtual host sent on CONNECT")
    heartbeat_ms: int = Field(default=0, description="STOMP heart-beat interval, 0 disables")
    connect_timeout: float = Field(default=10.0, description="Seconds to wait for CONNECTED")
    queue_prefix: str = Field(default="/queue/", description="Namespace prepended to queue names")
    prefetch_header: str = Field(
        default="activemq.prefetchSize",
        description="Subscribe header carrying the prefetch size",
    )

    def destination(self, queue_name: str) -> str:
        """Return the broker destination path for a queue name."""
        return f"{self.queue_prefix}{queue_name}"


_settings: Settings | None = None


def configure(settings: Settings) -> Settings:
    """Assign the process-wide settings. May only be called once."""
    global _settings
    if _settings is not None:
        raise ConfigurationError("Broker settings have already been configured")
    _settings = settings
    return _settings


def get_settings() -> Settings:
    """Return the process-wide settings, loading them from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Forget the process-wide settings (used by tests)."""
    global _settings
    _settings = None
