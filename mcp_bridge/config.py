"""Bridge settings read from the editor-provided environment."""

from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class BridgeSettings(BaseSettings):
    """Environment for the stdio bridge.

    Editors launch the bridge with API_KEY and INKY_API_URL set, as emitted
    by POST /mcp/token.
    """

    model_config = SettingsConfigDict(extra="ignore")

    api_key: SecretStr
    inky_api_url: str = "http://localhost:8000"
    request_timeout_seconds: float = 30.0
    log_level: str = "INFO"

    @property
    def endpoint(self) -> str:
        return self.inky_api_url.rstrip("/") + "/api/mcp"


@lru_cache
def get_bridge_settings() -> BridgeSettings:
    """Get cached bridge settings."""
    return BridgeSettings()  # type: ignore[call-arg]
