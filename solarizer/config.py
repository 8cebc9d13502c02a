"""Configuration management for the Solarizer service."""

from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional, Set


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Solar.web
    pv_system_id: str = Field(alias="SOLAR_WEB_PV_SYSTEM_ID")
    # Overrides the persisted cookie on startup when set
    auth_cookie: Optional[str] = Field(default=None, alias="SOLAR_WEB_AUTH_COOKIE")
    auth_cookie_file: str = Field(default="/tmp/solarizer/authcookie", alias="SOLAR_WEB_AUTH_COOKIE_FILE")
    request_timeout: int = Field(default=10, alias="SOLAR_WEB_TIMEOUT")

    # InfluxDB
    influx_url: str = Field(alias="INFLUX_URL")
    influx_token: str = Field(alias="INFLUX_TOKEN")
    influx_org: str = Field(alias="INFLUX_ORG")
    influx_bucket: str = Field(alias="INFLUX_BUCKET")

    # API server - tokens format: "token1,token2"
    api_tokens_raw: str = Field(alias="API_TOKENS")
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8080, alias="API_PORT")
    api_title: str = "Solarizer API"
    api_version: str = "1.0.0"

    # Polling intervals (seconds)
    fast_interval: float = Field(default=15, alias="FAST_INTERVAL")
    slow_interval: float = Field(default=300, alias="SLOW_INTERVAL")

    # Circuit breaker
    breaker_min_requests: int = Field(default=3, alias="BREAKER_MIN_REQUESTS")
    breaker_failure_ratio: float = Field(default=0.6, alias="BREAKER_FAILURE_RATIO")
    breaker_cooldown: float = Field(default=60, alias="BREAKER_COOLDOWN")
    breaker_half_open_max_calls: int = Field(default=1, alias="BREAKER_HALF_OPEN_MAX_CALLS")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def api_tokens(self) -> Set[str]:
        """Parse the API token list into a set, ignoring blanks."""
        tokens = set()
        for entry in self.api_tokens_raw.split(","):
            entry = entry.strip()
            if entry:
                tokens.add(entry)
        return tokens
