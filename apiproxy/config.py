from os import environ
from typing import Literal, Mapping

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_API_V1_URL = "http://localhost:3003"
DEFAULT_API_V2_URL = "http://localhost:3004"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3002

# settings field -> environment variable
ENV_VARS = {
    "api_v1_url": "API_V1_URL",
    "api_v2_url": "API_V2_URL",
    "host": "HOST",
    "port": "PORT",
    "log_level": "LOG_LEVEL",
}


def _check_base_url(value: str) -> str:
    try:
        url = httpx.URL(value)
    except httpx.InvalidURL as exc:
        raise ValueError(f"invalid base URL {value!r}: {exc}") from exc
    if url.scheme not in ("http", "https") or not url.host:
        raise ValueError(f"expected an http(s) base URL, got {value!r}")
    return value.rstrip("/")


class UpstreamConfig(BaseModel):
    """Where a single forwarder sends its traffic."""
    model_config = ConfigDict(frozen=True)

    name: str
    base_url: str
    rewrite_host: bool = True

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        return _check_base_url(value)

    @property
    def host_header(self) -> str:
        return httpx.URL(self.base_url).netloc.decode("ascii")


class Settings(BaseModel):
    """
    Process configuration, resolved once at start-up.

    Built from the environment by `from_env`; unset or empty variables fall
    back to the defaults above.
    """
    model_config = ConfigDict(frozen=True)

    api_v1_url: str = DEFAULT_API_V1_URL
    api_v2_url: str = DEFAULT_API_V2_URL
    host: str = DEFAULT_HOST
    port: int = Field(default=DEFAULT_PORT, ge=0, le=65535)
    log_level: Literal["critical", "error", "warning", "info", "debug"] = "info"

    @field_validator("api_v1_url", "api_v2_url")
    @classmethod
    def validate_upstream_url(cls, value: str) -> str:
        return _check_base_url(value)

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value):
        return value.lower() if isinstance(value, str) else value

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        env = environ if env is None else env
        values = {
            field: env[var] for field, var in ENV_VARS.items() if env.get(var)
        }
        return cls(**values)

    @property
    def api_v1(self) -> UpstreamConfig:
        return UpstreamConfig(name="API v1", base_url=self.api_v1_url)

    @property
    def api_v2(self) -> UpstreamConfig:
        return UpstreamConfig(name="API v2", base_url=self.api_v2_url)
