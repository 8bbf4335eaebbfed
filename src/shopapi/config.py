"""Runtime configuration for shopapi.

Every setting can be overridden with a SHOPAPI_* environment variable.
"""

import logging
import os
from dataclasses import dataclass, field

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: list[str]) -> list[str]:
    value = os.environ.get(name)
    if value is None:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class Settings:
    """Application settings."""

    host: str = "127.0.0.1"
    port: int = 8000
    api_prefix: str = "/api"
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    seed: bool = True  # load sample products and users at startup
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from SHOPAPI_* environment variables."""
        defaults = cls()
        return cls(
            host=os.environ.get("SHOPAPI_HOST", defaults.host),
            port=int(os.environ.get("SHOPAPI_PORT", defaults.port)),
            api_prefix=os.environ.get("SHOPAPI_API_PREFIX", defaults.api_prefix),
            cors_origins=_env_list("SHOPAPI_CORS_ORIGINS", defaults.cors_origins),
            seed=_env_bool("SHOPAPI_SEED", defaults.seed),
            log_level=os.environ.get("SHOPAPI_LOG_LEVEL", defaults.log_level).upper(),
        )

    def to_env(self) -> dict[str, str]:
        """Inverse of from_env, for handing settings to a child process."""
        return {
            "SHOPAPI_HOST": self.host,
            "SHOPAPI_PORT": str(self.port),
            "SHOPAPI_API_PREFIX": self.api_prefix,
            "SHOPAPI_CORS_ORIGINS": ",".join(self.cors_origins),
            "SHOPAPI_SEED": "1" if self.seed else "0",
            "SHOPAPI_LOG_LEVEL": self.log_level.upper(),
        }


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the CLI and server."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
