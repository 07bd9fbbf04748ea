"""
Configuration for the tracker, read from the environment or a .env file.
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 5
DEFAULT_COLLECTION = "MessageLogEntries"

_TRUE_VALUES = ("1", "true", "yes", "on")


def parse_interval(value: Optional[str], default: int = DEFAULT_INTERVAL) -> int:
    """Polling interval in seconds; falls back to ``default`` if missing or below 1."""
    try:
        interval = int(value) if value is not None else default
    except ValueError:
        logger.warning(f"Invalid polling interval {value!r}, using {default} seconds")
        return default
    return interval if interval >= 1 else default


def parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class TrackerConfig:
    """Settings needed to connect to the server and track a collection."""

    service_root_url: str
    user: str = ""
    password: str = ""
    cam_namespace: str = ""
    auth_mode: str = "TM1"
    interval: int = DEFAULT_INTERVAL
    verify_ssl: bool = False
    verbose: bool = False
    collection: str = DEFAULT_COLLECTION

    @classmethod
    def from_mapping(cls, env: Mapping[str, str]) -> "TrackerConfig":
        """Build a config from a mapping of TM1_* variables."""
        service_root_url = env.get("TM1_SERVICE_ROOT_URL", "").strip()
        if not service_root_url:
            raise ConfigurationError("TM1_SERVICE_ROOT_URL is not set")
        if not service_root_url.endswith("/"):
            service_root_url += "/"

        return cls(
            service_root_url=service_root_url,
            user=env.get("TM1_USER", ""),
            password=env.get("TM1_PASSWORD", ""),
            cam_namespace=env.get("TM1_CAM_NAMESPACE", ""),
            auth_mode=(env.get("TM1_AUTHENTICATION") or "TM1").strip().upper(),
            interval=parse_interval(env.get("TM1_TRACKER_INTERVAL")),
            verify_ssl=parse_bool(env.get("TM1_VERIFY_SSL")),
            verbose=parse_bool(env.get("TM1_TRACKER_VERBOSE")),
            collection=env.get("TM1_TRACKER_COLLECTION") or DEFAULT_COLLECTION,
        )

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "TrackerConfig":
        """Load ``env_file`` (or a .env file found nearby) and read the environment."""
        if load_dotenv(env_file):
            logger.debug(f"Loaded environment variables from {env_file or '.env'}")
        return cls.from_mapping(os.environ)
