"""
Application configuration.

Loads settings from environment variables and .env file.
All configuration is centralized here, no scattered magic strings.
"""

import socket

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment.

    Attributes:
        project_name: Display name for the API.
        version: Current API version string.
        debug: Enable debug mode. Must be False in production.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
        hostname: Host name stamped on every stream envelope.
        stream_default_interval_seconds: Periodic stream interval when the
            client does not ask for one.
        stream_min_interval_seconds: Smallest interval a client may request.
        stream_max_interval_seconds: Largest interval a client may request.
        stream_queue_size: Pending events buffered per event-driven session.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="DOCKHAND_"
    )

    project_name: str = "Dockhand"
    version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    hostname: str = Field(default_factory=socket.gethostname)

    stream_default_interval_seconds: float = 2.0
    stream_min_interval_seconds: float = 0.1
    stream_max_interval_seconds: float = 60.0
    stream_queue_size: int = 100


settings = Settings()
