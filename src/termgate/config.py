"""Centralised configuration via Pydantic Settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Gateway-wide configuration loaded from environment variables."""

    model_config = {"env_prefix": "TERMGATE_", "frozen": True}

    # HTTP server
    host: str = "127.0.0.1"
    port: int = 8080

    # Logging
    log_level: str = "INFO"
    # Empty means stdout only; otherwise records are also appended to this file.
    log_file: str = ""

    # WebSocket origin policy
    # Format: "https://a.example,https://b.example" or "*" to accept every origin.
    allowed_origins: str = "*"

    # Session pumps
    read_deadline_seconds: float = 60.0
    write_deadline_seconds: float = 10.0
    keepalive_interval_seconds: float = 54.0
    outbound_queue_size: int = 256

    # Serial
    serial_read_timeout_seconds: float = 0.1

    # Remote shell (SSH)
    remote_connect_timeout_seconds: int = 30
    # Modes:
    # - auto_add: accept and remember unknown host keys
    # - warning: accept unknown host keys but log a warning
    # - reject: refuse hosts missing from the known-hosts file
    remote_host_key_policy: str = "auto_add"
    remote_known_hosts_file: str = ""

    @property
    def origins(self) -> list[str]:
        if not self.allowed_origins or not self.allowed_origins.strip():
            return []
        return [x.strip() for x in self.allowed_origins.split(",") if x.strip()]


def get_settings() -> Settings:
    """Build settings from the environment; tests construct Settings directly."""
    return Settings()
