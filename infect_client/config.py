"""Central configuration for the infect.live scanning client."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Per-user state lives outside the install tree
DATA_DIR = Path.home() / ".infect-client"
DEFAULT_ENV_FILE = Path(".env")


# ============================================================
# Nested Configuration Classes
# ============================================================

class ScanSettings(BaseModel):
    """Scan debounce configuration."""
    cooldown_ms: int = Field(2000, description="Window after an accepted scan during which decodes are ignored (ms)")
    flash_ms: int = Field(150, description="Duration of the visual scan acknowledgement (ms)")
    generated_id_length: int = Field(8, description="Length of locally generated player ids")

    @field_validator("cooldown_ms", "flash_ms", "generated_id_length")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value


class CameraSettings(BaseModel):
    """Local camera feed for QR decoding."""
    enabled: bool = Field(False, description="Open the camera and decode QR codes from it")
    camera_id: int = Field(0, description="OpenCV camera index")
    resolution_width: int = Field(640, description="Camera stream width (pixels)")
    resolution_height: int = Field(480, description="Camera stream height (pixels)")
    fps: int = Field(15, description="Frames decoded per second")


class PerformanceSettings(BaseModel):
    """Queue tuning."""
    ui_event_queue_size: int = Field(16, description="Max buffered UI events per subscriber")


class Settings(BaseSettings):
    """Environment-driven settings for the client controller."""

    # Game server
    server_ws_url: str = Field("wss://ws.infect.live", description="Game server WebSocket URL")

    # Local identity
    identity_path: Optional[Path] = Field(
        DATA_DIR / "identity.txt",
        description="File holding the player id; unset keeps the id in memory only",
    )

    # Local UI server
    controller_host: str = Field("127.0.0.1", description="Host interface for local FastAPI server")
    controller_port: int = Field(5000, description="Port for FastAPI server")

    # Logging
    log_level: str = Field("INFO", description="Logging level")
    log_directory: Path = Field(DATA_DIR / "logs", description="Log directory path")
    log_retention_days: int = Field(14, description="Number of log files to retain")

    # Nested Configuration Objects
    scan: ScanSettings = Field(default_factory=ScanSettings, description="Scan debounce settings")
    camera: CameraSettings = Field(default_factory=CameraSettings, description="Camera settings")
    performance: PerformanceSettings = Field(default_factory=PerformanceSettings, description="Performance tuning")

    @field_validator("server_ws_url")
    @classmethod
    def _check_ws_url(cls, value: str) -> str:
        parsed = value.strip()
        if not parsed.startswith(("ws://", "wss://")):
            raise ValueError("SERVER_WS_URL must start with ws:// or wss://")
        return parsed

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    model_config = SettingsConfigDict(
        env_file=str(DEFAULT_ENV_FILE),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings(override_env_file: Optional[Path] = None) -> Settings:
    """Cached Settings instance; accepts optional env override for tests."""

    if override_env_file:
        return Settings(_env_file=str(override_env_file))
    return Settings()
