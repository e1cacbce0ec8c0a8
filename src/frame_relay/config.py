"""
frame-relay Configuration
=========================

Deployment settings: buffer sizes, client limits, loop timing, capture
backend and logging. These are fixed for the life of the process and are
separate from the runtime options (width, quality, framing, ...) that
clients can change while the server runs.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. frame_relay.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    FRAME_RELAY_SETTINGS            -> path of the YAML file
    FRAME_RELAY_LOG_LEVEL           -> logging.level
    FRAME_RELAY_LOG_FORMAT          -> logging.format
    FRAME_RELAY_MAX_CLIENTS         -> clients.max_clients
    FRAME_RELAY_DATA_BUFFER_SIZE    -> buffers.data_buffer_size
    FRAME_RELAY_REQUEST_BUFFER_SIZE -> buffers.request_buffer_size
    FRAME_RELAY_LIVENESS_TIMEOUT    -> loop.liveness_timeout_seconds
    FRAME_RELAY_CAPTURE_BACKEND     -> capture.backend

Example:
    from frame_relay.config import settings

    print(settings.buffers.data_buffer_size)
    print(settings.capture.backend)
"""

import os
import logging
import sys
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class BufferConfig(BaseModel):
    """Fixed buffer sizes."""

    data_buffer_size: int = Field(
        default=131072,
        ge=1024,
        description="Largest frame that can be reassembled, in bytes",
    )
    request_buffer_size: int = Field(
        default=4096,
        ge=64,
        description="Carry-over buffer for control-stream input, in bytes",
    )
    handoff_queue_size: int = Field(
        default=64,
        ge=1,
        description="Chunks the capture thread may queue ahead of the loop",
    )


class ClientConfig(BaseModel):
    """Datagram subscriber limits."""

    max_clients: int = Field(default=8, ge=0, description="Maximum subscribers")


class LoopConfig(BaseModel):
    """Event loop timing."""

    liveness_timeout_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Longest wait with no activity before the producer is declared stuck",
    )


class CaptureConfig(BaseModel):
    """Capture backend configuration."""

    backend: Literal["fake", "none"] = Field(
        default="fake",
        description="Capture backend: 'fake' test pattern or 'none'",
    )
    chunk_size: int = Field(
        default=16384,
        ge=256,
        description="Bytes per chunk handed to the event loop",
    )
    pool_size: int = Field(
        default=16,
        ge=1,
        description="Chunks that may be in flight at once",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for frame-relay.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    buffers: BufferConfig = Field(default_factory=BufferConfig)
    clients: ClientConfig = Field(default_factory=ClientConfig)
    loop: LoopConfig = Field(default_factory=LoopConfig)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML settings file
        3. Default values

    Args:
        config_path: Path to the YAML file. If None, uses FRAME_RELAY_SETTINGS
            or searches the working directory.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        config_path = os.environ.get("FRAME_RELAY_SETTINGS")

    if config_path is None:
        for path in (Path("frame_relay.yaml"), Path("frame_relay.yml")):
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading settings from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    elif config_path:
        logger.warning(f"Settings file {config_path} not found, using defaults")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Logging settings
    if env_level := os.environ.get("FRAME_RELAY_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_level
    if env_format := os.environ.get("FRAME_RELAY_LOG_FORMAT"):
        config_data.setdefault("logging", {})["format"] = env_format

    # Client settings
    if env_clients := os.environ.get("FRAME_RELAY_MAX_CLIENTS"):
        config_data.setdefault("clients", {})["max_clients"] = int(env_clients)

    # Buffer settings
    if env_data := os.environ.get("FRAME_RELAY_DATA_BUFFER_SIZE"):
        config_data.setdefault("buffers", {})["data_buffer_size"] = int(env_data)
    if env_request := os.environ.get("FRAME_RELAY_REQUEST_BUFFER_SIZE"):
        config_data.setdefault("buffers", {})["request_buffer_size"] = int(env_request)

    # Loop settings
    if env_timeout := os.environ.get("FRAME_RELAY_LIVENESS_TIMEOUT"):
        config_data.setdefault("loop", {})["liveness_timeout_seconds"] = float(env_timeout)

    # Capture settings
    if env_backend := os.environ.get("FRAME_RELAY_CAPTURE_BACKEND"):
        config_data.setdefault("capture", {})["backend"] = env_backend


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings. Logs go to stderr."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
        stream=sys.stderr,
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
