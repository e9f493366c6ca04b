from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from harmony_bridge.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_DIR = "configs"

ENV_ENGINE = "HARMONY_BRIDGE_ENGINE"
ENV_LIBRARY = "HARMONY_BRIDGE_LIBRARY"
ENV_VERBOSE = "HARMONY_BRIDGE_VERBOSE"
ENV_CONFIG_DIR = "HARMONY_BRIDGE_CONFIG_DIR"

_TRUE_VALUES = {"1", "true", "yes", "on"}


class BridgeConfig(BaseModel):
    """
    Configuration for loading the Harmony engine and bridge diagnostics.
    """

    model_config = ConfigDict(extra="ignore")

    engine: Literal["native", "reference"] = Field(
        default="native",
        description="native: link libopenai_harmony; reference: use the openai_harmony package",
    )
    library_path: Optional[str] = Field(
        default=None,
        description="Explicit path to libopenai_harmony (searched when unset)",
    )
    verbose: bool = False
    log_level: str = Field(default="WARNING", description="Level for harmony_bridge loggers")
    debug_log_path: Optional[str] = None

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level {value!r}")
        return level


def resolve_config_path(path: str | Path | None, config_dir: str | Path | None = None) -> Path | None:
    if path is None:
        return None
    raw = Path(path).expanduser()
    if raw.is_absolute() or raw.exists():
        return raw
    base_dir = Path(config_dir or os.getenv(ENV_CONFIG_DIR, DEFAULT_CONFIG_DIR))
    return base_dir / raw


def apply_env_overrides(config: BridgeConfig, environ: Optional[Dict[str, str]] = None) -> BridgeConfig:
    """Return a copy of ``config`` with HARMONY_BRIDGE_* environment values applied."""
    env = os.environ if environ is None else environ
    updates: Dict[str, Any] = {}
    if env.get(ENV_ENGINE):
        updates["engine"] = env[ENV_ENGINE].strip().lower()
    if env.get(ENV_LIBRARY):
        updates["library_path"] = env[ENV_LIBRARY]
    if env.get(ENV_VERBOSE):
        updates["verbose"] = env[ENV_VERBOSE].strip().lower() in _TRUE_VALUES
    if not updates:
        return config
    try:
        return BridgeConfig.model_validate({**config.model_dump(), **updates})
    except ValidationError as e:
        raise ValueError(f"Invalid HARMONY_BRIDGE_* environment override: {e}") from e


def load_bridge_config(path: str | Path) -> Optional[BridgeConfig]:
    """
    Load a BridgeConfig from a JSON file.

    Supported fields:
    {
      "engine": "native",
      "library_path": "/opt/harmony/lib/libopenai_harmony.so",
      "verbose": false,
      "log_level": "INFO",
      "debug_log_path": "logs/harmony-bridge.log"
    }

    Returns:
        BridgeConfig if file exists and is valid, None if file doesn't exist.
        Raises ValueError if file exists but is invalid.
    """
    raw_path = Path(path)
    if not raw_path.exists():
        return None

    try:
        data: Dict[str, Any] = json.loads(raw_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")

    try:
        config = BridgeConfig.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid bridge config {path}: {e}") from e
    logger.debug("Loaded bridge config from %s", raw_path)
    return config
