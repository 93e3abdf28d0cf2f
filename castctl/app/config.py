# castctl/app/config.py
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from castctl.core.errors import ConfigError
from castctl.protocol.core.defs import DEFAULT_PORT


@dataclass(frozen=True)
class CastConfig:
    host: Optional[str] = None
    port: int = DEFAULT_PORT
    connect_timeout_s: float = 5.0
    ping_interval_s: float = 5.0
    frame_buffer_size: int = 4096
    json_buffer_size: int = 4096
    read_timeout_s: float = 0.1
    response_window_s: float = 0.5
    error_budget: int = 5

    def __post_init__(self) -> None:
        if self.frame_buffer_size <= 4:
            raise ConfigError(
                f"frame_buffer_size must be larger than 4, got {self.frame_buffer_size}.",
                details={"frame_buffer_size": self.frame_buffer_size},
            )
        if self.error_budget < 1:
            raise ConfigError(
                f"error_budget must be at least 1, got {self.error_budget}.",
                details={"error_budget": self.error_budget},
            )
        for name in ("connect_timeout_s", "ping_interval_s", "read_timeout_s", "response_window_s"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive.", details={name: getattr(self, name)})


_TYPES = {f.name: f.type for f in fields(CastConfig)}


def _cast(name: str, value: Any) -> Any:
    expected = _TYPES[name]

    if name == "host":
        if value is None or isinstance(value, str):
            return value
        raise TypeError(f"Expected str, got {type(value).__name__}")

    if expected == "int":
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Expected int, got {type(value).__name__}")
        return value

    if expected == "float":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"Expected float, got {type(value).__name__}")
        return float(value)

    raise TypeError(f"Unknown config type '{expected}'")


def config_from_mapping(data: Dict[str, Any], base: Optional[CastConfig] = None) -> CastConfig:
    base = base or CastConfig()
    values: Dict[str, Any] = {}

    for key, value in data.items():
        if key not in _TYPES:
            raise ConfigError(
                f"Unknown config key '{key}'.",
                hint=f"Valid keys: {sorted(_TYPES)}",
                details={"key": key},
            ) from None
        try:
            values[key] = _cast(key, value)
        except TypeError as e:
            raise ConfigError(
                f"Invalid value for config key '{key}'.",
                hint=str(e),
                details={"key": key, "value": value},
            ) from None

    return replace(base, **values)


def load_config(path: str | Path) -> CastConfig:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}", details={"path": str(path)})

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file is not valid YAML: {path}", hint=str(e)) from None

    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}", details={"path": str(path)})

    return config_from_mapping(data)
