"""
Runtime configuration.

Precedence, lowest first: built-in defaults, environment variables (a local
.env file is loaded first), an optional YAML file, then command-line flags.

YAML format, either flat or under a 'noseburn' key:
    frequency: 10
    max_steps_per_tick: 250
    frame_rate: 30
    max_call_depth: 4096
"""

import math
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

from noseburn.controller import DEFAULT_MAX_STEPS_PER_TICK
from noseburn.engine import DEFAULT_MAX_CALL_DEPTH
from noseburn.moostar import MoostarError

ENV_PREFIX = "NOSEBURN_"


class ConfigError(MoostarError):
    pass


@dataclass(frozen=True)
class NoseburnConfig:
    frequency: float = 1.0
    max_steps_per_tick: int = DEFAULT_MAX_STEPS_PER_TICK
    frame_rate: float = 30.0
    max_call_depth: int = DEFAULT_MAX_CALL_DEPTH

    def merged(self, overrides: Mapping[str, Any]) -> 'NoseburnConfig':
        """Copy with overrides applied; None values are ignored."""
        known = {f.name: f.type for f in fields(self)}
        values: Dict[str, Any] = {}
        for key, raw in overrides.items():
            if raw is None:
                continue
            if key not in known:
                raise ConfigError(f"unknown setting '{key}'")
            values[key] = _coerce(key, raw, int if known[key] is int else float)
        return replace(self, **values)


def _coerce(key: str, raw: Any, kind) -> Any:
    try:
        number = float(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"setting '{key}' expects a number, got {raw!r}") from None
    if not math.isfinite(number):
        raise ConfigError(f"setting '{key}' must be a finite number, got {raw!r}")
    if number <= 0:
        raise ConfigError(f"setting '{key}' must be positive, got {raw!r}")
    if kind is int:
        if not number.is_integer():
            raise ConfigError(f"setting '{key}' must be a whole number, got {raw!r}")
        return int(number)
    return number


def from_environment(environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Settings found in NOSEBURN_* variables."""
    environ = os.environ if environ is None else environ
    out = {}
    for f in fields(NoseburnConfig):
        key = ENV_PREFIX + f.name.upper()
        if environ.get(key):
            out[f.name] = environ[key]
    return out


def load_yaml_settings(path: str) -> Dict[str, Any]:
    """Read settings from a YAML file."""
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if isinstance(data, dict) and isinstance(data.get("noseburn"), dict):
        data = data["noseburn"]
    if not isinstance(data, dict):
        raise ConfigError(f"unsupported config structure in {path}; expected a mapping")
    return data


def load_config(path: Optional[str] = None, overrides: Optional[Mapping[str, Any]] = None,
                environ: Optional[Mapping[str, str]] = None, use_dotenv: bool = True) -> NoseburnConfig:
    if use_dotenv and environ is None:
        load_dotenv()
    config = NoseburnConfig().merged(from_environment(environ))
    if path:
        config = config.merged(load_yaml_settings(path))
    if overrides:
        config = config.merged(overrides)
    return config
