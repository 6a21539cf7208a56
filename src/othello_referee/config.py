"""
Configuration and environment loading for the Othello referee.

- Loads settings.yml (YAML) from the working directory (or REFEREE_SETTINGS) if present; falls back to environment variables.
- Exposes SETTINGS with the knobs used by the match runner and CLI (CPU limit, log level, tracking directory).
"""
from dataclasses import dataclass
import os
from typing import Any, Callable

import yaml
from dotenv import load_dotenv

# .env values populate os.environ; YAML still takes precedence
load_dotenv()


def _settings_path() -> str:
    return os.environ.get("REFEREE_SETTINGS") or os.path.join(os.getcwd(), "settings.yml")


def _load_yaml(path: str) -> dict:
    if not os.path.isfile(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a mapping, got {type(data).__name__}")
    return data


_cfg = _load_yaml(_settings_path())


def _get(name: str, default: Any, cast: Callable[[Any], Any] | None = None) -> Any:
    if name in _cfg:
        val = _cfg[name]
        return cast(val) if cast else val
    env = os.environ.get(name)
    if env is not None:
        return cast(env) if cast else env
    return default


@dataclass(frozen=True)
class Settings:
    # Per-player CPU budget, enforced by RLIMIT_CPU in the child
    cpu_time_limit_s: int

    # Logging / tracking output
    log_level: str
    log_dir: str


SETTINGS = Settings(
    cpu_time_limit_s=int(_get("REFEREE_CPU_TIME_LIMIT_S", 60, cast=int)),
    log_level=str(_get("REFEREE_LOG_LEVEL", "WARNING")).upper(),
    log_dir=str(_get("REFEREE_LOG_DIR", ".")),
)
