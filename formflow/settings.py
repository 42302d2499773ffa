""" Runtime configuration read from the environment (and a .env file). """
import os
from dataclasses import dataclass

from dotenv import load_dotenv


DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_MAX_WALK_STEPS = 500


@dataclass
class FormflowSettings:
    log_level: str = DEFAULT_LOG_LEVEL
    auto_connect: bool = True
    sequential_fallback: bool = True
    max_walk_steps: int = DEFAULT_MAX_WALK_STEPS


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if not value:
        return default
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    return default


def load_settings() -> FormflowSettings:
    load_dotenv()

    max_steps = _get_int("FORMFLOW_MAX_WALK_STEPS", DEFAULT_MAX_WALK_STEPS)
    return FormflowSettings(
        log_level=os.getenv("FORMFLOW_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
        auto_connect=_get_bool("FORMFLOW_AUTO_CONNECT", True),
        sequential_fallback=_get_bool("FORMFLOW_SEQUENTIAL_FALLBACK", True),
        max_walk_steps=max_steps if max_steps > 0 else DEFAULT_MAX_WALK_STEPS,
    )
