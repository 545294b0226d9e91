# ============================================================================
# ENVIRONMENT HELPERS
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Core - Typed environment variable access
# PURPOSE: Parse env values with defaults (int, bool, duration)
# CREATED: 06 OCT 2026
# ============================================================================
"""
Environment Helpers

Typed readers used by the from_env() constructors. A value that is
present but malformed falls back to the default and logs a warning,
so one typo never prevents the service from starting.

Durations accept Go-style strings ("500ms", "30s", "5m", "1h", "1m30s")
or a bare number of seconds ("30", "2.5").
"""

import logging
import math
import os
import re

logger = logging.getLogger(__name__)

_DURATION_UNITS = {
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")

_TRUE_VALUES = {"1", "t", "true", "yes", "y", "on"}
_FALSE_VALUES = {"0", "f", "false", "no", "n", "off"}


def parse_duration(value: str) -> float:
    """
    Parse a duration string into seconds.

    Raises:
        ValueError: If the string is not a valid duration
    """
    text = value.strip().lower()
    if not text:
        raise ValueError("empty duration")

    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if not math.isfinite(seconds):
            raise ValueError(f"invalid duration: {value!r}")
        return seconds

    position = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()

    if position != len(text):
        raise ValueError(f"invalid duration: {value!r}")
    return total


def get_env(key: str, default: str = "") -> str:
    """Get a string variable; empty counts as unset."""
    value = os.environ.get(key)
    if value:
        return value
    return default


def get_env_int(key: str, default: int) -> int:
    value = os.environ.get(key)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid integer for {key}={value!r}, using default {default}")
        return default


def get_env_bool(key: str, default: bool) -> bool:
    value = os.environ.get(key)
    if not value:
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    logger.warning(f"Invalid boolean for {key}={value!r}, using default {default}")
    return default


def get_env_duration(key: str, default: float) -> float:
    """Get a duration in seconds."""
    value = os.environ.get(key)
    if not value:
        return default
    try:
        seconds = parse_duration(value)
    except ValueError:
        logger.warning(f"Invalid duration for {key}={value!r}, using default {default}s")
        return default
    if seconds <= 0:
        logger.warning(f"Non-positive duration for {key}={value!r}, using default {default}s")
        return default
    return seconds


__all__ = [
    "parse_duration",
    "get_env",
    "get_env_int",
    "get_env_bool",
    "get_env_duration",
]
