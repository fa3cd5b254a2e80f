"""Typed readers for ``PDRFLOW_*`` environment variables.

Blank values count as unset everywhere.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from .errors import InvalidSettingError, MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence


def _read(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value


def require_env_vars(names: Sequence[str]) -> dict[str, str]:
    """Return every named variable, or raise listing all that are missing."""

    values = {name: _read(name) for name in names}
    missing = sorted(name for name, value in values.items() if value is None)
    if missing:
        raise MissingConfigurationError(f"Missing configuration for: {', '.join(missing)}")
    return {name: value for name, value in values.items() if value is not None}


def require_env_var(name: str) -> str:
    return require_env_vars([name])[name]


def env_str(name: str, default: str) -> str:
    value = _read(name)
    return default if value is None else value.strip()


def env_int(name: str, default: int, *, minimum: int | None = None) -> int:
    value = _read(name)
    if value is None:
        return default
    try:
        number = int(value)
    except ValueError:
        raise InvalidSettingError(name, value, "an integer") from None
    if minimum is not None and number < minimum:
        raise InvalidSettingError(name, value, f"at least {minimum}")
    return number
