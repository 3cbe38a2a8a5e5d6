"""Runtime settings read from the environment.

A ``.env`` file in the working directory is loaded first, so local runs can
keep their settings next to the model files.

Variables:
- ``LOCAL_LOGISTIC_LOG_LEVEL``: logging level name (default ``WARNING``)
- ``LOCAL_LOGISTIC_PRECISION``: digits kept when rendering probabilities
  (default ``5``)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

ENV_PREFIX = "LOCAL_LOGISTIC_"

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


@dataclass(frozen=True)
class Settings:
    """Process-wide settings for the command-line interface."""

    log_level: str = "WARNING"
    precision: int = 5

    @property
    def log_level_number(self) -> int:
        return logging.getLevelName(self.log_level)

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """Build settings from ``LOCAL_LOGISTIC_*`` environment variables.

        Raises:
            ValueError: If a variable holds an invalid value.
        """
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True))

        log_level = os.getenv(f"{ENV_PREFIX}LOG_LEVEL", cls.log_level).strip().upper()
        if log_level not in _LOG_LEVELS:
            raise ValueError(
                f"{ENV_PREFIX}LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}, "
                f"got {log_level!r}"
            )

        raw_precision = os.getenv(f"{ENV_PREFIX}PRECISION", str(cls.precision))
        try:
            precision = int(raw_precision)
        except ValueError as e:
            raise ValueError(
                f"{ENV_PREFIX}PRECISION must be an integer, got {raw_precision!r}"
            ) from e
        if precision < 0:
            raise ValueError(f"{ENV_PREFIX}PRECISION must be >= 0, got {precision}")

        return cls(log_level=log_level, precision=precision)
