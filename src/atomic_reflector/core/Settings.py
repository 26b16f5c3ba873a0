"""Engine configuration.

``ReflectorSettings`` carries the defaults used when a caller does not pass an
explicit value: match thresholds, member scopes, JSON formatting of result
envelopes and the serialization depth guard. ``from_env`` reads them from
``ATOMIC_REFLECTOR_*`` environment variables, loading a ``.env`` file first.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Callable, Optional

from dotenv import load_dotenv

from .Scope import MemberScope

logger = logging.getLogger(__name__)

ENV_PREFIX = "ATOMIC_REFLECTOR_"
PACKAGE_LOGGER = "atomic_reflector"


@dataclass
class ReflectorSettings:
    # Method resolution thresholds (see methods.resolver.MatchLevel / ParameterMatch)
    namespace_match_level: int = 0
    type_name_match_level: int = 1
    method_name_match_level: int = 1
    parameters_match_level: int = 0

    # Member enumeration
    member_scope: MemberScope = MemberScope.DEFAULT
    method_scope: MemberScope = MemberScope.METHODS

    # Output
    json_indent: Optional[int] = 2
    max_depth: int = 64
    log_level: Optional[str] = None

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #
    @classmethod
    def from_env(cls, *, dotenv_path: Optional[str] = None, load_env_file: bool = True) -> "ReflectorSettings":
        """Build settings from the process environment.

        Invalid values are logged and replaced by the field default.
        """
        if load_env_file:
            load_dotenv(dotenv_path)

        settings = cls()
        parsers: dict[str, Callable[[str], Any]] = {
            "namespace_match_level": int,
            "type_name_match_level": int,
            "method_name_match_level": int,
            "parameters_match_level": int,
            "member_scope": MemberScope.parse,
            "method_scope": MemberScope.parse,
            "json_indent": _parse_indent,
            "max_depth": int,
            "log_level": _parse_level,
        }
        for f in fields(cls):
            raw = os.getenv(ENV_PREFIX + f.name.upper())
            if raw is None or not raw.strip():
                continue
            try:
                setattr(settings, f.name, parsers[f.name](raw.strip()))
            except (ValueError, KeyError) as e:
                logger.warning(f"Ignoring {ENV_PREFIX}{f.name.upper()}={raw!r}: {e}")
        return settings

    def apply_logging(self) -> None:
        """Apply ``log_level`` (when set) to the package logger."""
        if self.log_level:
            configure_logging(self.log_level)


def configure_logging(level: str | int) -> None:
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)


def _parse_indent(raw: str) -> Optional[int]:
    if raw.lower() in ("none", "compact", "0"):
        return None
    return int(raw)


def _parse_level(raw: str) -> str:
    level = raw.upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"unknown log level {raw!r}")
    return level
