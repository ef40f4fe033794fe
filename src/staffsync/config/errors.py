"""Errors raised while reading staffsync settings from the environment."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class ConfigurationError(RuntimeError):
    """A setting is present but unusable. ``keys`` names the offending variables."""

    def __init__(self, message: str, *, keys: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.keys: tuple[str, ...] = tuple(keys)


class MissingConfigurationError(ConfigurationError):
    def __init__(self, keys: Iterable[str]) -> None:
        names = sorted(keys)
        super().__init__(f"Missing configuration for: {', '.join(names)}", keys=names)
