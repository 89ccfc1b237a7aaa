"""Deletion modes supported by the compactor."""

from __future__ import annotations

from enum import Enum

__all__ = ["UnknownModeError", "Mode", "all_modes", "parse_mode", "enabled"]


class UnknownModeError(ValueError):
    """Raised when a deletion mode name is not recognised."""


class Mode(Enum):
    """How log deletion requests are handled."""

    DISABLED = "disabled"
    FILTER_ONLY = "filter-only"
    FILTER_AND_DELETE = "filter-and-delete"

    def __str__(self) -> str:
        return self.value

    def delete_enabled(self) -> bool:
        """Whether deletion requests are honoured in this mode."""
        return self in (Mode.FILTER_ONLY, Mode.FILTER_AND_DELETE)


def all_modes() -> list[str]:
    """Names of every known mode, in declaration order."""
    return [str(mode) for mode in Mode]


def parse_mode(text: str) -> Mode:
    """Turn a mode name into a Mode, raising UnknownModeError if unknown."""
    for mode in Mode:
        if mode.value == text:
            return mode
    raise UnknownModeError(
        f"unknown deletion mode: must be one of {'|'.join(all_modes())}"
    )


def enabled(text: str) -> bool:
    """Whether the named mode allows deletions."""
    return parse_mode(text).delete_enabled()