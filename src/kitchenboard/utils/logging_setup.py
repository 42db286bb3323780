"""Root logger bootstrap for Kitchenboard entry points."""

from __future__ import annotations

import logging

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def resolve_level(level: int | str) -> int:
    """Map a level name such as ``"debug"`` to its numeric value."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(level: int | str = logging.INFO, *, fmt: str = DEFAULT_FORMAT) -> None:
    """Install a stderr handler on the root logger unless one exists already."""
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(resolve_level(level))
        return
    logging.basicConfig(level=resolve_level(level), format=fmt)
