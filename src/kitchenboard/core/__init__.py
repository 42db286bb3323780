"""Core kitchen board logic: derivation, synchronization and guarded actions."""

from .logging import ensure_runtime_dirs, log_event

__all__ = ["ensure_runtime_dirs", "log_event"]
