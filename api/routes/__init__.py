"""Route registration helpers."""

from . import (  # noqa: F401
    config,
    health,
    standings,
)

__all__ = [
    "config",
    "health",
    "standings",
]
