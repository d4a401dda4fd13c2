"""kinesim exception hierarchy.

All exceptions can be imported from this package:
    from kinesim.exceptions import ConfigError, KinesimError

DSL compile errors live in ``kinesim.dsl.errors`` and also derive from
``KinesimError``.
"""

from __future__ import annotations

from kinesim.exceptions.base import KinesimError
from kinesim.exceptions.config import ConfigError

__all__ = [
    "KinesimError",
    "ConfigError",
]
