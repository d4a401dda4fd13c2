"""Output formatting utilities for the kinesim CLI."""

from __future__ import annotations

import json
import math
from collections.abc import Mapping, Sequence
from enum import IntEnum
from typing import Any

from kinesim.dsl.controllers import ChannelValues

__all__ = [
    "ExitCode",
    "format_error",
    "format_success",
    "format_json",
    "format_channel_values",
    "channel_values_to_dict",
]


class ExitCode(IntEnum):
    """Exit codes of the kinesim CLI."""

    SUCCESS = 0
    FAILURE = 1


def format_error(message: str, details: list[str] | None = None) -> str:
    """Format an error message with optional indented detail lines.

    Example:
        >>> print(format_error("Compile failed", details=["Unknown joint 'j9'"]))
        Error: Compile failed
          Unknown joint 'j9'
    """
    lines = [f"Error: {message}"]
    for detail in details or []:
        lines.append(f"  {detail}")
    return "\n".join(lines)


def format_success(message: str) -> str:
    return f"Success: {message}"


def _json_number(value: float) -> float | str:
    # JSON has no inf/nan literals.
    if math.isfinite(value):
        return value
    return repr(value)


def format_json(data: Any) -> str:
    return json.dumps(data, indent=2)


def channel_values_to_dict(
    values: ChannelValues, names: Sequence[str]
) -> dict[str, dict[str, float | str]]:
    """Key channel values by joint name instead of index."""
    result: dict[str, dict[str, float | str]] = {}
    for channel in ("position", "velocity", "effort"):
        per_joint: Mapping[int, float] = getattr(values, channel)
        result[channel] = {
            names[idx]: _json_number(value) for idx, value in sorted(per_joint.items())
        }
    return result


def format_channel_values(
    values: ChannelValues, names: Sequence[str], precision: int = 6
) -> str:
    """Render channel values as aligned ``channel  joint  value`` rows."""
    rows = []
    for channel in ("position", "velocity", "effort"):
        per_joint: Mapping[int, float] = getattr(values, channel)
        for idx, value in sorted(per_joint.items()):
            rows.append((channel, names[idx], f"{value:.{precision}g}"))
    if not rows:
        return "No fake controllers configured."
    joint_width = max(len(row[1]) for row in rows)
    return "\n".join(
        f"{channel:<8}  {joint:<{joint_width}}  {value}" for channel, joint, value in rows
    )
