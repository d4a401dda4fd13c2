"""Shared constants for kinesim."""

from __future__ import annotations

from typing import Final

# Channel keys of a fake-controller entry, mapped to the joint-state array
# they override. "velocitiy" is the historical spelling used by existing
# controller files and must stay as it is.
POSITION_KEY: Final[str] = "position"
VELOCITY_KEY: Final[str] = "velocitiy"
EFFORT_KEY: Final[str] = "effort"

CHANNEL_KEYS: Final[dict[str, str]] = {
    POSITION_KEY: "position",
    VELOCITY_KEY: "velocity",
    EFFORT_KEY: "effort",
}

# Configuration file names
PROJECT_CONFIG_FILE: Final[str] = "kinesim.yaml"
USER_CONFIG_DIR: Final[str] = "kinesim"
