"""Shared test fixtures for the kinesim test suite.

Joint models (from tests/fixtures/joints.py)
--------------------------------------------

Fixtures:
    joint_model: JointModel with joints j1, j2 (fully limited) and j3
        (continuous: no position limits, velocity and effort only).
    model_yaml: YAML text describing the same three joints.
    controllers_yaml: A fake-controller document exercising every channel.
    model_file / controllers_file: The YAML texts written into temp_dir.

Configuration (from tests/fixtures/config.py)
---------------------------------------------

Fixtures:
    sample_config: KinesimConfig loaded from a kinesim.yaml in temp_dir.

Example:
    >>> def test_compile(joint_model):
    ...     controllers = compile_controllers(
    ...         [{"j2": {"position": {"pos-of": "j1"}}}], joint_model
    ...     )
    ...     assert len(controllers) == 1
"""

from __future__ import annotations

from tests.fixtures.config import sample_config
from tests.fixtures.joints import (
    controllers_file,
    controllers_yaml,
    joint_model,
    model_file,
    model_yaml,
)

__all__ = [
    "sample_config",
    "joint_model",
    "model_yaml",
    "controllers_yaml",
    "model_file",
    "controllers_file",
]
