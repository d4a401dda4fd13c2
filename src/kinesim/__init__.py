"""kinesim: fake-controller expressions for a naive kinematics simulator.

Joints that are not driven by an actuator can have their position, velocity
and effort synthesized from small arithmetic expressions over the state of
other joints. This package compiles those expressions from a YAML document
into an immutable expression graph and evaluates them against live joint
state.
"""

from __future__ import annotations

__version__ = "0.1.0"
