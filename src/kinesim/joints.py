"""Joint model, joint state and the resolver interface used by the compiler.

The expression compiler never talks to a simulator directly. It consults a
``JointResolver``, which answers three questions about a joint name (does it
exist, what is its index, what are its limits) and exposes the live
``JointState`` arrays that compiled expressions read from.

``JointModel`` is a small in-memory resolver. A host simulator that loads a
URDF can implement the protocol itself; ``JointModel`` covers tests, the CLI
and hosts that describe their joints in YAML::

    joints:
      - name: elbow
        lower: -1.57
        upper: 1.57
        velocity: 2.0
        effort: 30.0

Classes:
    JointLimits: Frozen limit snapshot of one joint.
    JointSpec: Name plus limits, the unit a JointModel is built from.
    JointState: Position, velocity and effort arrays indexed by joint index.
    JointResolver: Protocol consumed by the compiler.
    JointModel: In-memory JointResolver implementation.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import numpy as np
import yaml

from kinesim.exceptions import ConfigError
from kinesim.yaml_loader import load_document

__all__ = [
    "JointLimits",
    "JointSpec",
    "JointState",
    "JointResolver",
    "JointModel",
    "load_joint_model",
]

LIMIT_FIELDS = ("lower", "upper", "velocity", "effort")


@dataclass(frozen=True, slots=True)
class JointLimits:
    """Static limits of a single joint.

    A field is None when the robot model does not define that limit (e.g. a
    continuous joint has no position limits).

    Attributes:
        lower: Lower position limit.
        upper: Upper position limit.
        velocity: Maximum absolute velocity.
        effort: Maximum absolute effort.
    """

    lower: float | None = None
    upper: float | None = None
    velocity: float | None = None
    effort: float | None = None

    def missing(self, names: Iterable[str]) -> tuple[str, ...]:
        """Return the subset of ``names`` that are not defined."""
        return tuple(name for name in names if getattr(self, name) is None)


@dataclass(frozen=True, slots=True)
class JointSpec:
    """A named joint and its limits."""

    name: str
    limits: JointLimits = field(default_factory=JointLimits)


@dataclass
class JointState:
    """Live joint state, one array slot per joint index.

    Arrays are float64 and are mutated in place by the host every tick; they
    are never reallocated while compiled expressions hold a reference to the
    state object.

    Attributes:
        names: Joint names in index order.
        position: Joint positions.
        velocity: Joint velocities.
        effort: Joint efforts.
    """

    names: tuple[str, ...]
    position: np.ndarray
    velocity: np.ndarray
    effort: np.ndarray

    @classmethod
    def zeros(cls, names: Iterable[str]) -> JointState:
        """Create a state with every channel of every joint at zero."""
        names = tuple(names)
        return cls(
            names=names,
            position=np.zeros(len(names)),
            velocity=np.zeros(len(names)),
            effort=np.zeros(len(names)),
        )

    def channel(self, name: str) -> np.ndarray:
        """Return the array of the ``position``/``velocity``/``effort`` channel."""
        if name not in ("position", "velocity", "effort"):
            raise KeyError(f"Unknown joint-state channel '{name}'")
        array: np.ndarray = getattr(self, name)
        return array


@runtime_checkable
class JointResolver(Protocol):
    """Name binding capability the expression compiler depends on.

    The set of known joints and their indices must not change while an
    expression graph compiled against the resolver is alive.
    """

    @property
    def state(self) -> JointState:
        """Live joint state read by compiled expressions."""
        ...

    def has_joint(self, name: str) -> bool:
        """Return True if ``name`` is a joint of the model."""
        ...

    def joint_index(self, name: str) -> int:
        """Return the state-array index of ``name``."""
        ...

    def joint_limits(self, name: str) -> JointLimits:
        """Return the limits of ``name``."""
        ...


def _joint_name(raw: Any) -> str | None:
    # Unquoted integer names such as `1` arrive from YAML as int.
    if isinstance(raw, int) and not isinstance(raw, bool):
        return str(raw)
    return raw if isinstance(raw, str) else None


class JointModel:
    """In-memory ``JointResolver`` over a fixed list of joints.

    Example:
        ```python
        model = JointModel(
            [JointSpec("j1", JointLimits(lower=-1.0, upper=1.0))]
        )
        model.state.position[model.joint_index("j1")] = 0.5
        ```
    """

    def __init__(self, joints: Iterable[JointSpec]) -> None:
        self._joints: tuple[JointSpec, ...] = tuple(joints)
        self._index: dict[str, int] = {}
        for idx, joint in enumerate(self._joints):
            if joint.name in self._index:
                raise ConfigError(
                    f"Duplicate joint name '{joint.name}' in joint model",
                    field="joints",
                    value=joint.name,
                )
            self._index[joint.name] = idx
        self._state = JointState.zeros(j.name for j in self._joints)

    @classmethod
    def from_document(cls, data: Any) -> JointModel:
        """Build a model from a parsed YAML document.

        The document is either a mapping with a ``joints`` key or the joint
        list itself. Each entry needs a ``name``; limit keys are optional.

        Raises:
            ConfigError: If the document does not have that shape.
        """
        if isinstance(data, Mapping):
            data = data.get("joints")
        if not isinstance(data, list):
            raise ConfigError(
                "Joint model must be a list of joints or a mapping with a "
                "'joints' list",
                field="joints",
                value=data,
            )

        specs = []
        for position, entry in enumerate(data):
            name = None
            if isinstance(entry, Mapping):
                name = _joint_name(entry.get("name"))
            if name is None:
                raise ConfigError(
                    "Each joint needs a 'name' string",
                    field=f"joints[{position}]",
                    value=entry,
                )
            limits = {}
            for key in LIMIT_FIELDS:
                raw = entry.get(key)
                if raw is None:
                    continue
                try:
                    limits[key] = float(raw)
                except (TypeError, ValueError) as e:
                    raise ConfigError(
                        f"Limit '{key}' of joint '{name}' is not a number",
                        field=f"joints[{position}].{key}",
                        value=raw,
                    ) from e
            specs.append(JointSpec(name, JointLimits(**limits)))
        return cls(specs)

    @property
    def state(self) -> JointState:
        return self._state

    @property
    def joint_names(self) -> tuple[str, ...]:
        return self._state.names

    def __len__(self) -> int:
        return len(self._joints)

    def __iter__(self) -> Iterator[JointSpec]:
        return iter(self._joints)

    def has_joint(self, name: str) -> bool:
        return name in self._index

    def joint_index(self, name: str) -> int:
        return self._index[name]

    def joint_limits(self, name: str) -> JointLimits:
        return self._joints[self._index[name]].limits

    def set_state(
        self,
        name: str,
        *,
        position: float | None = None,
        velocity: float | None = None,
        effort: float | None = None,
    ) -> None:
        """Overwrite channels of one joint; channels left as None are kept."""
        idx = self._index[name]
        if position is not None:
            self._state.position[idx] = position
        if velocity is not None:
            self._state.velocity[idx] = velocity
        if effort is not None:
            self._state.effort[idx] = effort

    def update_state(self, data: Any) -> None:
        """Overwrite channels from a ``{joint: {position, velocity, effort}}`` document.

        Raises:
            ConfigError: If the document names an unknown joint or channel, or
                a value is not a number.
        """
        if not isinstance(data, Mapping):
            raise ConfigError(
                "Joint state must be a mapping of joint names",
                field="state",
                value=data,
            )
        for key, channels in data.items():
            name = _joint_name(key)
            if name is None or name not in self._index:
                raise ConfigError(
                    f"Unknown joint '{key}' in joint state", field="state", value=key
                )
            if not isinstance(channels, Mapping):
                raise ConfigError(
                    f"State of joint '{name}' must be a mapping",
                    field=f"state.{name}",
                    value=channels,
                )
            for channel, raw in channels.items():
                try:
                    array = self._state.channel(channel)
                except KeyError as e:
                    raise ConfigError(
                        f"Unknown channel '{channel}' for joint '{name}'",
                        field=f"state.{name}",
                        value=channel,
                    ) from e
                try:
                    array[self._index[name]] = float(raw)
                except (TypeError, ValueError) as e:
                    raise ConfigError(
                        f"{channel} of joint '{name}' is not a number",
                        field=f"state.{name}.{channel}",
                        value=raw,
                    ) from e


def load_joint_model(path: Path) -> JointModel:
    """Load a ``JointModel`` from a YAML file.

    Raises:
        ConfigError: If the file is missing, is not valid YAML, or does not
            describe a joint list.
    """
    try:
        with open(path) as f:
            data = load_document(f)
    except OSError as e:
        raise ConfigError(
            f"Cannot read joint model {path}: {e.strerror}",
            field="model_file",
            value=str(path),
        ) from e
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML in {path}: {e}",
            field="model_file",
            value=str(path),
        ) from e
    return JointModel.from_document(data)
