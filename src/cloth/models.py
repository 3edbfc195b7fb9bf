# models.py
from __future__ import annotations

from collections.abc import Sequence
from enum import IntEnum

from cloth.types import PIN_PREDICATE


class ConstraintType(IntEnum):
    STRUCTURAL = 0
    SHEAR = 1
    BENDING = 2

    @property
    def stiffness(self) -> float:
        return TYPE_STIFFNESS[self]


TYPE_STIFFNESS = {
    ConstraintType.STRUCTURAL: 1.0,
    ConstraintType.SHEAR: 0.8,
    ConstraintType.BENDING: 0.5,
}


class PinMode(IntEnum):
    TRAILING = 0  # shoulder blocks trail their own anchor
    SPAN = 1  # pins spread linearly between the two anchors


class Constraint:
    __slots__ = ["a", "b", "rest_length", "type"]

    def __init__(self, a: int, b: int, rest_length: float, type: ConstraintType) -> None:
        self.a = a
        self.b = b
        self.rest_length = rest_length
        self.type = type

    @property
    def type_stiffness(self) -> float:
        return self.type.stiffness

    def __repr__(self) -> str:
        return f"Constraint({self.a}, {self.b}, {self.rest_length:.4f}, {self.type.name})"


def cape_pins(segments_x: int) -> PIN_PREDICATE:
    """Top row, within two columns of either edge."""

    def is_pinned(col: int, row: int) -> bool:
        return row == 0 and (col <= 2 or col >= segments_x - 2)

    return is_pinned


class GridParams:
    def __init__(
        self,
        width: float = 0.8,
        height: float = 1.2,
        segments_x: int = 12,
        segments_y: int = 18,
        is_pinned: PIN_PREDICATE | None = None,
    ) -> None:
        self.width = width
        self.height = height
        self.segments_x = segments_x
        self.segments_y = segments_y
        self.is_pinned = is_pinned if is_pinned is not None else cape_pins(segments_x)

    @property
    def spacing_x(self) -> float:
        return self.width / self.segments_x

    @property
    def spacing_y(self) -> float:
        return self.height / self.segments_y


class ClothConfig:
    """
    Per-step physics parameters.

    The solver reads these as given. The ranges below describe where the
    simulation behaves well; only `clamped()` enforces them.
    """

    RANGES = {
        "gravity": (0.0, 40.0),
        "wind_strength": (0.0, 15.0),
        "stiffness": (0.3, 1.0),
        "damping": (0.9, 0.995),
        "iterations": (1, 20),
    }

    def __init__(
        self,
        gravity: float = 15.0,
        wind_strength: float = 3.0,
        stiffness: float = 0.9,
        damping: float = 0.98,
        iterations: int = 8,
        show_particles: bool = False,
        show_constraints: bool = False,
    ) -> None:
        self.gravity = gravity
        self.wind_strength = wind_strength
        self.stiffness = stiffness
        self.damping = damping
        self.iterations = iterations
        self.show_particles = show_particles
        self.show_constraints = show_constraints

    def copy(self, **changes: float | int | bool) -> ClothConfig:
        values = dict(vars(self))
        values.update(changes)
        return ClothConfig(**values)  # type: ignore[arg-type]

    def clamped(self) -> ClothConfig:
        changes: dict[str, float | int] = {}
        for name, (lo, hi) in self.RANGES.items():
            changes[name] = min(hi, max(lo, getattr(self, name)))
        changes["iterations"] = int(round(changes["iterations"]))
        return self.copy(**changes)


class StepInputs:
    def __init__(
        self,
        dt: float,
        elapsed: float,
        anchors: Sequence[Sequence[float]],
        config: ClothConfig,
    ) -> None:
        self.dt = dt
        self.elapsed = elapsed
        self.anchors = anchors
        self.config = config
