# constraints.py
"""
Distance constraints derived from grid topology:
1. Structural springs to the right and lower neighbours
2. Shear springs along both downward diagonals
3. Bending springs that skip one particle
"""

from collections.abc import Iterator
import math

import numpy as np

from cloth.mesh.grid import ParticleGrid
from cloth.models import Constraint, ConstraintType
from cloth.types import INDEX, KINDS, SCALARS

# (dcol, drow, type) in emission order per particle
NEIGHBOUR_OFFSETS = (
    (1, 0, ConstraintType.STRUCTURAL),
    (0, 1, ConstraintType.STRUCTURAL),
    (1, 1, ConstraintType.SHEAR),
    (-1, 1, ConstraintType.SHEAR),
    (2, 0, ConstraintType.BENDING),
    (0, 2, ConstraintType.BENDING),
)


class ConstraintGraph:
    def __init__(
        self,
        spring_i: INDEX,
        spring_j: INDEX,
        rest_lengths: SCALARS,
        types: KINDS,
    ) -> None:
        self.spring_i = spring_i
        self.spring_j = spring_j
        self.rest_lengths = rest_lengths
        self.types = types
        self.type_stiffness = np.array(
            [ConstraintType(t).stiffness for t in types], dtype=np.float64
        )

    def __len__(self) -> int:
        return len(self.spring_i)

    def count(self, kind: ConstraintType) -> int:
        return int(np.count_nonzero(self.types == kind))

    def constraints(self) -> Iterator[Constraint]:
        for s in range(len(self)):
            yield Constraint(
                int(self.spring_i[s]),
                int(self.spring_j[s]),
                float(self.rest_lengths[s]),
                ConstraintType(int(self.types[s])),
            )


def build_constraints(grid: ParticleGrid) -> ConstraintGraph:
    """
    Scan every particle row-major and emit one constraint per existing
    neighbour offset. Reversed pairs are not merged.
    """
    spacing_x = grid.params.spacing_x
    spacing_y = grid.params.spacing_y
    rest_by_offset = {
        (1, 0): spacing_x,
        (0, 1): spacing_y,
        (1, 1): math.sqrt(spacing_x * spacing_x + spacing_y * spacing_y),
        (-1, 1): math.sqrt(spacing_x * spacing_x + spacing_y * spacing_y),
        (2, 0): spacing_x * 2,
        (0, 2): spacing_y * 2,
    }

    spring_i: list[int] = []
    spring_j: list[int] = []
    rest_lengths: list[float] = []
    types: list[int] = []

    for row in range(grid.rows):
        for col in range(grid.cols):
            p = grid.index(col, row)
            for dcol, drow, kind in NEIGHBOUR_OFFSETS:
                q = grid.index(col + dcol, row + drow)
                if q is None:
                    continue
                spring_i.append(p)  # type: ignore[arg-type]
                spring_j.append(q)
                rest_lengths.append(rest_by_offset[(dcol, drow)])
                types.append(int(kind))

    graph = ConstraintGraph(
        np.array(spring_i, dtype=np.int32),
        np.array(spring_j, dtype=np.int32),
        np.array(rest_lengths, dtype=np.float64),
        np.array(types, dtype=np.int8),
    )

    print(f"Generated {len(graph)} constraints")
    print(f"  Structural: {graph.count(ConstraintType.STRUCTURAL)} (stiff)")
    print(f"  Shear:      {graph.count(ConstraintType.SHEAR)} (medium)")
    print(f"  Bending:    {graph.count(ConstraintType.BENDING)} (soft)")
    return graph
