# grid.py
"""
Regular particle grid for a hanging sheet.

Row 0 is the top edge, columns run left to right and the sheet is centered
horizontally on x = 0. Particle data lives in flat numpy arrays addressed by
`index(col, row) = row * (segments_x + 1) + col`.
"""

import numpy as np

from cloth.models import GridParams
from cloth.types import FACE, MASK, SCALARS, UV, VEC3S


class ParticleGrid:
    def __init__(
        self,
        params: GridParams,
        pos: VEC3S,
        pinned_mask: MASK,
        mass: SCALARS | None = None,
    ) -> None:
        self.params = params
        self.segments_x = params.segments_x
        self.segments_y = params.segments_y
        self.cols = params.segments_x + 1
        self.rows = params.segments_y + 1

        self.rest_pos = pos.copy()
        self.pos = pos.copy()
        # Zero initial velocity
        self.prev_pos = pos.copy()
        self.force = np.zeros_like(pos)

        self.pinned_mask = pinned_mask
        self.mass = mass if mass is not None else np.ones(len(pos), dtype=np.float64)

    def __len__(self) -> int:
        return len(self.pos)

    def index(self, col: int, row: int) -> int | None:
        if col < 0 or col > self.segments_x or row < 0 or row > self.segments_y:
            return None
        return row * self.cols + col

    def coords(self, idx: int) -> tuple[int, int]:
        return idx % self.cols, idx // self.cols

    def reset(self) -> None:
        self.pos[:] = self.rest_pos
        self.prev_pos[:] = self.rest_pos
        self.force[:] = 0.0


def generate_grid(params: GridParams | None = None) -> ParticleGrid:
    """
    Lay out `(segments_y + 1) x (segments_x + 1)` particles at rest.

    Args:
        params: Sheet size, resolution and pin predicate. Defaults to the cape.

    Returns:
        ParticleGrid with prev_pos equal to pos.
    """
    params = params if params is not None else GridParams()

    if params.segments_x < 1 or params.segments_y < 1:
        raise ValueError(
            f"segments must be >= 1, got {params.segments_x}x{params.segments_y}"
        )
    if params.width <= 0 or params.height <= 0:
        raise ValueError(f"sheet size must be positive, got {params.width}x{params.height}")

    sx, sy = params.segments_x, params.segments_y
    spacing_x, spacing_y = params.spacing_x, params.spacing_y

    cols = np.arange(sx + 1, dtype=np.float64)
    rows = np.arange(sy + 1, dtype=np.float64)
    grid_x, grid_y = np.meshgrid((cols - sx / 2) * spacing_x, -rows * spacing_y)

    pos = np.zeros(((sx + 1) * (sy + 1), 3), dtype=np.float64)
    pos[:, 0] = grid_x.ravel()
    pos[:, 1] = grid_y.ravel()

    pinned_mask = np.array(
        [bool(params.is_pinned(col, row)) for row in range(sy + 1) for col in range(sx + 1)],
        dtype=np.bool_,
    )

    print(f"Generated {len(pos)} particles ({sx + 1}x{sy + 1}), {int(pinned_mask.sum())} pinned")
    return ParticleGrid(params, pos, pinned_mask)


def triangulate(segments_x: int, segments_y: int) -> FACE:
    """Two triangles per cell, counter-clockwise seen from +z."""
    faces: list[list[int]] = []
    for row in range(segments_y):
        for col in range(segments_x):
            a = row * (segments_x + 1) + col
            b = a + 1
            c = a + (segments_x + 1)
            d = c + 1
            faces.append([a, c, b])
            faces.append([b, c, d])
    return np.array(faces, dtype=np.int32)


def grid_uvs(segments_x: int, segments_y: int) -> UV:
    u, v = np.meshgrid(
        np.arange(segments_x + 1) / segments_x,
        1.0 - np.arange(segments_y + 1) / segments_y,
    )
    return np.stack([u.ravel(), v.ravel()], axis=1).astype(np.float32)
