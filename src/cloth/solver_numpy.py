# solver_numpy.py
"""
Verlet cloth solver with sequential constraint relaxation.
"""

from collections.abc import Sequence
import math

from numba import njit  # type: ignore
import numpy as np

from cloth.mesh.constraints import ConstraintGraph, build_constraints
from cloth.mesh.grid import ParticleGrid, generate_grid, grid_uvs, triangulate
from cloth.models import ClothConfig, GridParams, PinMode, StepInputs
from cloth.types import INDEX, MASK, SCALARS, VEC3S

DEFAULT_SUBSTEPS = 3
BACK_FACE_WIND = 0.3
PIN_BLEND = 0.2
STATS_INTERVAL = 600

# ===============================
# PHYSICS KERNELS
# ===============================


def wind_vector(t: float, strength: float, sub_dt: float) -> tuple[float, float, float]:
    """Turbulent gust already scaled into per-substep displacement units."""
    dt_sq = sub_dt * sub_dt
    wx = math.sin(t * 2.3) * 0.5 + math.sin(t * 5.1) * 0.2
    wz = math.cos(t * 1.7) * 0.8 + 1.0
    return (
        wx * strength * dt_sq,
        math.sin(t * 3) * strength * 0.1 * dt_sq,
        wz * strength * dt_sq,
    )


@njit(fastmath=True, cache=True)  # type: ignore
def drive_pins(
    pos: VEC3S,
    pinned_mask: MASK,
    cols: int,
    anchor0: VEC3S,
    anchor1: VEC3S,
    mode: int,
) -> None:
    """Move top-row pinned particles onto the anchors and flatten them to z = 0."""
    segments_x = cols - 1
    for i in range(len(pos)):
        if not pinned_mask[i]:
            continue
        row = i // cols
        col = i % cols
        if row != 0:
            continue

        if mode == 1:
            if col > 2 and col < segments_x - 2:
                continue
            src = anchor0
            dst = anchor1
            t = col / segments_x
        elif col <= 2:
            src = anchor0
            dst = anchor1
            t = col / 2 * PIN_BLEND
        elif col >= segments_x - 2:
            src = anchor1
            dst = anchor0
            t = (segments_x - col) / 2 * PIN_BLEND
        else:
            continue

        pos[i, 0] = src[0] + (dst[0] - src[0]) * t
        pos[i, 1] = src[1] + (dst[1] - src[1]) * t
        pos[i, 2] = 0.0


@njit(fastmath=True, cache=True)  # type: ignore
def accumulate_forces(
    force: VEC3S,
    pos: VEC3S,
    pinned_mask: MASK,
    mass: SCALARS,
    gravity_y: float,
    wx: float,
    wy: float,
    wz: float,
) -> None:
    """Gravity plus wind, with the back face (z < 0) catching less wind."""
    for i in range(len(pos)):
        if pinned_mask[i]:
            continue
        m = mass[i]
        force[i, 1] += gravity_y / m

        scale = BACK_FACE_WIND if pos[i, 2] < 0.0 else 1.0
        force[i, 0] += wx * scale / m
        force[i, 1] += wy * scale / m
        force[i, 2] += wz * scale / m


@njit(fastmath=True, cache=True)  # type: ignore
def integrate_verlet(
    pos: VEC3S,
    prev_pos: VEC3S,
    force: VEC3S,
    pinned_mask: MASK,
    damping: float,
) -> None:
    """Position Verlet. Forces are displacements and are consumed here."""
    for i in range(len(pos)):
        if pinned_mask[i]:
            continue

        vx = (pos[i, 0] - prev_pos[i, 0]) * damping
        vy = (pos[i, 1] - prev_pos[i, 1]) * damping
        vz = (pos[i, 2] - prev_pos[i, 2]) * damping

        prev_pos[i, :] = pos[i, :]

        pos[i, 0] += vx
        pos[i, 1] += vy
        pos[i, 2] += vz
        pos[i, 0] += force[i, 0]
        pos[i, 1] += force[i, 1]
        pos[i, 2] += force[i, 2]

        force[i, 0] = 0.0
        force[i, 1] = 0.0
        force[i, 2] = 0.0


@njit(fastmath=True, cache=True)  # type: ignore
def solve_constraints(
    pos: VEC3S,
    spring_i: INDEX,
    spring_j: INDEX,
    rest_lengths: SCALARS,
    type_stiffness: SCALARS,
    pinned_mask: MASK,
    stiffness: float,
    iterations: int,
) -> None:
    """
    Gauss-Seidel relaxation in creation order, in place.

    A free particle whose partner is pinned takes twice the correction so the
    pair still closes the same amount of strain.
    """
    for _ in range(iterations):
        for s in range(len(spring_i)):
            a = spring_i[s]
            b = spring_j[s]

            pinned_a = pinned_mask[a]
            pinned_b = pinned_mask[b]
            if pinned_a and pinned_b:
                continue

            dx = pos[b, 0] - pos[a, 0]
            dy = pos[b, 1] - pos[a, 1]
            dz = pos[b, 2] - pos[a, 2]

            dist = np.sqrt(dx * dx + dy * dy + dz * dz)
            if dist == 0.0:
                continue

            factor = (dist - rest_lengths[s]) / dist * stiffness * type_stiffness[s] * 0.5
            off_x = dx * factor
            off_y = dy * factor
            off_z = dz * factor

            if not pinned_a and not pinned_b:
                pos[a, 0] += off_x
                pos[a, 1] += off_y
                pos[a, 2] += off_z
                pos[b, 0] -= off_x
                pos[b, 1] -= off_y
                pos[b, 2] -= off_z
            elif not pinned_a:
                pos[a, 0] += off_x * 2.0
                pos[a, 1] += off_y * 2.0
                pos[a, 2] += off_z * 2.0
            else:
                pos[b, 0] -= off_x * 2.0
                pos[b, 1] -= off_y * 2.0
                pos[b, 2] -= off_z * 2.0


def residual_strain(pos: VEC3S, graph: ConstraintGraph) -> float:
    """Sum of |length - rest length| over every constraint."""
    delta = pos[graph.spring_j] - pos[graph.spring_i]
    dist = np.linalg.norm(delta, axis=1)
    return float(np.abs(dist - graph.rest_lengths).sum())


# ===============================
# SOLVER CLASS
# ===============================


class ClothSolver:
    """
    Fixed-substep cloth stepper:
    - Pins follow two anchors
    - Gravity and turbulent wind as Verlet displacements
    - Sequential constraint relaxation
    - Optional debug point/line buffers
    """

    def __init__(
        self,
        grid: ParticleGrid,
        graph: ConstraintGraph,
        substeps: int = DEFAULT_SUBSTEPS,
        pin_mode: PinMode = PinMode.TRAILING,
    ) -> None:
        self.grid = grid
        self.graph = graph
        self.substeps = substeps
        self.pin_mode = pin_mode

        # Shared with the grid, mutated in place
        self.pos = grid.pos
        self.prev_pos = grid.prev_pos
        self.force = grid.force
        self.pinned_mask = grid.pinned_mask
        self.mass = grid.mass

        # Rendering collaborators read these
        self.faces = triangulate(grid.segments_x, grid.segments_y)
        self.uvs = grid_uvs(grid.segments_x, grid.segments_y)
        self.debug_points = np.zeros_like(self.pos)
        self.debug_lines = np.zeros((2 * len(graph), 3), dtype=np.float64)
        self.refresh_debug(True, True)

        # Diagnostics
        self.is_exploded = False
        self.max_displacement = 0.0
        self.steps_stable = 0

        print("Solver initialized:")
        print(f"  - {len(grid)} particles")
        print(f"  - {len(graph)} constraints")
        print(f"  - {len(self.faces)} faces")
        print(f"  - {substeps} substeps, pin mode {pin_mode.name}")

    def update(
        self,
        dt: float,
        elapsed: float,
        anchors: Sequence[Sequence[float]],
        config: ClothConfig,
        out: VEC3S | None = None,
    ) -> VEC3S:
        """Advance one frame of `dt` seconds and return the positions."""
        anchor0 = np.asarray(anchors[0], dtype=np.float64)
        anchor1 = np.asarray(anchors[1], dtype=np.float64)
        damping = float(config.damping)
        stiffness = float(config.stiffness)
        iterations = int(config.iterations)

        old_pos = self.pos.copy()
        sub_dt = dt / self.substeps

        for _ in range(self.substeps):
            drive_pins(
                self.pos,
                self.pinned_mask,
                self.grid.cols,
                anchor0,
                anchor1,
                int(self.pin_mode),
            )

            wx, wy, wz = wind_vector(elapsed, config.wind_strength, sub_dt)
            accumulate_forces(
                self.force,
                self.pos,
                self.pinned_mask,
                self.mass,
                -config.gravity * sub_dt * sub_dt,
                wx,
                wy,
                wz,
            )
            integrate_verlet(self.pos, self.prev_pos, self.force, self.pinned_mask, damping)

            solve_constraints(
                self.pos,
                self.graph.spring_i,
                self.graph.spring_j,
                self.graph.rest_lengths,
                self.graph.type_stiffness,
                self.pinned_mask,
                stiffness,
                iterations,
            )

        if out is not None:
            out[:] = self.pos
        self.refresh_debug(config.show_particles, config.show_constraints)

        self._check_stability(old_pos)
        return self.pos

    def refresh_debug(self, points: bool, lines: bool) -> None:
        """Copy current positions into the selected debug buffers."""
        if points:
            self.debug_points[:] = self.pos
        if lines:
            self.debug_lines[0::2] = self.pos[self.graph.spring_i]
            self.debug_lines[1::2] = self.pos[self.graph.spring_j]

    def residual_strain(self) -> float:
        return residual_strain(self.pos, self.graph)

    def reset(self) -> None:
        self.grid.reset()
        self.refresh_debug(True, True)
        self.is_exploded = False
        self.max_displacement = 0.0
        self.steps_stable = 0
        print("[Solver] Reset")

    def _check_stability(self, old_pos: VEC3S) -> None:
        if not np.isfinite(self.pos).all():
            if not self.is_exploded:
                self.is_exploded = True
                print("Warning: Simulation became unstable!")
                print(f"  Max displacement: {self.max_displacement:.4f}")
            return

        displacement = float(np.max(np.abs(self.pos - old_pos)))
        self.max_displacement = max(self.max_displacement, displacement)
        self.steps_stable += 1
        if self.steps_stable % STATS_INTERVAL == 0:
            print(
                f"Stable for {self.steps_stable} steps | Max displacement: {self.max_displacement:.4f}"
            )


def construct(
    params: GridParams | None = None,
    substeps: int = DEFAULT_SUBSTEPS,
    pin_mode: PinMode = PinMode.TRAILING,
) -> ClothSolver:
    grid = generate_grid(params)
    graph = build_constraints(grid)
    return ClothSolver(grid, graph, substeps=substeps, pin_mode=pin_mode)


def step(state: ClothSolver, inputs: StepInputs, out: VEC3S | None = None) -> ClothSolver:
    state.update(inputs.dt, inputs.elapsed, inputs.anchors, inputs.config, out=out)
    return state
