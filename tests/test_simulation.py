import numpy as np
import pytest

from cloth.models import ClothConfig, GridParams, PinMode, StepInputs
from cloth.solver_numpy import construct, drive_pins, step

FRAME = 1.0 / 60.0


def rest_anchors(solver):
    """Anchors sitting on the outermost top-row particles."""
    return [solver.pos[0].copy(), solver.pos[solver.grid.cols - 1].copy()]


def test_repeated_steps_are_bit_identical():
    config = ClothConfig(gravity=20.0, wind_strength=6.0, iterations=12)
    anchors = [np.array([-0.5, 0.9, 0.0]), np.array([0.35, 0.7, 0.0])]

    results = []
    for _ in range(2):
        solver = construct()
        for frame in range(5):
            solver.update(FRAME, frame * FRAME, anchors, config)
        results.append(solver.pos.copy())

    assert np.array_equal(results[0], results[1])


def test_pinned_particles_end_where_the_driver_put_them(cape_params):
    solver = construct(cape_params)
    anchors = [np.array([-0.55, 0.9, 0.2]), np.array([0.3, 0.75, -0.1])]
    expected = solver.pos.copy()
    drive_pins(expected, solver.pinned_mask, solver.grid.cols, anchors[0], anchors[1], 0)

    solver.update(FRAME, 0.5, anchors, ClothConfig(gravity=40.0, wind_strength=15.0, iterations=20))

    pinned = solver.pinned_mask
    np.testing.assert_array_equal(solver.pos[pinned], expected[pinned])


def test_single_cell_falls_by_gravity():
    params = GridParams(
        width=1.0, height=1.0, segments_x=1, segments_y=1,
        is_pinned=lambda col, row: col == 0 and row == 0,
    )
    solver = construct(params, substeps=1)
    idx = solver.grid.index(1, 1)
    initial = solver.pos[idx].copy()
    config = ClothConfig(gravity=10.0, wind_strength=0.0, damping=0.98, iterations=0)

    solver.update(1.0, 0.0, rest_anchors(solver), config)

    assert solver.pos[idx, 1] == initial[1] - 10.0
    assert solver.pos[idx, 0] == initial[0]
    assert solver.pos[idx, 2] == initial[2]


def single_cell(**kwargs):
    params = GridParams(
        width=1.0, height=1.0, segments_x=1, segments_y=1,
        is_pinned=lambda col, row: col == 0 and row == 0,
    )
    return construct(params, **kwargs)


def test_frame_is_split_into_equal_substeps():
    solver = single_cell(substeps=3)
    idx = solver.grid.index(1, 1)
    start_y = solver.pos[idx, 1]
    config = ClothConfig(gravity=10.0, wind_strength=0.0, damping=1.0, iterations=0)

    solver.update(0.3, 0.0, rest_anchors(solver), config)

    # 10 * 0.1^2 * (1 + 2 + 3)
    assert start_y - solver.pos[idx, 1] == pytest.approx(0.6)


def test_pins_move_before_constraints_relax():
    solver = single_cell(substeps=1)
    free = solver.grid.index(1, 0)
    assert solver.pos[free, 0] == 0.5
    anchors = [np.array([-1.5, 0.0, 0.0]), solver.pos[free].copy()]
    config = ClothConfig(gravity=0.0, wind_strength=0.0, stiffness=1.0, damping=1.0, iterations=1)

    solver.update(FRAME, 0.0, anchors, config)

    np.testing.assert_array_equal(solver.pos[0], [-1.5, 0.0, 0.0])
    assert solver.pos[free, 0] < 0.5


def test_long_run_at_rest_stays_bounded(cape_params):
    solver = construct(cape_params)
    anchors = rest_anchors(solver)
    config = ClothConfig(gravity=0.0, wind_strength=0.0, damping=0.98)
    initial_var = float(np.var(solver.pos))

    for frame in range(1000):
        solver.update(FRAME, frame * FRAME, anchors, config)

    assert np.isfinite(solver.pos).all()
    assert not solver.is_exploded
    assert float(np.var(solver.pos)) < 2.0 * initial_var
    assert np.abs(solver.pos).max() < 2.0


def test_hanging_cape_settles_under_gravity(cape_params):
    solver = construct(cape_params)
    anchors = rest_anchors(solver)
    config = ClothConfig(wind_strength=0.0)

    for frame in range(300):
        solver.update(FRAME, frame * FRAME, anchors, config)

    bottom = solver.pos[solver.grid.index(6, 18)]
    assert np.isfinite(solver.pos).all()
    assert -3.0 < bottom[1] < -1.0
    assert np.isfinite(solver.residual_strain())


def test_wind_pushes_cloth_forward(cape_params):
    solver = construct(cape_params)
    config = ClothConfig(gravity=0.0, wind_strength=10.0)

    solver.update(FRAME, 0.0, rest_anchors(solver), config)

    free = ~solver.pinned_mask
    assert solver.pos[free, 2].mean() > 0.0
    bottom_row = solver.pos[solver.grid.index(0, 18) :]
    assert np.all(bottom_row[:, 2] > 0.0)


def test_out_buffer_receives_positions(unit_params):
    solver = construct(unit_params)
    out = np.zeros_like(solver.pos)

    returned = solver.update(FRAME, 0.0, rest_anchors(solver), ClothConfig(), out=out)

    np.testing.assert_array_equal(out, solver.pos)
    assert returned is solver.pos


def test_debug_buffers_start_at_rest(unit_params):
    solver = construct(unit_params)
    graph = solver.graph

    np.testing.assert_array_equal(solver.debug_points, solver.pos)
    np.testing.assert_array_equal(solver.debug_lines[0::2], solver.pos[graph.spring_i])
    np.testing.assert_array_equal(solver.debug_lines[1::2], solver.pos[graph.spring_j])


def test_debug_buffers_only_refresh_when_enabled(unit_params):
    solver = construct(unit_params)
    anchors = rest_anchors(solver)
    rest_points = solver.debug_points.copy()
    rest_lines = solver.debug_lines.copy()

    solver.update(FRAME, 0.0, anchors, ClothConfig())
    assert not np.array_equal(solver.pos, rest_points)
    np.testing.assert_array_equal(solver.debug_points, rest_points)
    np.testing.assert_array_equal(solver.debug_lines, rest_lines)

    solver.update(FRAME, 0.0, anchors, ClothConfig(show_particles=True))
    np.testing.assert_array_equal(solver.debug_points, solver.pos)
    np.testing.assert_array_equal(solver.debug_lines, rest_lines)

    solver.update(FRAME, 0.0, anchors, ClothConfig(show_constraints=True))
    graph = solver.graph
    assert solver.debug_lines.shape == (2 * len(graph), 3)
    np.testing.assert_array_equal(solver.debug_lines[0::2], solver.pos[graph.spring_i])
    np.testing.assert_array_equal(solver.debug_lines[1::2], solver.pos[graph.spring_j])


def test_functional_step_matches_update():
    config = ClothConfig(wind_strength=5.0)
    a = construct()
    b = construct()
    anchors = rest_anchors(a)
    out = np.zeros_like(a.pos)

    returned = step(a, StepInputs(FRAME, 0.25, anchors, config), out=out)
    b.update(FRAME, 0.25, anchors, config)

    assert returned is a
    assert np.array_equal(a.pos, b.pos)
    assert np.array_equal(out, b.pos)


def test_span_mode_spreads_pins_between_anchors():
    solver = construct(pin_mode=PinMode.SPAN)
    anchors = [np.array([-0.6, 0.5, 0.0]), np.array([0.6, 0.5, 0.0])]

    solver.update(FRAME, 0.0, anchors, ClothConfig())

    np.testing.assert_allclose(solver.pos[12], [0.6, 0.5, 0.0])
    np.testing.assert_allclose(solver.pos[1], [-0.6 + 1.2 / 12, 0.5, 0.0])


def test_divergence_is_flagged_not_raised(unit_params):
    solver = construct(unit_params)
    solver.pos[4] = np.inf

    solver.update(FRAME, 0.0, rest_anchors(solver), ClothConfig())

    assert solver.is_exploded


def test_reset(unit_params):
    solver = construct(unit_params)
    rest = solver.pos.copy()
    for frame in range(10):
        solver.update(FRAME, frame * FRAME, rest_anchors(solver), ClothConfig())
    assert not np.array_equal(solver.pos, rest)

    solver.reset()

    np.testing.assert_array_equal(solver.pos, rest)
    np.testing.assert_array_equal(solver.prev_pos, rest)
    assert solver.steps_stable == 0


def test_refresh_debug_catches_up_while_paused(unit_params):
    solver = construct(unit_params)
    for frame in range(3):
        solver.update(FRAME, frame * FRAME, rest_anchors(solver), ClothConfig())

    solver.refresh_debug(True, False)

    np.testing.assert_array_equal(solver.debug_points, solver.pos)
    assert not np.array_equal(solver.debug_lines[0::2], solver.pos[solver.graph.spring_i])
