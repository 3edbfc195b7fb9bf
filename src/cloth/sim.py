import math
import sys

import moderngl
import numpy as np
import pygame

from cloth.models import ClothConfig, PinMode
from cloth.renderer import Renderer
from cloth.solver_numpy import ClothSolver, construct
from cloth.types import VEC3S

WIDTH, HEIGHT = 1000, 800
TARGET_FPS = 60
MAX_DT = 0.02  # the solver trusts dt, so stalls are clamped here

SHOULDER_REST = ((-0.4, 0.8, 0.0), (0.4, 0.8, 0.0))
SWAY_SPEED = 0.8
SWAY_AMP_X = 0.15
SWAY_AMP_Y = 0.08
DRAG_BOUNDS_X = (-1.5, 1.5)
DRAG_BOUNDS_Y = (-0.5, 1.5)
PICK_RADIUS_PX = 30.0

# key -> (config field, step)
ADJUST_KEYS = {
    pygame.K_g: ("gravity", 1.0),
    pygame.K_b: ("gravity", -1.0),
    pygame.K_e: ("wind_strength", 0.5),
    pygame.K_d: ("wind_strength", -0.5),
    pygame.K_s: ("stiffness", 0.05),
    pygame.K_x: ("stiffness", -0.05),
    pygame.K_f: ("damping", 0.005),
    pygame.K_v: ("damping", -0.005),
    pygame.K_i: ("iterations", 1),
    pygame.K_k: ("iterations", -1),
}


def idle_anchors(t: float) -> list[VEC3S]:
    """Figure-eight sway of both shoulders while nobody is dragging them."""
    dx = math.sin(t * SWAY_SPEED) * SWAY_AMP_X
    dy = math.sin(t * SWAY_SPEED * 2) * SWAY_AMP_Y
    return [np.array([x + dx, y + dy, z], dtype=np.float64) for x, y, z in SHOULDER_REST]


def clamp_drag(point: VEC3S) -> VEC3S:
    return np.array(
        [
            min(DRAG_BOUNDS_X[1], max(DRAG_BOUNDS_X[0], point[0])),
            min(DRAG_BOUNDS_Y[1], max(DRAG_BOUNDS_Y[0], point[1])),
            0.0,
        ],
        dtype=np.float64,
    )


def adjust_config(config: ClothConfig, key: int, multiplier: float = 1.0) -> ClothConfig:
    name, step = ADJUST_KEYS[key]
    value = getattr(config, name) + step * multiplier
    return config.copy(**{name: value}).clamped()


def toggle_overlay(solver: ClothSolver, config: ClothConfig, name: str) -> ClothConfig:
    """Flip a debug flag and fill its buffer so a paused frame still draws it."""
    config = config.copy(**{name: not getattr(config, name)})
    solver.refresh_debug(config.show_particles, config.show_constraints)
    return config


def next_pin_mode(mode: PinMode) -> PinMode:
    return PinMode((int(mode) + 1) % len(PinMode))


def find_anchor(
    mouse_pos: tuple[int, int], anchors: list[VEC3S], renderer: Renderer
) -> int | None:
    """Index of the shoulder under the cursor"""
    mx, my = mouse_pos
    min_dist = float("inf")
    nearest = None

    for i, anchor in enumerate(anchors):
        sx, sy = renderer.project(anchor)
        dist = math.sqrt((sx - mx) ** 2 + (sy - my) ** 2)
        if dist < min_dist:
            min_dist = dist
            nearest = i

    return nearest if min_dist < PICK_RADIUS_PX else None


def main() -> None:
    # 1. Setup cloth
    print("Generating cloth...")
    solver = construct()
    config = ClothConfig()
    anchors = idle_anchors(0.0)

    # 2. Initialize Pygame with OpenGL
    pygame.init()
    clock = pygame.time.Clock()
    pygame.display.set_mode((WIDTH, HEIGHT), pygame.OPENGL | pygame.DOUBLEBUF)
    pygame.display.set_caption("Cloth Physics Demo")
    ctx = moderngl.create_context()
    renderer = Renderer(ctx, solver, WIDTH, HEIGHT)

    # Simulation state
    running = True
    paused = False
    elapsed = 0.0
    frame_count = 0
    drag_idx: int | None = None

    print("\n" + "=" * 60)
    print("CLOTH PHYSICS DEMO - Verlet + constraint relaxation")
    print("=" * 60)
    print("Simulation:")
    print("  Space           - Pause/Resume physics")
    print("  R               - Reset cloth")
    print("  M               - Rebuild with next pin mode (Trailing/Span)")
    print("\nRendering:")
    print("  W               - Cycle modes (Filled/Wireframe/Both)")
    print("  P               - Toggle particles")
    print("  C               - Toggle constraints")
    print("\nPhysics Parameters:")
    print("  G / B           - Increase/Decrease Gravity")
    print("  E / D           - Increase/Decrease Wind")
    print("  S / X           - Increase/Decrease Stiffness")
    print("  F / V           - Increase/Decrease Damping")
    print("  I / K           - Increase/Decrease Iterations")
    print("  Shift + key     - 5x faster adjustment")
    print("\nMouse Interaction:")
    print("  Left Click+Drag - Move a shoulder")
    print("=" * 60)
    print()

    while running:
        dt = min(clock.tick(TARGET_FPS) / 1000.0, MAX_DT)

        # Handle Events
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False

            elif event.type == pygame.KEYDOWN:
                keys_pressed = pygame.key.get_pressed()
                shift_held = keys_pressed[pygame.K_LSHIFT] or keys_pressed[pygame.K_RSHIFT]

                if event.key == pygame.K_ESCAPE:
                    running = False

                elif event.key == pygame.K_SPACE:
                    paused = not paused
                    print(f"[Physics {'PAUSED' if paused else 'RESUMED'}]")

                elif event.key == pygame.K_w:
                    mode_name = renderer.cycle_render_mode()
                    print(f"[Render Mode: {mode_name}]")

                elif event.key == pygame.K_r:
                    solver.reset()
                    config = ClothConfig(
                        show_particles=config.show_particles,
                        show_constraints=config.show_constraints,
                    )
                    print("[Simulation RESET]")

                elif event.key == pygame.K_m:
                    solver = construct(pin_mode=next_pin_mode(solver.pin_mode))
                    renderer.solver = solver
                    print(f"[Pin Mode: {solver.pin_mode.name}]")

                elif event.key == pygame.K_p:
                    config = toggle_overlay(solver, config, "show_particles")
                    print(f"Particles: {'on' if config.show_particles else 'off'}")

                elif event.key == pygame.K_c:
                    config = toggle_overlay(solver, config, "show_constraints")
                    print(f"Constraints: {'on' if config.show_constraints else 'off'}")

                elif event.key in ADJUST_KEYS:
                    config = adjust_config(config, event.key, 5.0 if shift_held else 1.0)
                    name = ADJUST_KEYS[event.key][0]
                    print(f"{name}: {getattr(config, name)}")

            elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                drag_idx = find_anchor(event.pos, anchors, renderer)

            elif event.type == pygame.MOUSEBUTTONUP and event.button == 1:
                drag_idx = None

            elif event.type == pygame.MOUSEMOTION and drag_idx is not None:
                anchors[drag_idx] = clamp_drag(renderer.unproject_to_plane(event.pos))

        if not paused:
            elapsed += dt
            if drag_idx is None:
                anchors = idle_anchors(elapsed)
            solver.update(dt, elapsed, anchors, config)

        # Render
        renderer.draw(solver, config, anchors, clock.get_fps())

        # Update window caption
        if frame_count % 30 == 0:
            pygame.display.set_caption(
                f"Cloth Physics Demo | {clock.get_fps():.0f} FPS | "
                f"strain {solver.residual_strain():.3f}"
            )
        frame_count += 1

    # Cleanup
    print("\n[Main] Shutting down...")
    pygame.quit()
    sys.exit()


if __name__ == "__main__":
    main()
