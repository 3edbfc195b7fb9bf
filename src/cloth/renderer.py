# renderer.py
from collections.abc import Sequence
from pathlib import Path

import moderngl
import numpy as np
import pygame

from cloth.models import ClothConfig
from cloth.solver_numpy import ClothSolver
from cloth.types import PROJ, VEC3S, VIEW

CAMERA_EYE = (0.0, 0.0, 4.0)
CAMERA_TARGET = (0.0, -0.5, 0.0)
CAMERA_FOV = 50.0

KEY_LIGHT_POS = (3.0, 5.0, 4.0)
KEY_LIGHT_COLOR = (1.0, 0.93, 0.87)
RIM_LIGHT_POS = (-3.0, 2.0, -2.0)
RIM_LIGHT_COLOR = (0.27, 0.4, 1.0)

RENDER_MODES = ["Filled", "Wireframe", "Filled+Edges"]

# ------------------------
# Matrix helpers
# ------------------------


def perspective(fov_y: float, aspect: float, near: float, far: float) -> PROJ:
    f = 1.0 / np.tan(fov_y * 0.5)
    return np.array(
        [
            [f / aspect, 0.0, 0.0, 0.0],
            [0.0, f, 0.0, 0.0],
            [0.0, 0.0, (far + near) / (near - far), (2.0 * far * near) / (near - far)],
            [0.0, 0.0, -1.0, 0.0],
        ],
        dtype=np.float32,
    ).T


def look_at(
    eye: tuple[float, float, float],
    target: tuple[float, float, float],
    up: tuple[float, float, float] = (0.0, 1.0, 0.0),
) -> VIEW:
    e = np.array(eye, dtype=np.float32)
    forward = np.array(target, dtype=np.float32) - e
    forward /= np.linalg.norm(forward)
    side = np.cross(forward, np.array(up, dtype=np.float32))
    side /= np.linalg.norm(side)
    true_up = np.cross(side, forward)

    m = np.eye(4, dtype=np.float32)
    m[0, :3] = side
    m[1, :3] = true_up
    m[2, :3] = -forward
    m[0, 3] = -np.dot(side, e)
    m[1, 3] = -np.dot(true_up, e)
    m[2, 3] = np.dot(forward, e)
    return m.T


# ------------------------
# Renderer
# ------------------------


class Renderer:
    def __init__(
        self,
        ctx: moderngl.Context,
        solver: ClothSolver,
        width: int = 1000,
        height: int = 800,
    ):
        self.ctx = ctx
        self.ctx.enable(moderngl.DEPTH_TEST | moderngl.PROGRAM_POINT_SIZE)

        self.width = width
        self.height = height
        self.solver = solver
        self.render_mode = 0

        pygame.font.init()
        self.font = pygame.font.SysFont("monospace", 16)

        base = Path(__file__).parent / "shaders"

        # Cloth program
        self.prog = self.ctx.program(
            vertex_shader=(base / "cloth.vert").read_text(),
            geometry_shader=(base / "cloth.geom").read_text(),
            fragment_shader=(base / "cloth.frag").read_text(),
        )

        # Points, lines and anchor markers
        self.debug_prog = self.ctx.program(
            vertex_shader=(base / "debug.vert").read_text(),
            fragment_shader=(base / "debug.frag").read_text(),
        )

        # UI program
        self.ui_prog = self.ctx.program(
            vertex_shader=(base / "ui.vert").read_text(),
            fragment_shader=(base / "ui.frag").read_text(),
        )

        # UI quad (updated every frame)
        self.ui_vbo = self.ctx.buffer(reserve=4 * 4 * 4)
        self.ui_vao = self.ctx.vertex_array(
            self.ui_prog,
            [(self.ui_vbo, "2f 2f", "in_pos", "in_uv")],
        )
        self.ui_texture: moderngl.Texture | None = None

        # Cloth buffers: positions change every frame, UVs and faces never do
        n = len(self.solver.pos)
        self.vbo = self.ctx.buffer(reserve=n * 3 * 4, dynamic=True)
        self.uv_vbo = self.ctx.buffer(self.solver.uvs.astype("f4").tobytes())
        self.ebo = self.ctx.buffer(self.solver.faces.astype("i4").ravel().tobytes())
        self.vao = self.ctx.vertex_array(
            self.prog,
            [(self.vbo, "3f", "in_position"), (self.uv_vbo, "2f", "in_uv")],
            self.ebo,
        )

        # Debug buffers
        self.points_vbo = self.ctx.buffer(reserve=n * 3 * 4, dynamic=True)
        self.points_vao = self.ctx.vertex_array(
            self.debug_prog, [(self.points_vbo, "3f", "in_position")]
        )
        self.lines_vbo = self.ctx.buffer(
            reserve=len(self.solver.debug_lines) * 3 * 4, dynamic=True
        )
        self.lines_vao = self.ctx.vertex_array(
            self.debug_prog, [(self.lines_vbo, "3f", "in_position")]
        )
        self.anchor_vbo = self.ctx.buffer(reserve=2 * 3 * 4, dynamic=True)
        self.anchor_vao = self.ctx.vertex_array(
            self.debug_prog, [(self.anchor_vbo, "3f", "in_position")]
        )

        print(f"Renderer initialized: {len(self.solver.faces)} triangles")

    def cycle_render_mode(self) -> str:
        self.render_mode = (self.render_mode + 1) % len(RENDER_MODES)
        return RENDER_MODES[self.render_mode]

    # ------------------------
    # Draw
    # ------------------------

    def draw(
        self,
        solver: ClothSolver,
        config: ClothConfig,
        anchors: Sequence[VEC3S],
        fps: float,
    ) -> None:
        self.ctx.clear(0.05, 0.05, 0.07, 1.0)

        self.vbo.write(solver.pos.astype("f4").tobytes())

        view, proj = self.get_matrices()
        for prog in (self.prog, self.debug_prog):
            prog["u_view"].write(view.tobytes())  # type: ignore
            prog["u_proj"].write(proj.tobytes())  # type: ignore

        view_rot = view.T[:3, :3]
        light_world = np.array([*KEY_LIGHT_POS, 1.0], dtype=np.float32)
        light_view = (view.T @ light_world)[:3]
        rim_dir_view = view_rot @ -np.array(RIM_LIGHT_POS, dtype=np.float32)

        self.prog["u_light_pos_view"].value = tuple(light_view)  # type: ignore
        self.prog["u_light_color"].value = KEY_LIGHT_COLOR  # type: ignore
        self.prog["u_rim_dir_view"].value = tuple(rim_dir_view)  # type: ignore
        self.prog["u_rim_color"].value = RIM_LIGHT_COLOR  # type: ignore

        if self.render_mode in (0, 2):
            self.prog["u_wireframe"].value = 0  # type: ignore
            self.vao.render()
        if self.render_mode in (1, 2):
            self.ctx.wireframe = True
            self.prog["u_wireframe"].value = 1  # type: ignore
            self.vao.render()
            self.ctx.wireframe = False

        self._draw_debug(solver, config, anchors)
        self._draw_ui_overlay(config, fps)
        pygame.display.flip()

    def _draw_debug(
        self, solver: ClothSolver, config: ClothConfig, anchors: Sequence[VEC3S]
    ) -> None:
        self.ctx.enable(moderngl.BLEND)
        self.ctx.blend_func = moderngl.SRC_ALPHA, moderngl.ONE_MINUS_SRC_ALPHA

        if config.show_constraints:
            self.lines_vbo.write(solver.debug_lines.astype("f4").tobytes())
            self.debug_prog["u_color"].value = (1.0, 1.0, 0.0, 0.3)  # type: ignore
            self.lines_vao.render(mode=moderngl.LINES)

        if config.show_particles:
            self.points_vbo.write(solver.debug_points.astype("f4").tobytes())
            self.debug_prog["u_color"].value = (0.0, 1.0, 1.0, 1.0)  # type: ignore
            self.debug_prog["u_point_size"].value = 4.0  # type: ignore
            self.points_vao.render(mode=moderngl.POINTS)

        # Shoulder markers
        self.anchor_vbo.write(np.array(anchors, dtype="f4").tobytes())
        self.debug_prog["u_color"].value = (1.0, 0.27, 0.53, 1.0)  # type: ignore
        self.debug_prog["u_point_size"].value = 14.0  # type: ignore
        self.anchor_vao.render(mode=moderngl.POINTS)

        self.ctx.disable(moderngl.BLEND)

    # ------------------------
    # Camera
    # ------------------------

    def get_matrices(self) -> tuple[VIEW, PROJ]:
        view = look_at(CAMERA_EYE, CAMERA_TARGET)
        proj = perspective(
            np.radians(CAMERA_FOV),
            self.width / self.height,
            0.1,
            100.0,
        )
        return view, proj

    def project(self, point: VEC3S) -> tuple[float, float]:
        """World point to window pixels."""
        view, proj = self.get_matrices()
        clip = proj.T @ view.T @ np.array([point[0], point[1], point[2], 1.0], dtype=np.float32)
        ndc = clip[:3] / clip[3]
        return (ndc[0] + 1.0) * 0.5 * self.width, (1.0 - ndc[1]) * 0.5 * self.height

    def unproject_to_plane(self, mouse_pos: tuple[int, int], z: float = 0.0) -> VEC3S:
        """Cast a ray through the cursor and intersect it with the plane at `z`."""
        view, proj = self.get_matrices()
        inv = np.linalg.inv((proj.T @ view.T).astype(np.float64))

        nx = 2.0 * mouse_pos[0] / self.width - 1.0
        ny = 1.0 - 2.0 * mouse_pos[1] / self.height

        near = inv @ np.array([nx, ny, -1.0, 1.0])
        far = inv @ np.array([nx, ny, 1.0, 1.0])
        near = near[:3] / near[3]
        far = far[:3] / far[3]

        direction = far - near
        t = (z - near[2]) / direction[2]
        return near + direction * t

    # ------------------------
    # UI Overlay
    # ------------------------

    def _surface_to_texture(self, surface: pygame.Surface) -> moderngl.Texture:
        surface = pygame.transform.flip(surface, False, True)
        data = pygame.image.tobytes(surface, "RGBA", False)

        tex = self.ctx.texture(surface.get_size(), 4, data)
        tex.filter = (moderngl.NEAREST, moderngl.NEAREST)
        return tex

    def _draw_ui_overlay(self, config: ClothConfig, fps: float) -> None:
        self.ctx.disable(moderngl.DEPTH_TEST)
        self.ctx.enable(moderngl.BLEND)
        self.ctx.blend_func = moderngl.SRC_ALPHA, moderngl.ONE_MINUS_SRC_ALPHA

        lines = [
            f"FPS:        {fps:.1f}",
            f"Gravity:    {config.gravity:.1f}",
            f"Wind:       {config.wind_strength:.1f}",
            f"Stiffness:  {config.stiffness:.2f}",
            f"Damping:    {config.damping:.3f}",
            f"Iterations: {config.iterations}",
            f"Mode:       {RENDER_MODES[self.render_mode]}",
        ]

        line_h = self.font.get_height()
        w = max(self.font.size(line)[0] for line in lines)
        h = line_h * len(lines)

        surface = pygame.Surface((w, h), pygame.SRCALPHA)

        y = 0
        for line in lines:
            surface.blit(self.font.render(line, True, (220, 210, 235)), (0, y))
            y += line_h

        if self.ui_texture:
            self.ui_texture.release()
        self.ui_texture = self._surface_to_texture(surface)
        self.ui_texture.use(0)

        # --- Compute top-left quad ---
        margin = 10
        x0 = -1.0 + 2.0 * margin / self.width
        y0 = 1.0 - 2.0 * margin / self.height
        x1 = x0 + 2.0 * w / self.width
        y1 = y0 - 2.0 * h / self.height

        quad = np.array(
            [
                [x0, y0, 0.0, 1.0],
                [x0, y1, 0.0, 0.0],
                [x1, y0, 1.0, 1.0],
                [x1, y1, 1.0, 0.0],
            ],
            dtype="f4",
        )

        self.ui_vbo.write(quad.tobytes())
        self.ui_prog["u_texture"] = 0
        self.ui_vao.render(mode=moderngl.TRIANGLE_STRIP)

        self.ctx.disable(moderngl.BLEND)
        self.ctx.enable(moderngl.DEPTH_TEST)
