"""Interactive preview window using Taichi GGUI.

The window doubles as the controller's output surface: its current size is
the render resolution, so resizing the window reallocates the render
targets. Each loop iteration drives one controller tick and shows the
presented image.

Controls:
    W/A/S/D     move forward/left/back/right
    Q/E         move down/up
    Left/Right  turn
    Up/Down     look up/down
    Space       toggle ACTIVE / PREVIEW mode
    GUI panel   bounce and ray limits, shader toggle, PNG export

Any camera motion raises the transform change flag, which resets the
accumulation on the next update tick.

Example:
    >>> from src.sphere_tracer.preview.interactive import InteractivePreview
    >>> preview = InteractivePreview(640, 360)
    >>> controller = RayTracingController(camera, query, preview)
    >>> preview.run(controller)
"""

from __future__ import annotations

import os
import time
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime
from typing import TYPE_CHECKING

import numpy as np
import taichi as ti

from src.sphere_tracer.core.resources import image_to_field_layout
from src.sphere_tracer.core.settings import RunMode

if TYPE_CHECKING:
    import numpy.typing as npt

    from src.sphere_tracer.camera.transform import Transform
    from src.sphere_tracer.core.controller import RayTracingController

# Movement speed in world units per second and turn rate in degrees per second
MOVE_SPEED = 2.0
TURN_SPEED = 60.0

_MOVE_KEYS = {
    "w": (0.0, 0.0, 1.0),
    "s": (0.0, 0.0, -1.0),
    "d": (1.0, 0.0, 0.0),
    "a": (-1.0, 0.0, 0.0),
    "e": (0.0, 1.0, 0.0),
    "q": (0.0, -1.0, 0.0),
}


def apply_camera_input(
    transform: Transform,
    pressed: Iterable[str],
    dt: float,
    move_speed: float = MOVE_SPEED,
    turn_speed: float = TURN_SPEED,
) -> bool:
    """Move and turn a camera transform from the keys held this frame.

    Args:
        transform: Camera transform to update in place.
        pressed: Names of the held keys ("w", "a", "Left", ...).
        dt: Frame time in seconds.
        move_speed: World units per second.
        turn_speed: Degrees per second.

    Returns:
        True if any movement key was held.
    """
    keys = set(pressed)
    moved = False

    right_axis, up_axis, forward_axis = 0.0, 0.0, 0.0
    for key, (r, u, f) in _MOVE_KEYS.items():
        if key in keys:
            right_axis += r
            up_axis += u
            forward_axis += f
            moved = True

    if right_axis or up_axis or forward_axis:
        step = move_speed * dt
        offset = (
            transform.right * right_axis * step
            + np.array([0.0, 1.0, 0.0]) * up_axis * step
            + transform.forward * forward_axis * step
        )
        transform.translate(tuple(offset))

    yaw = (("Left" in keys) - ("Right" in keys)) * turn_speed * dt
    pitch = (("Up" in keys) - ("Down" in keys)) * turn_speed * dt
    if yaw or pitch:
        p, y, r = transform.rotation
        transform.rotation = (max(-89.0, min(89.0, p + pitch)), y + yaw, r)
        moved = True

    return moved


class InteractivePreview:
    """GGUI window that drives a RayTracingController.

    Attributes:
        width: Initial window width in pixels.
        height: Initial window height in pixels.
        mode: Run mode passed to the controller each tick.
        display_image: Gamma-encoded field shown on the canvas.
    """

    def __init__(
        self,
        width: int,
        height: int,
        *,
        title: str = "Progressive Sphere Tracer",
    ) -> None:
        self.width = width
        self.height = height
        self.mode = RunMode.ACTIVE
        self._title = title
        self._is_initialized = False

        # Window creation is deferred so the class can be used headless
        self._window: ti.ui.Window | None = None
        self._canvas: ti.ui.Canvas | None = None

        self.display_image: ti.MatrixField
        self._display_tree: ti.SNodeTree | None = None
        self._allocate_display_image(width, height)

    def _allocate_display_image(self, width: int, height: int) -> None:
        # Destroy first so the freed tree slot is reused
        self.release_display_image()

        builder = ti.FieldsBuilder()
        self.display_image = ti.Vector.field(3, dtype=ti.f32)
        builder.dense(ti.ij, (width, height)).place(self.display_image)
        self._display_tree = builder.finalize()

    def release_display_image(self) -> None:
        """Destroy the display field's device memory. Safe to call more than once."""
        if self._display_tree is not None:
            self._display_tree.destroy()
            self._display_tree = None

    def _initialize_window(self) -> None:
        if self._is_initialized:
            return

        self._window = ti.ui.Window(name=self._title, res=(self.width, self.height), vsync=True)
        self._canvas = self._window.get_canvas()
        self._is_initialized = True

    @property
    def window(self) -> ti.ui.Window:
        """Get the GGUI window, creating it if needed."""
        if self._window is None:
            self._initialize_window()
        assert self._window is not None
        return self._window

    @property
    def canvas(self) -> ti.ui.Canvas:
        """Get the canvas, creating the window if needed."""
        if self._canvas is None:
            self._initialize_window()
        assert self._canvas is not None
        return self._canvas

    @property
    def resolution(self) -> tuple[int, int]:
        """Current output resolution (the window size once it exists)."""
        if self._window is None:
            return self.width, self.height
        return tuple(self._window.get_window_shape())

    def update_image(self, image: npt.NDArray[np.float32]) -> None:
        """Upload a (height, width, 3) display image, resizing the field if needed."""
        if image.ndim != 3 or image.shape[2] != 3:
            raise ValueError(f"Image shape {image.shape} doesn't match expected (height, width, 3)")

        height, width = image.shape[:2]
        if self.display_image.shape != (width, height):
            self._allocate_display_image(width, height)
        self.display_image.from_numpy(image_to_field_layout(image))

    def is_running(self) -> bool:
        """Whether the window is still open."""
        return self.window.running

    def show_frame(self) -> None:
        """Present the display image."""
        self.canvas.set_image(self.display_image)
        self.window.show()

    def toggle_mode(self) -> RunMode:
        """Switch between ACTIVE and PREVIEW and return the new mode."""
        self.mode = RunMode.PREVIEW if self.mode is RunMode.ACTIVE else RunMode.ACTIVE
        return self.mode

    def _pressed_keys(self) -> set[str]:
        names = ["w", "a", "s", "d", "q", "e"]
        arrows = {
            "Left": ti.ui.LEFT,
            "Right": ti.ui.RIGHT,
            "Up": ti.ui.UP,
            "Down": ti.ui.DOWN,
        }
        pressed = {name for name in names if self.window.is_pressed(name)}
        pressed.update(name for name, key in arrows.items() if self.window.is_pressed(key))
        return pressed

    def _handle_events(self) -> None:
        for event in self.window.get_events(ti.ui.PRESS):
            if event.key == ti.ui.SPACE:
                self.toggle_mode()
            elif event.key == ti.ui.ESCAPE:
                self.window.running = False

    def run(self, controller: RayTracingController) -> None:
        """Run the window loop until it is closed.

        The controller is enabled for the duration of the loop and always
        disabled afterwards, releasing its device resources.
        """
        self._initialize_window()

        with controller:
            last = time.perf_counter()
            while self.is_running():
                now = time.perf_counter()
                dt, last = now - last, now

                self._handle_events()
                apply_camera_input(controller.camera.transform, self._pressed_keys(), dt)

                controller.on_tick(self.mode)
                # No targets yet while the window starts minimized
                if controller.targets is not None:
                    self.update_image(controller.get_image_numpy(gamma=2.2))

                self._draw_gui_panel(controller)
                self.show_frame()

    def _draw_gui_panel(self, controller: RayTracingController) -> None:
        settings = controller.settings

        with self.window.GUI.sub_window("Tracer", 0.02, 0.02, 0.3, 0.26) as gui:
            gui.text(f"Mode: {self.mode.value} (space)")
            gui.text(f"Sample: {controller.sample_index}")
            enable_shader = gui.checkbox("Trace in preview", settings.enable_shader)
            max_bounces = gui.slider_int("Max bounces", settings.max_bounces, 1, 32)
            rays_per_pixel = gui.slider_int("Rays per pixel", settings.rays_per_pixel, 1, 200)
            export = gui.button("Export PNG")

        updated = replace(settings, enable_shader=enable_shader).with_limits(
            max_bounces, rays_per_pixel
        )
        if updated != settings:
            controller.settings = updated

        if export:
            self._export_png(controller)

    def _export_png(self, controller: RayTracingController) -> None:
        from src.sphere_tracer.preview.export import save_png

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"spheres_{timestamp}.png"
        save_png(controller, filename, gamma=2.2)
        print(f"Exported: {filename} (sample {controller.sample_index})")

    def close(self) -> None:
        """Stop the window loop. The window cannot be reopened afterwards."""
        if self._window is not None:
            self._window.running = False

    @staticmethod
    def is_display_available() -> bool:
        """Check whether a display is available for GUI rendering."""
        if os.name == "nt":
            return True

        display = os.environ.get("DISPLAY")
        wayland = os.environ.get("WAYLAND_DISPLAY")

        if os.uname().sysname == "Darwin":
            return not (os.environ.get("SSH_CONNECTION") and not display)

        return bool(display or wayland)
