"""Accumulation-and-dispatch controller.

The controller owns no thread or loop. An external scheduler (a window
loop, a test, a batch script) drives it through explicit entry points:

    on_enable()      acquire the controller
    on_update()      logical update tick: camera invalidation check
    render_frame()   render tick: collect, dispatch, composite, present
    on_tick()        on_update() followed by render_frame()
    on_disable()     release every device resource

Within one render tick the order is fixed: the render targets are checked
against the output resolution, the scene buffer is uploaded, uniforms are
built from the (possibly just reset) sample index, the kernel is
dispatched, its output is composited, and finally the sample index
advances if the frame was ACTIVE.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from src.sphere_tracer.core.controller import RayTracingController, FixedSurface
    >>> controller = RayTracingController(camera, TaggedSceneQuery(world), FixedSurface(320, 240))
    >>> with controller:
    ...     for _ in range(64):
    ...         controller.on_tick()
    ...     image = controller.get_image_numpy(gamma=2.2)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import numpy as np
import numpy.typing as npt

from src.sphere_tracer.camera.perspective import PerspectiveCamera
from src.sphere_tracer.core.compositor import AccumulationCompositor
from src.sphere_tracer.core.dispatch import DispatchCoordinator, DispatchGrid
from src.sphere_tracer.core.environment import EnvironmentTexture
from src.sphere_tracer.core.invalidation import FrameInvalidationTracker
from src.sphere_tracer.core.kernels import TraceKernel
from src.sphere_tracer.core.resources import (
    RenderTargets,
    ResourceLifecycleManager,
    field_to_image,
)
from src.sphere_tracer.core.settings import TILE_SIZE, RunMode, TracerSettings
from src.sphere_tracer.core.state import AccumulationState
from src.sphere_tracer.scene.collector import PrimitiveCollector
from src.sphere_tracer.scene.world import SceneQuery

logger = logging.getLogger(__name__)


class OutputSurface(Protocol):
    """Display surface whose resolution is queried every frame."""

    @property
    def resolution(self) -> tuple[int, int]: ...


@dataclass
class FixedSurface:
    """Headless output surface with a settable resolution."""

    width: int
    height: int

    @property
    def resolution(self) -> tuple[int, int]:
        return self.width, self.height

    def resize(self, width: int, height: int) -> None:
        self.width = width
        self.height = height


class LifecycleState(Enum):
    """Whether the controller currently holds device resources."""

    DISABLED = "disabled"
    ENABLED = "enabled"


@dataclass(frozen=True)
class FrameStats:
    """Diagnostics for the last rendered frame.

    Attributes:
        traced: Whether the kernel ran (False for pass-through frames).
        mode: Run mode of the frame.
        sample_index: Sample index used for dispatch and blending.
        primitive_count: Spheres bound to the dispatch.
        grid: Dispatched grid, or None for pass-through frames.
        reallocated: Whether the render targets were reallocated.
    """

    traced: bool
    mode: RunMode
    sample_index: int
    primitive_count: int
    grid: DispatchGrid | None
    reallocated: bool


class RayTracingController:
    """Drives progressive sphere tracing for one camera.

    Attributes:
        camera: The viewing camera.
        surface: Output surface queried for resolution each frame.
        settings: User configuration; may be replaced between frames.
        environment: Background texture bound to every dispatch.
        state: Accumulation state (sample index).
        resources: Owner of render targets and the device scene buffer.
        last_frame: FrameStats of the most recent frame, or None.
    """

    def __init__(
        self,
        camera: PerspectiveCamera,
        scene_query: SceneQuery,
        surface: OutputSurface,
        settings: TracerSettings | None = None,
        environment: EnvironmentTexture | None = None,
        kernel: TraceKernel | None = None,
        tile_size: int = TILE_SIZE,
    ) -> None:
        self.camera = camera
        self.surface = surface
        self.settings = settings if settings is not None else TracerSettings()
        self._environment = environment

        self.state = AccumulationState()
        self.tracker = FrameInvalidationTracker(self.state)
        self.collector = PrimitiveCollector(scene_query)
        self.coordinator = DispatchCoordinator(kernel, tile_size)
        self.compositor = AccumulationCompositor()
        self.resources = ResourceLifecycleManager()

        self.lifecycle = LifecycleState.DISABLED
        self.last_frame: FrameStats | None = None

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def sample_index(self) -> int:
        """Frames accumulated since the last invalidation."""
        return self.state.sample_index

    @property
    def is_enabled(self) -> bool:
        """Whether the controller is between on_enable() and on_disable()."""
        return self.lifecycle is LifecycleState.ENABLED

    @property
    def environment(self) -> EnvironmentTexture:
        """Background texture, created as a sky gradient on first use."""
        if self._environment is None:
            self._environment = EnvironmentTexture.gradient()
        return self._environment

    @environment.setter
    def environment(self, value: EnvironmentTexture) -> None:
        self._environment = value

    @property
    def targets(self) -> RenderTargets | None:
        """Current render targets, or None before the first frame."""
        return self.resources.targets

    # =========================================================================
    # Lifecycle Entry Points
    # =========================================================================

    def on_enable(self) -> None:
        """Start a fresh accumulation. Calling it while enabled is a no-op."""
        if self.is_enabled:
            return
        self.state.reset()
        self.lifecycle = LifecycleState.ENABLED
        logger.debug("Controller enabled")

    def on_update(self) -> bool:
        """Logical update tick: reset accumulation if the camera moved.

        Returns:
            True if accumulation was invalidated on this tick.
        """
        return self.tracker.observe(self.camera.transform)

    def render_frame(
        self,
        mode: RunMode = RunMode.ACTIVE,
        source: npt.NDArray[np.float32] | None = None,
    ) -> FrameStats:
        """Render tick: produce this frame's presented image.

        Traces when settings.enable_shader is set or the frame is ACTIVE;
        otherwise the source frame is passed through unmodified.

        Args:
            mode: ACTIVE advances the sample index afterwards, PREVIEW
                keeps it frozen.
            source: Input frame (height, width, 3) used for pass-through.

        Returns:
            Diagnostics for the frame.

        Raises:
            RuntimeError: If the controller is not enabled.
        """
        if not self.is_enabled:
            raise RuntimeError("Controller is not enabled. Call on_enable() first.")

        width, height = self.surface.resolution
        if width <= 0 or height <= 0:
            # Minimized surface: keep the current targets and sample index
            logger.debug("Output surface is %dx%d, skipping frame", width, height)
            self.last_frame = FrameStats(
                False, mode, self.state.sample_index, 0, None, False
            )
            return self.last_frame

        reallocated = self.resources.ensure_targets(width, height)
        if reallocated and self.settings.reset_on_resize:
            self.state.reset()

        targets = self.resources.targets
        sample_index = self.state.sample_index

        if not self.settings.should_trace(mode):
            self.compositor.pass_through(targets, source)
            self.last_frame = FrameStats(False, mode, sample_index, 0, None, reallocated)
            return self.last_frame

        scene_buffer = self.collector.collect_and_upload()
        self.resources.replace_scene_buffer(scene_buffer)

        params = self.coordinator.build_parameters(
            self.camera, (width, height), self.settings, sample_index
        )
        grid = self.coordinator.dispatch(targets.frame, self.environment, scene_buffer, params)

        self.compositor.composite(targets, sample_index, mode)

        if mode is RunMode.ACTIVE:
            self.state.advance()

        self.last_frame = FrameStats(
            True, mode, sample_index, scene_buffer.count, grid, reallocated
        )
        return self.last_frame

    def on_tick(
        self,
        mode: RunMode = RunMode.ACTIVE,
        source: npt.NDArray[np.float32] | None = None,
    ) -> FrameStats:
        """Run the update tick and the render tick for one displayed frame."""
        self.on_update()
        return self.render_frame(mode, source)

    def on_disable(self) -> None:
        """Release all device resources. Safe to call more than once."""
        self.resources.release_all()
        if self.is_enabled:
            logger.debug("Controller disabled")
        self.lifecycle = LifecycleState.DISABLED

    def __enter__(self) -> RayTracingController:
        self.on_enable()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.on_disable()

    # =========================================================================
    # Output
    # =========================================================================

    def get_image_numpy(self, gamma: float = 1.0, clamp: bool = True) -> npt.NDArray[np.float32]:
        """Get the presented image as a (height, width, 3) array.

        Values are clamped to [0, 1] and optionally gamma encoded. Pass
        clamp=False to keep HDR values for tone mapping; gamma is then
        ignored.

        Raises:
            RuntimeError: If no frame has been rendered since enabling.
        """
        targets = self.resources.targets
        if targets is None:
            raise RuntimeError("No frame has been rendered yet")

        image = field_to_image(targets.presented, targets.width, targets.height)
        if not clamp:
            return image

        image = np.clip(image, 0.0, 1.0)
        if gamma != 1.0:
            image = np.power(image, 1.0 / gamma)
        return image.astype(np.float32)

    def get_accumulation_numpy(self) -> npt.NDArray[np.float32]:
        """Get the unclamped accumulation image as a (height, width, 3) array.

        Raises:
            RuntimeError: If no frame has been rendered since enabling.
        """
        targets = self.resources.targets
        if targets is None:
            raise RuntimeError("No frame has been rendered yet")
        return field_to_image(targets.accumulation, targets.width, targets.height)

    def __repr__(self) -> str:
        return (
            f"RayTracingController(state={self.lifecycle.value}, "
            f"sample_index={self.sample_index}, settings={self.settings})"
        )
