"""Ownership of the controller's device images and scene buffer.

The render targets are three RGB float images of the output resolution:

    frame         written by the trace kernel each frame
    accumulation  running mean of all frames since the last invalidation
    presented     what the display shows this tick

They are placed in one Taichi SNode tree built with ti.FieldsBuilder, so
the whole set can be destroyed explicitly when the resolution changes or
the controller shuts down instead of waiting for garbage collection.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.sphere_tracer.core.resources import ResourceLifecycleManager
    >>> resources = ResourceLifecycleManager()
    >>> resources.ensure_targets(64, 48)
    True
    >>> resources.ensure_targets(64, 48)
    False
    >>> resources.release_all()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt
import taichi as ti

if TYPE_CHECKING:
    from src.sphere_tracer.scene.collector import DeviceSceneBuffer

logger = logging.getLogger(__name__)


def field_to_image(field: ti.MatrixField, width: int, height: int) -> npt.NDArray[np.float32]:
    """Convert a (width, height) RGB field to a (height, width, 3) image.

    Taichi indexes fields as (x, y) with the origin at the bottom left;
    images are (row, column) with the origin at the top left.
    """
    data = field.to_numpy()[:width, :height, :]
    return np.flipud(np.transpose(data, (1, 0, 2))).astype(np.float32)


def image_to_field_layout(image: npt.NDArray[np.float32]) -> npt.NDArray[np.float32]:
    """Convert a (height, width, 3) image to (width, height, 3) field layout."""
    return np.ascontiguousarray(np.transpose(np.flipud(image), (1, 0, 2)), dtype=np.float32)


class RenderTargets:
    """The frame, accumulation and presented images for one resolution."""

    def __init__(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Render target size must be positive, got {width}x{height}")

        self.width = width
        self.height = height

        builder = ti.FieldsBuilder()
        self.frame = ti.Vector.field(3, dtype=ti.f32)
        self.accumulation = ti.Vector.field(3, dtype=ti.f32)
        self.presented = ti.Vector.field(3, dtype=ti.f32)
        builder.dense(ti.ij, (width, height)).place(self.frame, self.accumulation, self.presented)
        self._tree: ti.SNodeTree | None = builder.finalize()

        self.frame.fill(0.0)
        self.accumulation.fill(0.0)
        self.presented.fill(0.0)

    @property
    def size(self) -> tuple[int, int]:
        """Get (width, height)."""
        return self.width, self.height

    @property
    def released(self) -> bool:
        """Whether the images have been destroyed."""
        return self._tree is None

    def matches(self, width: int, height: int) -> bool:
        """Whether these targets are live and have the given size."""
        return not self.released and self.size == (width, height)

    def release(self) -> None:
        """Destroy the device images. Safe to call more than once."""
        if self._tree is not None:
            self._tree.destroy()
            self._tree = None

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"RenderTargets({self.width}x{self.height}, {state})"


class ResourceLifecycleManager:
    """Allocates, replaces and releases the controller's device resources.

    Attributes:
        targets: Current render targets, or None before the first frame.
        scene_buffer: Device scene buffer of the last frame, or None.
        allocation_count: Number of render target allocations so far.
    """

    def __init__(self) -> None:
        self.targets: RenderTargets | None = None
        self.scene_buffer: DeviceSceneBuffer | None = None
        self.allocation_count = 0

    def ensure_targets(self, width: int, height: int) -> bool:
        """Make sure render targets exist at the given resolution.

        Existing targets of another size are released first. Old content is
        not resampled; the new images start black.

        Returns:
            True if the targets were (re)allocated on this call.
        """
        if self.targets is not None and self.targets.matches(width, height):
            return False

        if self.targets is not None:
            logger.debug(
                "Output resized from %dx%d to %dx%d, reallocating render targets",
                self.targets.width,
                self.targets.height,
                width,
                height,
            )
            self.targets.release()

        self.targets = RenderTargets(width, height)
        self.allocation_count += 1
        return True

    def replace_scene_buffer(self, buffer: DeviceSceneBuffer) -> None:
        """Take ownership of this frame's scene buffer, releasing the last one."""
        if self.scene_buffer is not None and self.scene_buffer is not buffer:
            self.scene_buffer.release()
        self.scene_buffer = buffer

    def release_all(self) -> None:
        """Release the scene buffer and render targets."""
        try:
            if self.scene_buffer is not None:
                self.scene_buffer.release()
                self.scene_buffer = None
        finally:
            if self.targets is not None:
                self.targets.release()
                self.targets = None
        logger.debug("Released device resources")
