"""Per-frame gathering and packing of sphere primitives.

Every frame the collector asks the scene query for the live spheres, packs
them into a structured NumPy array with SPHERE_DTYPE, and uploads that
array into a freshly allocated device buffer. Nothing is diffed or kept
between frames: the previous device buffer is released by its owner and
the new one replaces it.

Taichi cannot allocate a zero-length ndarray, so a device buffer always
holds at least one row. The bound element count is the packed row count,
which the kernel uses as its loop bound, so an empty scene binds a valid
allocation with count 0.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.sphere_tracer.scene import PrimitiveCollector, TaggedSceneQuery, World
    >>> collector = PrimitiveCollector(TaggedSceneQuery(World()))
    >>> buffer = collector.collect_and_upload()
    >>> buffer.count
    0
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np
import numpy.typing as npt
import taichi as ti

from src.sphere_tracer.scene.primitives import SPHERE_DTYPE, SPHERE_FLOATS, PrimitiveRecord
from src.sphere_tracer.scene.world import SceneQuery

logger = logging.getLogger(__name__)

# Structured array of SPHERE_DTYPE rows
SceneBuffer = npt.NDArray[np.void]


def pack_scene_buffer(records: Sequence[PrimitiveRecord]) -> SceneBuffer:
    """Pack primitive records into a SPHERE_DTYPE array of exactly len(records) rows."""
    buffer = np.empty(len(records), dtype=SPHERE_DTYPE)
    for i, record in enumerate(records):
        buffer[i] = record.as_record()
    return buffer


def scene_buffer_as_floats(buffer: SceneBuffer) -> npt.NDArray[np.float32]:
    """View a packed scene buffer as a (count, SPHERE_FLOATS) float32 array."""
    return np.ascontiguousarray(buffer).view(np.float32).reshape(len(buffer), SPHERE_FLOATS)


class DeviceSceneBuffer:
    """Device-resident copy of one frame's scene buffer.

    Attributes:
        count: Number of spheres bound for this frame.
        capacity: Rows allocated on the device (max(count, 1)).
    """

    def __init__(self, buffer: SceneBuffer) -> None:
        self.count = len(buffer)
        self.capacity = max(self.count, 1)

        self._array: ti.Ndarray | None = ti.ndarray(
            dtype=ti.f32, shape=(self.capacity, SPHERE_FLOATS)
        )

        host = np.zeros((self.capacity, SPHERE_FLOATS), dtype=np.float32)
        host[: self.count] = scene_buffer_as_floats(buffer)
        self._array.from_numpy(host)

    @property
    def released(self) -> bool:
        """Whether the device allocation has been released."""
        return self._array is None

    @property
    def array(self) -> ti.Ndarray:
        """The device ndarray to bind to the kernel.

        Raises:
            RuntimeError: If the buffer has been released.
        """
        if self._array is None:
            raise RuntimeError("Scene buffer has been released")
        return self._array

    def to_numpy(self) -> npt.NDArray[np.float32]:
        """Read back the bound rows as a (count, SPHERE_FLOATS) array."""
        return self.array.to_numpy()[: self.count]

    def release(self) -> None:
        """Drop the device allocation. Safe to call more than once.

        This drops the buffer's reference to the ndarray. Taichi frees the
        device memory when the last reference is gone, so callers must not
        keep their own reference to ``array`` past the frame.
        """
        self._array = None

    def __repr__(self) -> str:
        state = "released" if self.released else f"capacity={self.capacity}"
        return f"DeviceSceneBuffer(count={self.count}, {state})"


class PrimitiveCollector:
    """Builds the scene buffer for each frame from a SceneQuery."""

    def __init__(self, query: SceneQuery) -> None:
        self.query = query

    def collect(self) -> SceneBuffer:
        """Query the scene and pack the result for this frame."""
        return pack_scene_buffer(self.query.collect_sphere_primitives())

    def collect_and_upload(self) -> DeviceSceneBuffer:
        """Collect this frame's spheres into a new device buffer."""
        buffer = self.collect()
        logger.debug("Uploading scene buffer with %d spheres", len(buffer))
        return DeviceSceneBuffer(buffer)
