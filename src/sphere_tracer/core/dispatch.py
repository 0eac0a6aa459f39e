"""Per-frame uniform assembly and tiled kernel dispatch.

The coordinator turns camera state and user limits into the uniform set
the trace kernel consumes, sizes the dispatch grid, and launches the
kernel. The grid is made of fixed-size tiles (16x16 threads) and uses
floor division, so a resolution that is not a multiple of the tile size
leaves a right and top remainder strip that no dispatch covers. Pixels in
that strip keep whatever the frame image held before.

Example:
    >>> from src.sphere_tracer.core.dispatch import compute_dispatch_grid
    >>> grid = compute_dispatch_grid(1000, 700)
    >>> (grid.groups_x, grid.groups_y, grid.tile_count)
    (62, 43, 2666)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt

from src.sphere_tracer.core.kernels import PathTraceKernel, TraceKernel
from src.sphere_tracer.core.settings import TILE_SIZE, TracerSettings

if TYPE_CHECKING:
    import taichi as ti

    from src.sphere_tracer.camera.perspective import PerspectiveCamera
    from src.sphere_tracer.core.environment import EnvironmentTexture
    from src.sphere_tracer.scene.collector import DeviceSceneBuffer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CameraFrameParameters:
    """Uniforms for one dispatch, derived fresh every frame.

    Attributes:
        camera_to_world: 4x4 camera-to-world matrix.
        inverse_projection: 4x4 inverse of the camera projection.
        max_bounces: Scattered segments per path.
        rays_per_pixel: Paths per pixel.
        sample_index: Frames accumulated since the last invalidation.
    """

    camera_to_world: npt.NDArray[np.float32]
    inverse_projection: npt.NDArray[np.float32]
    max_bounces: int
    rays_per_pixel: int
    sample_index: int


@dataclass(frozen=True)
class DispatchGrid:
    """Tiled 2D dispatch dimensions.

    Attributes:
        groups_x: Tiles along x (floor(width / tile_size)).
        groups_y: Tiles along y (floor(height / tile_size)).
        tile_size: Pixels per tile edge.
    """

    groups_x: int
    groups_y: int
    tile_size: int = TILE_SIZE

    @property
    def tile_count(self) -> int:
        """Total number of tiles dispatched."""
        return self.groups_x * self.groups_y

    @property
    def covered_width(self) -> int:
        """Width in pixels of the dispatched region."""
        return self.groups_x * self.tile_size

    @property
    def covered_height(self) -> int:
        """Height in pixels of the dispatched region."""
        return self.groups_y * self.tile_size


def compute_dispatch_grid(width: int, height: int, tile_size: int = TILE_SIZE) -> DispatchGrid:
    """Size the dispatch grid for an output resolution.

    Raises:
        ValueError: If tile_size is not positive.
    """
    if tile_size <= 0:
        raise ValueError(f"tile_size must be positive, got {tile_size}")
    return DispatchGrid(width // tile_size, height // tile_size, tile_size)


class DispatchCoordinator:
    """Builds per-frame uniforms and launches the trace kernel.

    Attributes:
        kernel: The compute program to launch.
        tile_size: Pixels per tile edge.
        dispatch_count: Number of dispatches issued so far.
    """

    def __init__(self, kernel: TraceKernel | None = None, tile_size: int = TILE_SIZE) -> None:
        self.kernel = kernel if kernel is not None else PathTraceKernel()
        self.tile_size = tile_size
        self.dispatch_count = 0

    def build_parameters(
        self,
        camera: PerspectiveCamera,
        resolution: tuple[int, int],
        settings: TracerSettings,
        sample_index: int,
    ) -> CameraFrameParameters:
        """Assemble this frame's uniforms from camera state and settings."""
        width, height = resolution
        projection = camera.projection_matrix(camera.resolve_aspect(width, height))

        return CameraFrameParameters(
            camera_to_world=camera.camera_to_world_matrix(),
            inverse_projection=np.linalg.inv(projection).astype(np.float32),
            max_bounces=settings.max_bounces,
            rays_per_pixel=settings.rays_per_pixel,
            sample_index=sample_index,
        )

    def dispatch(
        self,
        target: ti.MatrixField,
        environment: EnvironmentTexture,
        scene_buffer: DeviceSceneBuffer,
        params: CameraFrameParameters,
    ) -> DispatchGrid:
        """Bind the frame's resources and launch the kernel over the tile grid.

        Args:
            target: Frame image the kernel writes, shape (width, height).
            environment: Background texture, read-only.
            scene_buffer: This frame's device scene buffer.
            params: This frame's uniforms.

        Returns:
            The grid that was dispatched.
        """
        width, height = target.shape
        grid = compute_dispatch_grid(width, height, self.tile_size)

        self.kernel(target, environment, scene_buffer, params, grid)
        self.dispatch_count += 1

        logger.debug(
            "Dispatched %dx%d tiles over %dx%d (%d spheres, sample %d)",
            grid.groups_x,
            grid.groups_y,
            width,
            height,
            scene_buffer.count,
            params.sample_index,
        )
        return grid
