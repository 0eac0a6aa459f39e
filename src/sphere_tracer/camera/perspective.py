"""Perspective camera supplying the matrices the trace kernel consumes.

The camera follows the OpenGL convention: in camera space it looks down
-Z with +Y up, and the projection maps the view frustum to clip space with
NDC depth in [-1, 1]. The kernel generates primary rays by pushing an NDC
point through the inverse projection and then the camera-to-world matrix,
so the camera only has to provide those two transforms.

Example:
    >>> from src.sphere_tracer.camera import PerspectiveCamera, Transform
    >>> camera = PerspectiveCamera(Transform(position=(0.0, 1.0, 6.0)), vfov=60.0)
    >>> camera.transform.look_at((0.0, 1.0, 0.0))
    >>> camera.projection_matrix(16 / 9).shape
    (4, 4)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np
import numpy.typing as npt

from src.sphere_tracer.camera.transform import Transform


@dataclass
class PerspectiveCamera:
    """Camera with a world transform and a perspective projection.

    Attributes:
        transform: World transform. Scale is ignored for the view matrix.
        vfov: Vertical field of view in degrees.
        near: Near clip distance.
        far: Far clip distance.
        aspect_ratio: Fixed width/height ratio, or None to follow the
            output resolution each frame.
    """

    transform: Transform = field(default_factory=Transform)
    vfov: float = 60.0
    near: float = 0.3
    far: float = 1000.0
    aspect_ratio: float | None = None

    def __post_init__(self) -> None:
        if not 0.0 < self.vfov < 180.0:
            raise ValueError(f"vfov must be in (0, 180) degrees, got {self.vfov}")
        if not 0.0 < self.near < self.far:
            raise ValueError(f"Expected 0 < near < far, got near={self.near}, far={self.far}")

    def resolve_aspect(self, width: int, height: int) -> float:
        """Get the aspect ratio to use for an output resolution."""
        if self.aspect_ratio is not None:
            return self.aspect_ratio
        return width / max(height, 1)

    def camera_to_world_matrix(self) -> npt.NDArray[np.float32]:
        """Get the 4x4 camera-to-world matrix (translation and rotation only)."""
        m = np.eye(4)
        m[:3, :3] = self.transform.rotation_matrix()
        m[:3, 3] = self.transform.position
        return m.astype(np.float32)

    def projection_matrix(self, aspect: float) -> npt.NDArray[np.float32]:
        """Get the OpenGL-style 4x4 perspective projection matrix."""
        f = 1.0 / math.tan(math.radians(self.vfov) / 2.0)
        n, fa = self.near, self.far

        m = np.zeros((4, 4))
        m[0, 0] = f / aspect
        m[1, 1] = f
        m[2, 2] = (fa + n) / (n - fa)
        m[2, 3] = 2.0 * fa * n / (n - fa)
        m[3, 2] = -1.0
        return m.astype(np.float32)
