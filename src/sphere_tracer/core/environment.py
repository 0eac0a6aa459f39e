"""Background environment bound read-only to the trace kernel.

Rays that escape the scene sample an equirectangular RGB image. The image
is supplied by the caller (from an array, a file, or the built-in sky
gradient) and is owned by the caller, not by the controller.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.sphere_tracer.core.environment import EnvironmentTexture
    >>> sky = EnvironmentTexture.gradient()
    >>> sky.size
    (64, 32)
"""

from pathlib import Path

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.sphere_tracer.core.resources import image_to_field_layout

vec3 = tm.vec3


def srgb_to_linear(image: npt.NDArray[np.float32]) -> npt.NDArray[np.float32]:
    """Decode sRGB-encoded values in [0, 1] to linear light."""
    image = np.clip(image, 0.0, 1.0)
    low = image / 12.92
    high = np.power((image + 0.055) / 1.055, 2.4)
    return np.where(image <= 0.04045, low, high).astype(np.float32)


class EnvironmentTexture:
    """Equirectangular RGB environment stored in a Taichi field.

    Attributes:
        field: Vector field of shape (width, height), origin at bottom left.
    """

    def __init__(self, image: npt.NDArray[np.float32]) -> None:
        """Create the texture from a linear (height, width, 3) image.

        Raises:
            ValueError: If the image is not (height, width, 3).
        """
        image = np.asarray(image, dtype=np.float32)
        if image.ndim != 3 or image.shape[2] != 3:
            raise ValueError(f"Environment image must be (height, width, 3), got {image.shape}")

        height, width = image.shape[:2]
        self.field = ti.Vector.field(3, dtype=ti.f32, shape=(width, height))
        self.field.from_numpy(image_to_field_layout(image))

    @property
    def size(self) -> tuple[int, int]:
        """Get (width, height)."""
        return self.field.shape

    @classmethod
    def from_array(cls, image: npt.ArrayLike, srgb: bool = False) -> "EnvironmentTexture":
        """Create the texture from a (height, width, 3) array.

        Set srgb for display-encoded values in [0, 1]; they are decoded to
        linear light first.
        """
        image = np.asarray(image, dtype=np.float32)
        return cls(srgb_to_linear(image) if srgb else image)

    @classmethod
    def from_file(cls, path: str | Path) -> "EnvironmentTexture":
        """Load an 8-bit sRGB image file (PNG, JPEG, ...) as linear light."""
        from PIL import Image as PILImage

        with PILImage.open(path) as img:
            data = np.asarray(img.convert("RGB"), dtype=np.float32) / 255.0
        return cls(srgb_to_linear(data))

    @classmethod
    def solid(cls, color: tuple[float, float, float]) -> "EnvironmentTexture":
        """Create a single-texel environment of constant color."""
        return cls(np.array([[color]], dtype=np.float32))

    @classmethod
    def gradient(
        cls,
        horizon: tuple[float, float, float] = (1.0, 1.0, 1.0),
        zenith: tuple[float, float, float] = (0.5, 0.7, 1.0),
        ground: tuple[float, float, float] = (0.35, 0.3, 0.25),
        width: int = 64,
        height: int = 32,
    ) -> "EnvironmentTexture":
        """Create a simple sky: horizon-to-zenith blend above, flat ground below."""
        # Row 0 is the top of the image (elevation +90 degrees)
        elevation = 1.0 - (np.arange(height, dtype=np.float32) + 0.5) / height * 2.0
        t = np.clip(elevation, 0.0, 1.0)[:, None]

        sky = (1.0 - t) * np.array(horizon, dtype=np.float32) + t * np.array(zenith, dtype=np.float32)
        rows = np.where((elevation >= 0.0)[:, None], sky, np.array(ground, dtype=np.float32))

        image = np.repeat(rows[:, None, :], width, axis=1)
        return cls(image.astype(np.float32))


@ti.func
def sample_environment(environment: ti.template(), direction: vec3) -> vec3:
    """Nearest-texel lookup of an equirectangular environment field.

    Args:
        environment: Vector field of shape (width, height).
        direction: Unit direction in world space.

    Returns:
        The environment radiance in that direction.
    """
    width = environment.shape[0]
    height = environment.shape[1]

    u = 0.5 + ti.atan2(direction.x, -direction.z) / (2.0 * tm.pi)
    v = 0.5 + ti.asin(tm.clamp(direction.y, -1.0, 1.0)) / tm.pi

    i = tm.clamp(ti.cast(u * width, ti.i32), 0, width - 1)
    j = tm.clamp(ti.cast(v * height, ti.i32), 0, height - 1)
    return environment[i, j]
