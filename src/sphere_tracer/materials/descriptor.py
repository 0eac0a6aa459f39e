"""Material descriptor with a fixed, versioned binary layout.

The descriptor is the host-side mirror of the material struct read by the
trace kernel. Its byte layout is part of the kernel contract, so it is
defined once as a NumPy structured dtype and every packing path goes
through that dtype.

Layout (version 1, little-endian, packed, 40 bytes):

    offset  size  field
    0       16    color              float32[4]  (RGBA)
    16      16    emission_color     float32[4]  (RGBA)
    32      4     emission_strength  float32
    36      4     albedo             float32     (reflectance weight, [0, 1])

Example:
    >>> from src.sphere_tracer.materials.descriptor import MaterialDescriptor
    >>> mat = MaterialDescriptor(color=(0.8, 0.2, 0.2, 1.0), albedo=0.25)
    >>> len(mat.to_bytes())
    40
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

# Type alias for RGBA colors
RGBA = tuple[float, float, float, float]

MATERIAL_LAYOUT_VERSION = 1

MATERIAL_DTYPE = np.dtype(
    [
        ("color", "<f4", (4,)),
        ("emission_color", "<f4", (4,)),
        ("emission_strength", "<f4"),
        ("albedo", "<f4"),
    ]
)

MATERIAL_FLOATS = MATERIAL_DTYPE.itemsize // 4


def _as_rgba(name: str, value: tuple[float, ...]) -> RGBA:
    if len(value) != 4:
        raise ValueError(f"{name} must have 4 components (RGBA), got {len(value)}")
    return (float(value[0]), float(value[1]), float(value[2]), float(value[3]))


@dataclass(frozen=True)
class MaterialDescriptor:
    """Surface appearance of a ray-traced sphere.

    Attributes:
        color: Base color (RGBA). The RGB part tints every bounce.
        emission_color: Emitted color (RGBA).
        emission_strength: Scale applied to emission_color.
        albedo: Reflectance weight in [0, 1]. 0 is fully diffuse,
            1 is a perfect mirror.
    """

    color: RGBA = (1.0, 1.0, 1.0, 1.0)
    emission_color: RGBA = (0.0, 0.0, 0.0, 1.0)
    emission_strength: float = 0.0
    albedo: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "color", _as_rgba("color", self.color))
        object.__setattr__(
            self, "emission_color", _as_rgba("emission_color", self.emission_color)
        )
        object.__setattr__(self, "emission_strength", float(self.emission_strength))
        object.__setattr__(self, "albedo", float(self.albedo))

        if not 0.0 <= self.albedo <= 1.0:
            raise ValueError(f"albedo must be in [0, 1], got {self.albedo}")

    @property
    def is_emissive(self) -> bool:
        """Whether the material emits any light."""
        return self.emission_strength > 0.0 and any(c > 0.0 for c in self.emission_color[:3])

    def emitted_radiance(self) -> tuple[float, float, float]:
        """Get the emitted RGB radiance (emission_color * emission_strength)."""
        r, g, b, _ = self.emission_color
        s = self.emission_strength
        return (r * s, g * s, b * s)

    def as_record(self) -> tuple:
        """Get the descriptor as a tuple matching MATERIAL_DTYPE field order."""
        return (self.color, self.emission_color, self.emission_strength, self.albedo)

    def to_array(self) -> npt.NDArray[np.void]:
        """Pack into a 0-d structured array with MATERIAL_DTYPE."""
        return np.array(self.as_record(), dtype=MATERIAL_DTYPE)

    def to_bytes(self) -> bytes:
        """Serialize to the version 1 binary layout."""
        return self.to_array().tobytes()

    @classmethod
    def from_bytes(cls, data: bytes) -> MaterialDescriptor:
        """Deserialize from the version 1 binary layout.

        Raises:
            ValueError: If data is not exactly MATERIAL_DTYPE.itemsize bytes.
        """
        if len(data) != MATERIAL_DTYPE.itemsize:
            raise ValueError(
                f"Material layout v{MATERIAL_LAYOUT_VERSION} expects "
                f"{MATERIAL_DTYPE.itemsize} bytes, got {len(data)}"
            )
        return cls.from_record(np.frombuffer(data, dtype=MATERIAL_DTYPE)[0])

    @classmethod
    def from_record(cls, record: np.void) -> MaterialDescriptor:
        """Build a descriptor from a structured-array element."""
        return cls(
            color=tuple(float(c) for c in record["color"]),
            emission_color=tuple(float(c) for c in record["emission_color"]),
            emission_strength=float(record["emission_strength"]),
            albedo=float(record["albedo"]),
        )


def emissive_material(
    emission_color: tuple[float, float, float] = (1.0, 1.0, 1.0),
    emission_strength: float = 1.0,
) -> MaterialDescriptor:
    """Create a black-bodied light material."""
    return MaterialDescriptor(
        color=(0.0, 0.0, 0.0, 1.0),
        emission_color=(*emission_color, 1.0),
        emission_strength=emission_strength,
    )
