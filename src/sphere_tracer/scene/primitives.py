"""Sphere primitive records and their packed GPU layout.

A PrimitiveRecord is a per-frame snapshot of one ray-traced sphere. Records
carry no identity between frames; the scene buffer built from them is
replaced wholesale every frame.

Sphere layout (version 1, little-endian, packed, 56 bytes = 14 floats):

    offset  size  field
    0       12    position   float32[3]
    12      4     radius     float32
    16      40    material   MATERIAL_DTYPE (see materials.descriptor)

The trace kernel indexes rows of this layout as float32 columns; the
column constants below are the single source of those offsets.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from src.sphere_tracer.materials.descriptor import MATERIAL_DTYPE, MaterialDescriptor

if TYPE_CHECKING:
    from src.sphere_tracer.scene.world import SceneObject

SPHERE_LAYOUT_VERSION = 1

SPHERE_DTYPE = np.dtype(
    [
        ("position", "<f4", (3,)),
        ("radius", "<f4"),
        ("material", MATERIAL_DTYPE),
    ]
)

SPHERE_FLOATS = SPHERE_DTYPE.itemsize // 4

# Float column offsets within one packed sphere row
COL_POSITION = 0
COL_RADIUS = 3
COL_COLOR = 4
COL_EMISSION_COLOR = 8
COL_EMISSION_STRENGTH = 12
COL_ALBEDO = 13


@dataclass(frozen=True)
class PrimitiveRecord:
    """One sphere as seen by the trace kernel.

    Attributes:
        position: World-space center.
        radius: Sphere radius.
        material: Copied material descriptor.
    """

    position: tuple[float, float, float]
    radius: float
    material: MaterialDescriptor

    @classmethod
    def from_object(cls, obj: SceneObject) -> PrimitiveRecord:
        """Derive a record from a scene object's live transform.

        The radius is half the x-axis scale: a unit-scaled sphere object has
        diameter 1. Non-uniform scale is not supported and only x is read.
        """
        transform = obj.transform
        return cls(
            position=transform.position,
            radius=transform.scale[0] * 0.5,
            material=obj.material,
        )

    def as_record(self) -> tuple:
        """Get the record as a tuple matching SPHERE_DTYPE field order."""
        return (self.position, self.radius, self.material.as_record())
