"""Materials module.

Components:
    descriptor: MaterialDescriptor value type and its versioned GPU layout

The trace kernel reads materials straight out of the packed scene buffer,
so the descriptor owns no device state of its own.
"""

from .descriptor import (
    MATERIAL_DTYPE,
    MATERIAL_FLOATS,
    MATERIAL_LAYOUT_VERSION,
    RGBA,
    MaterialDescriptor,
    emissive_material,
)

__all__ = [
    "MaterialDescriptor",
    "emissive_material",
    "MATERIAL_DTYPE",
    "MATERIAL_FLOATS",
    "MATERIAL_LAYOUT_VERSION",
    "RGBA",
]
