"""Camera module.

Components:
    transform: Position/rotation/scale with an edge-triggered change flag
    perspective: Perspective camera producing camera-to-world and
        projection matrices

The camera is a host-side collaborator: it never touches device memory.
The dispatch coordinator reads its matrices once per frame and computes
the inverse projection itself.
"""

from .perspective import PerspectiveCamera
from .transform import Transform, rotation_matrix

__all__ = [
    "PerspectiveCamera",
    "Transform",
    "rotation_matrix",
]
