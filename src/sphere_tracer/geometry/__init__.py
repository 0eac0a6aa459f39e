"""Geometry module for ray-primitive intersection.

Components:
    sphere: Robust ray-sphere intersection used by the trace kernel
"""

from .sphere import HitRecord, hit_sphere

__all__ = [
    "HitRecord",
    "hit_sphere",
]
