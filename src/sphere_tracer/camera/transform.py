"""World transform with change tracking.

A Transform stores position, Euler rotation and scale of a scene object or
camera. Assigning a value that differs from the current one raises the
``has_changed`` flag; the frame invalidation tracker consumes and clears
that flag once per update tick.

Rotation is stored as (pitch, yaw, roll) in degrees and applied as
R = Ry(yaw) @ Rx(pitch) @ Rz(roll). With zero rotation the local forward
axis is -Z.

Example:
    >>> from src.sphere_tracer.camera.transform import Transform
    >>> t = Transform(position=(0.0, 1.0, 5.0))
    >>> t.has_changed = False
    >>> t.position = (0.0, 1.0, 5.0)  # same value, flag stays clear
    >>> t.has_changed
    False
"""

from __future__ import annotations

import math

import numpy as np
import numpy.typing as npt

Vec3 = tuple[float, float, float]


def _as_vec3(value) -> Vec3:
    x, y, z = value
    return (float(x), float(y), float(z))


def rotation_matrix(pitch: float, yaw: float, roll: float) -> npt.NDArray[np.float64]:
    """Build a 3x3 rotation matrix from Euler angles in degrees."""
    p, y, r = (math.radians(a) for a in (pitch, yaw, roll))

    cp, sp = math.cos(p), math.sin(p)
    cy, sy = math.cos(y), math.sin(y)
    cr, sr = math.cos(r), math.sin(r)

    rx = np.array([[1.0, 0.0, 0.0], [0.0, cp, -sp], [0.0, sp, cp]])
    ry = np.array([[cy, 0.0, sy], [0.0, 1.0, 0.0], [-sy, 0.0, cy]])
    rz = np.array([[cr, -sr, 0.0], [sr, cr, 0.0], [0.0, 0.0, 1.0]])

    return ry @ rx @ rz


class Transform:
    """Position, rotation and scale with an edge-triggered change flag.

    Attributes:
        has_changed: True when any component was assigned a different value
            since the flag was last cleared. New transforms start flagged.
    """

    def __init__(
        self,
        position: Vec3 = (0.0, 0.0, 0.0),
        rotation: Vec3 = (0.0, 0.0, 0.0),
        scale: Vec3 = (1.0, 1.0, 1.0),
    ) -> None:
        self._position = _as_vec3(position)
        self._rotation = _as_vec3(rotation)
        self._scale = _as_vec3(scale)
        self.has_changed = True

    def _assign(self, attr: str, value) -> None:
        new_value = _as_vec3(value)
        if getattr(self, attr) != new_value:
            setattr(self, attr, new_value)
            self.has_changed = True

    @property
    def position(self) -> Vec3:
        """World-space position."""
        return self._position

    @position.setter
    def position(self, value: Vec3) -> None:
        self._assign("_position", value)

    @property
    def rotation(self) -> Vec3:
        """Euler rotation (pitch, yaw, roll) in degrees."""
        return self._rotation

    @rotation.setter
    def rotation(self, value: Vec3) -> None:
        self._assign("_rotation", value)

    @property
    def scale(self) -> Vec3:
        """Per-axis scale."""
        return self._scale

    @scale.setter
    def scale(self, value: Vec3) -> None:
        self._assign("_scale", value)

    def translate(self, offset: Vec3) -> None:
        """Move by an offset in world space."""
        x, y, z = self._position
        dx, dy, dz = offset
        self.position = (x + dx, y + dy, z + dz)

    def rotate(self, pitch: float = 0.0, yaw: float = 0.0, roll: float = 0.0) -> None:
        """Add Euler angle deltas in degrees."""
        p, y, r = self._rotation
        self.rotation = (p + pitch, y + yaw, r + roll)

    def rotation_matrix(self) -> npt.NDArray[np.float64]:
        """Get the 3x3 rotation matrix."""
        return rotation_matrix(*self._rotation)

    def local_to_world_matrix(self) -> npt.NDArray[np.float64]:
        """Get the 4x4 T @ R @ S matrix."""
        m = np.eye(4)
        m[:3, :3] = self.rotation_matrix() @ np.diag(self._scale)
        m[:3, 3] = self._position
        return m

    @property
    def forward(self) -> npt.NDArray[np.float64]:
        """Unit forward direction (local -Z) in world space."""
        return self.rotation_matrix() @ np.array([0.0, 0.0, -1.0])

    @property
    def right(self) -> npt.NDArray[np.float64]:
        """Unit right direction (local +X) in world space."""
        return self.rotation_matrix() @ np.array([1.0, 0.0, 0.0])

    def look_at(self, target: Vec3) -> None:
        """Set pitch and yaw so that forward points at target. Roll is kept.

        Raises:
            ValueError: If target coincides with the position.
        """
        direction = np.asarray(target, dtype=np.float64) - np.asarray(self._position)
        norm = np.linalg.norm(direction)
        if norm < 1e-12:
            raise ValueError("look_at target coincides with transform position")
        fx, fy, fz = direction / norm

        pitch = math.degrees(math.asin(max(-1.0, min(1.0, fy))))
        yaw = math.degrees(math.atan2(-fx, -fz))
        self.rotation = (pitch, yaw, self._rotation[2])

    def copy(self) -> Transform:
        """Return an independent copy (including the change flag)."""
        clone = Transform(self._position, self._rotation, self._scale)
        clone.has_changed = self.has_changed
        return clone

    def __repr__(self) -> str:
        return (
            f"Transform(position={self._position}, rotation={self._rotation}, "
            f"scale={self._scale})"
        )
