"""User-facing tracer configuration.

TracerSettings is the configuration surface exposed to collaborators.
Limits outside their declared ranges are clamped when the settings are
built, so an out-of-range value never reaches a dispatch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum

logger = logging.getLogger(__name__)

# Threads per tile edge of the dispatch grid (16x16 threads per tile)
TILE_SIZE = 16

MIN_BOUNCES = 1
MAX_BOUNCES = 32
MIN_RAYS_PER_PIXEL = 1
MAX_RAYS_PER_PIXEL = 200


class RunMode(Enum):
    """Per-frame mode passed into the controller.

    ACTIVE advances the sample index after every frame. PREVIEW keeps it
    frozen so parameter tweaks can be shown without disturbing the
    accumulated image.
    """

    ACTIVE = "active"
    PREVIEW = "preview"


def _clamp(name: str, value: int, low: int, high: int) -> int:
    clamped = min(max(int(value), low), high)
    if clamped != value:
        logger.warning("%s=%s out of range [%d, %d], clamped to %d", name, value, low, high, clamped)
    return clamped


@dataclass(frozen=True)
class TracerSettings:
    """Configuration for the accumulation-and-dispatch controller.

    Attributes:
        enable_shader: Trace even when not in ACTIVE mode. When False and
            the frame is a PREVIEW, the input frame is passed through.
        max_bounces: Maximum path length, clamped to [1, 32].
        rays_per_pixel: Paths traced per pixel per frame, clamped to [1, 200].
        reset_on_resize: Reset the sample index when the accumulation image
            is reallocated for a new resolution.
    """

    enable_shader: bool = False
    max_bounces: int = 4
    rays_per_pixel: int = 2
    reset_on_resize: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "max_bounces", _clamp("max_bounces", self.max_bounces, MIN_BOUNCES, MAX_BOUNCES)
        )
        object.__setattr__(
            self,
            "rays_per_pixel",
            _clamp("rays_per_pixel", self.rays_per_pixel, MIN_RAYS_PER_PIXEL, MAX_RAYS_PER_PIXEL),
        )

    def with_limits(
        self,
        max_bounces: int | None = None,
        rays_per_pixel: int | None = None,
    ) -> TracerSettings:
        """Return a copy with new limits, clamped like the constructor."""
        return replace(
            self,
            max_bounces=self.max_bounces if max_bounces is None else max_bounces,
            rays_per_pixel=self.rays_per_pixel if rays_per_pixel is None else rays_per_pixel,
        )

    def should_trace(self, mode: RunMode) -> bool:
        """Whether a frame in this mode runs the trace kernel."""
        return self.enable_shader or mode is RunMode.ACTIVE
