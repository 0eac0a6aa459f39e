"""Progressive blending of traced frames into the accumulation image.

With sample index n (frames already accumulated), the new frame gets
weight w = 1 / (n + 1):

    accumulation = accumulation * (1 - w) + frame * w

which keeps the accumulation equal to the mean of every frame since the
last invalidation. The update is written as

    accumulation += (frame - accumulation) * w

so a frame equal to the current mean leaves it bit-for-bit unchanged. The
first frame after an invalidation (w = 1) replaces the image outright.

In PREVIEW mode the same blend is written to the presented image only,
leaving the accumulation untouched, so previews can be redrawn any number
of times without skewing the running mean.
"""

from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt
import taichi as ti

from src.sphere_tracer.core.resources import image_to_field_layout
from src.sphere_tracer.core.settings import RunMode

if TYPE_CHECKING:
    from src.sphere_tracer.core.resources import RenderTargets


def blend_weight(sample_index: int) -> float:
    """Weight of the newest frame in the running mean."""
    return 1.0 / (sample_index + 1)


@ti.func
def _running_mean(mean, frame, weight: ti.f32):
    result = frame
    # Weight 1 starts a new mean; stale content must not leak through rounding
    if weight < 1.0:
        result = mean + (frame - mean) * weight
    return result


@ti.kernel
def _accumulate(accumulation: ti.template(), frame: ti.template(), weight: ti.f32):
    for i, j in accumulation:
        accumulation[i, j] = _running_mean(accumulation[i, j], frame[i, j], weight)


@ti.kernel
def _blend_into(
    dst: ti.template(), accumulation: ti.template(), frame: ti.template(), weight: ti.f32
):
    for i, j in dst:
        dst[i, j] = _running_mean(accumulation[i, j], frame[i, j], weight)


@ti.kernel
def _copy(src: ti.template(), dst: ti.template()):
    for i, j in dst:
        dst[i, j] = src[i, j]


class AccumulationCompositor:
    """Blends the frame image into the accumulation and fills the presented image."""

    def composite(self, targets: "RenderTargets", sample_index: int, mode: RunMode) -> None:
        """Blend this frame's output using the current sample index.

        Args:
            targets: Render targets holding the freshly written frame.
            sample_index: Frames accumulated before this one.
            mode: ACTIVE commits the blend to the accumulation image;
                PREVIEW only presents it.
        """
        weight = blend_weight(sample_index)

        if mode is RunMode.ACTIVE:
            _accumulate(targets.accumulation, targets.frame, weight)
            _copy(targets.accumulation, targets.presented)
        else:
            _blend_into(targets.presented, targets.accumulation, targets.frame, weight)

    def pass_through(
        self, targets: "RenderTargets", source: npt.NDArray[np.float32] | None
    ) -> None:
        """Present the unmodified input frame, or black without one.

        Args:
            targets: Render targets to present into.
            source: Input frame of shape (height, width, 3), or None.

        Raises:
            ValueError: If source does not match the target resolution.
        """
        if source is None:
            targets.presented.fill(0.0)
            return

        expected_shape = (targets.height, targets.width, 3)
        if source.shape != expected_shape:
            raise ValueError(
                f"Source frame shape {source.shape} doesn't match expected {expected_shape}"
            )
        targets.presented.from_numpy(image_to_field_layout(source))
