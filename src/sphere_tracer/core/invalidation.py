"""Camera-driven reset of progressive accumulation.

The tracker looks at the camera transform once per update tick. A raised
``has_changed`` flag means the viewpoint moved, so the running average no
longer describes the image and the sample index goes back to 0. The flag
is cleared on the same tick, so a transform that moves once and then stays
put invalidates exactly once.
"""

from __future__ import annotations

import logging

from src.sphere_tracer.camera.transform import Transform
from src.sphere_tracer.core.state import AccumulationState

logger = logging.getLogger(__name__)


class FrameInvalidationTracker:
    """Edge-triggered invalidation on camera transform changes.

    Attributes:
        state: The accumulation state to reset.
        invalidation_count: Number of resets performed so far.
    """

    def __init__(self, state: AccumulationState) -> None:
        self.state = state
        self.invalidation_count = 0

    def observe(self, transform: Transform) -> bool:
        """Check the transform for this tick.

        Args:
            transform: The camera's world transform.

        Returns:
            True if accumulation was invalidated on this tick.
        """
        if not transform.has_changed:
            return False

        self.state.reset()
        transform.has_changed = False
        self.invalidation_count += 1
        logger.debug("Camera transform changed, accumulation reset")
        return True
