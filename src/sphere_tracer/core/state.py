"""Progressive accumulation counter shared by the controller components."""

# The sample index has uint32 semantics and wraps like the kernel uniform
_UINT32_MODULUS = 2**32


class AccumulationState:
    """Number of frames accumulated since the last invalidation.

    The invalidation tracker resets it, the compositor reads it as the
    blend weight denominator, and the controller advances it after each
    ACTIVE frame.
    """

    def __init__(self) -> None:
        self.sample_index = 0

    def reset(self) -> None:
        """Start accumulating from scratch."""
        self.sample_index = 0

    def advance(self) -> None:
        """Count one more accumulated frame."""
        self.sample_index = (self.sample_index + 1) % _UINT32_MODULUS

    def __repr__(self) -> str:
        return f"AccumulationState(sample_index={self.sample_index})"
