"""Matplotlib display of the controller's presented image.

The controller presents linear radiance. These helpers map it to display
values (tone mapping, gamma) and show it in a Matplotlib figure together
with the sample index.

Example:
    >>> from src.sphere_tracer.preview.display import show_preview
    >>> with controller:
    ...     for _ in range(32):
    ...         controller.on_tick()
    ...     show_preview(controller, tone_map="reinhard")
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

import numpy as np
import numpy.typing as npt

if TYPE_CHECKING:
    from src.sphere_tracer.core.controller import RayTracingController


# Type alias for tone mapping options
ToneMapMethod = Literal["none", "reinhard", "exposure"]


def tone_map_reinhard(image: npt.NDArray[np.float32]) -> npt.NDArray[np.float32]:
    """Reinhard operator c / (1 + c). Negative input is treated as black."""
    image = np.maximum(image, 0.0)
    return (image / (1.0 + image)).astype(np.float32)


def tone_map_exposure(
    image: npt.NDArray[np.float32],
    exposure: float = 1.0,
) -> npt.NDArray[np.float32]:
    """Exposure operator 1 - exp(-c * exposure)."""
    image = np.maximum(image, 0.0)
    return (1.0 - np.exp(-image * exposure)).astype(np.float32)


def apply_gamma(
    image: npt.NDArray[np.float32],
    gamma: float = 2.2,
) -> npt.NDArray[np.float32]:
    """Gamma encode values in [0, 1]. Input is clamped first."""
    if gamma == 1.0:
        return image
    return np.power(np.clip(image, 0.0, 1.0), 1.0 / gamma).astype(np.float32)


def process_image_for_display(
    image: npt.NDArray[np.float32],
    tone_map: ToneMapMethod = "none",
    gamma: float = 2.2,
    exposure: float = 1.0,
) -> npt.NDArray[np.float32]:
    """Tone map, gamma encode and clamp a linear image.

    Args:
        image: Linear image of shape (H, W, 3).
        tone_map: "none", "reinhard" or "exposure".
        gamma: Display gamma.
        exposure: Exposure for the "exposure" operator.

    Returns:
        Display-ready image in [0, 1].

    Raises:
        ValueError: For an unknown tone mapping method.
    """
    result = image.copy()

    if tone_map == "reinhard":
        result = tone_map_reinhard(result)
    elif tone_map == "exposure":
        result = tone_map_exposure(result, exposure)
    elif tone_map != "none":
        raise ValueError(f"Unknown tone mapping method: {tone_map}")

    result = apply_gamma(result, gamma)
    return np.clip(result, 0.0, 1.0).astype(np.float32)


def show_preview(
    controller: RayTracingController,
    *,
    tone_map: ToneMapMethod = "none",
    gamma: float = 2.2,
    exposure: float = 1.0,
    title: str | None = None,
    figsize: tuple[float, float] = (8, 6),
    block: bool = True,
) -> None:
    """Show the controller's presented image in a Matplotlib figure.

    Args:
        controller: Controller that has rendered at least one frame.
        tone_map: Tone mapping method.
        gamma: Display gamma.
        exposure: Exposure for the "exposure" operator.
        title: Figure title; defaults to the sample index.
        figsize: Figure size in inches.
        block: Block until the figure is closed.
    """
    import matplotlib.pyplot as plt

    image = controller.get_image_numpy(clamp=False)
    display_image = process_image_for_display(
        image, tone_map=tone_map, gamma=gamma, exposure=exposure
    )

    fig, ax = plt.subplots(1, 1, figsize=figsize)
    ax.imshow(display_image)
    ax.axis("off")

    if title is None:
        title = f"Progressive Preview - sample {controller.sample_index}"
        if tone_map != "none":
            title += f" ({tone_map})"
    ax.set_title(title)

    plt.tight_layout()
    plt.show(block=block)
