"""Preview module for output and visualization.

Components:
    display: Tone mapping, gamma and Matplotlib preview
    export: PNG export
    interactive: Taichi GGUI window that drives the controller

Example:
    >>> from src.sphere_tracer.preview import save_png, show_preview
    >>> show_preview(controller, tone_map="reinhard")
    >>> save_png(controller, "output.png", gamma=2.2)
"""

from src.sphere_tracer.preview.display import (
    ToneMapMethod,
    apply_gamma,
    process_image_for_display,
    show_preview,
    tone_map_exposure,
    tone_map_reinhard,
)
from src.sphere_tracer.preview.export import (
    compute_rmse,
    image_to_uint8,
    save_png,
    save_png_from_array,
)
from src.sphere_tracer.preview.interactive import InteractivePreview, apply_camera_input

__all__ = [
    "InteractivePreview",
    "apply_camera_input",
    "show_preview",
    "tone_map_reinhard",
    "tone_map_exposure",
    "apply_gamma",
    "process_image_for_display",
    "ToneMapMethod",
    "save_png",
    "save_png_from_array",
    "image_to_uint8",
    "compute_rmse",
]
