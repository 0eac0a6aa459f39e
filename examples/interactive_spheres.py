#!/usr/bin/env python3
"""Interactive progressive sphere tracer.

This script opens a preview window on the demo sphere scene. The image
refines while the camera stays still and restarts from scratch as soon as
the camera moves.

Usage:
    python -m examples.interactive_spheres

Controls:
    - W/A/S/D, Q/E: Move the camera
    - Arrow keys: Turn the camera
    - Space: Toggle ACTIVE (accumulating) / PREVIEW (frozen) mode
    - GUI panel: Bounce and ray limits, shader toggle, PNG export
    - Escape: Quit
"""

from __future__ import annotations

import platform
import sys
from pathlib import Path

# Ensure the project root is in the Python path for direct execution
_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import taichi as ti  # noqa: E402


def initialize_taichi() -> str:
    """Initialize Taichi with the best available backend.

    On macOS, prefers Metal. Falls back to CPU if GPU is unavailable.

    Returns:
        Name of the backend being used.
    """
    if platform.system() == "Darwin":
        try:
            ti.init(arch=ti.metal)
            return "Metal (GPU)"
        except Exception:
            pass

    try:
        ti.init(arch=ti.gpu)
        return "GPU"
    except Exception:
        pass

    ti.init(arch=ti.cpu)
    return "CPU"


def main() -> int:
    """Main entry point for the interactive sphere tracer.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    # Initialize Taichi first (before importing modules that use ti.kernel)
    backend = initialize_taichi()
    print(f"Taichi backend: {backend}")

    from src.sphere_tracer.core import RayTracingController, TracerSettings
    from src.sphere_tracer.preview.interactive import InteractivePreview
    from src.sphere_tracer.scene import TaggedSceneQuery, create_demo_scene

    if not InteractivePreview.is_display_available():
        print("Error: No display available. Cannot run interactive preview.")
        print("This script requires a graphical display environment.")
        return 1

    print("Creating interactive preview window (960x544)...")
    preview = InteractivePreview(960, 544)

    world, camera = create_demo_scene()
    controller = RayTracingController(
        camera,
        TaggedSceneQuery(world),
        preview,
        settings=TracerSettings(max_bounces=4, rays_per_pixel=1),
    )

    print("Starting interactive rendering...")
    print("  - Move with W/A/S/D/Q/E, turn with the arrow keys")
    print("  - Press space to toggle accumulation")
    print("  - Click 'Export PNG' to save current render")
    print("  - Close window to exit")
    print()

    try:
        preview.run(controller)
    except KeyboardInterrupt:
        print("\nInterrupted by user.")
    finally:
        preview.close()
        print("Preview window closed.")

    return 0


if __name__ == "__main__":
    sys.exit(main())
