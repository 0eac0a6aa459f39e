#!/usr/bin/env python3
"""Render the demo sphere scene headless.

This script drives the progressive controller the way a window loop would,
one ACTIVE frame per tick, and saves the accumulated image as a PNG.

Usage:
    python -m examples.render_spheres [options]

Options:
    --width WIDTH         Image width in pixels (default: 640)
    --height HEIGHT       Image height in pixels (default: 360)
    --frames FRAMES       Number of accumulated frames (default: 64)
    --bounces BOUNCES     Maximum bounces per path (default: 4)
    --rays RAYS           Rays per pixel per frame (default: 2)
    --environment PATH    Equirectangular background image (default: sky gradient)
    --output OUTPUT       Output file path (default: spheres.png)
    --quiet               Suppress progress output

Example:
    python -m examples.render_spheres --width 320 --height 176 --frames 32
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

import taichi as ti


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render the demo sphere scene.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--width", type=int, default=640, help="Image width in pixels (default: 640)")
    parser.add_argument("--height", type=int, default=360, help="Image height in pixels (default: 360)")
    parser.add_argument(
        "--frames",
        type=int,
        default=64,
        help="Number of accumulated frames (default: 64)",
    )
    parser.add_argument("--bounces", type=int, default=4, help="Maximum bounces per path (default: 4)")
    parser.add_argument("--rays", type=int, default=2, help="Rays per pixel per frame (default: 2)")
    parser.add_argument(
        "--environment",
        type=str,
        default=None,
        help="Equirectangular background image (default: sky gradient)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="spheres.png",
        help="Output file path (default: spheres.png)",
    )
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    return parser.parse_args()


def render_spheres(
    width: int = 640,
    height: int = 360,
    num_frames: int = 64,
    max_bounces: int = 4,
    rays_per_pixel: int = 2,
    environment_path: str | None = None,
    output_path: str = "spheres.png",
    quiet: bool = False,
) -> Path:
    """Render the demo scene progressively and save it to file.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.
        num_frames: Number of ACTIVE frames to accumulate.
        max_bounces: Maximum bounces per path.
        rays_per_pixel: Rays per pixel per frame.
        environment_path: Background image, or None for the sky gradient.
        output_path: Output file path (PNG).
        quiet: If True, suppress progress output.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports to allow Taichi initialization first
    from src.sphere_tracer.core import (
        EnvironmentTexture,
        FixedSurface,
        RayTracingController,
        TracerSettings,
    )
    from src.sphere_tracer.preview.export import save_png
    from src.sphere_tracer.scene import TaggedSceneQuery, create_demo_scene

    if not quiet:
        print(f"Creating demo scene ({width}x{height})...")

    world, camera = create_demo_scene()
    environment = EnvironmentTexture.from_file(environment_path) if environment_path else None

    controller = RayTracingController(
        camera,
        TaggedSceneQuery(world),
        FixedSurface(width, height),
        settings=TracerSettings(max_bounces=max_bounces, rays_per_pixel=rays_per_pixel),
        environment=environment,
    )

    if not quiet:
        print(f"Accumulating {num_frames} frames ({controller.settings.rays_per_pixel} rays/pixel)...")

    start_time = time.time()
    output_file = Path(output_path)

    with controller:
        for frame in range(num_frames):
            controller.on_tick()

            if not quiet:
                elapsed = time.time() - start_time
                fps = (frame + 1) / elapsed if elapsed > 0 else 0
                print(
                    f"\r  Progress: {frame + 1}/{num_frames} frames - {fps:.1f} frames/s",
                    end="",
                    flush=True,
                )

        if not quiet:
            print()  # Newline after progress

        save_png(controller, str(output_file), tone_map="reinhard", gamma=2.2)

    total_time = time.time() - start_time
    if not quiet:
        print(f"Saved to: {output_file.absolute()}")
        print(f"Total time: {total_time:.2f}s")

    return output_file


def main() -> int:
    """Main entry point."""
    args = parse_args()

    # Use GPU if available, fall back to CPU
    try:
        ti.init(arch=ti.gpu)
        if not args.quiet:
            print("Using GPU backend")
    except Exception:
        ti.init(arch=ti.cpu)
        if not args.quiet:
            print("Using CPU backend")

    try:
        render_spheres(
            width=args.width,
            height=args.height,
            num_frames=args.frames,
            max_bounces=args.bounces,
            rays_per_pixel=args.rays,
            environment_path=args.environment,
            output_path=args.output,
            quiet=args.quiet,
        )
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
