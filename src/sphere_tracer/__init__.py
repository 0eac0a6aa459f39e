"""Progressive GPU sphere tracer built on Taichi.

This package provides the host-side controller of a real-time path tracer
that refines its image over successive frames:
- Camera-driven invalidation of accumulated samples
- Per-frame packing of sphere primitives into a device buffer
- Tiled dispatch of a trace kernel with per-frame uniforms
- Running-mean accumulation with a frozen-sample preview mode

Subpackages:
    materials: Material descriptor and its binary layout
    geometry: Ray-sphere intersection
    camera: Transform and perspective camera
    scene: Tagged world, scene query and primitive collector
    core: Settings, invalidation, dispatch, compositing, controller
    preview: Display, PNG export and interactive window
"""

__version__ = "0.1.0"
