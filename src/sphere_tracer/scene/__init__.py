"""Scene module.

Components:
    primitives: PrimitiveRecord and the packed sphere layout
    world: Tagged object list and the SceneQuery collaborator interface
    collector: Per-frame packing and device upload of sphere primitives
    demo: Demo world and camera for the example scripts
"""

from .collector import (
    DeviceSceneBuffer,
    PrimitiveCollector,
    SceneBuffer,
    pack_scene_buffer,
    scene_buffer_as_floats,
)
from .primitives import (
    SPHERE_DTYPE,
    SPHERE_FLOATS,
    SPHERE_LAYOUT_VERSION,
    PrimitiveRecord,
)
from .demo import DemoSceneParams, create_demo_scene
from .world import SPHERE_TAG, SceneObject, SceneQuery, TaggedSceneQuery, World

__all__ = [
    "PrimitiveRecord",
    "SPHERE_DTYPE",
    "SPHERE_FLOATS",
    "SPHERE_LAYOUT_VERSION",
    "SceneObject",
    "SceneQuery",
    "TaggedSceneQuery",
    "World",
    "SPHERE_TAG",
    "SceneBuffer",
    "DeviceSceneBuffer",
    "PrimitiveCollector",
    "pack_scene_buffer",
    "scene_buffer_as_floats",
    "DemoSceneParams",
    "create_demo_scene",
]
