"""Flat tagged object list and the sphere query over it.

The controller never walks the world itself. It asks a SceneQuery for the
current sphere primitives, which keeps it independent of how objects are
stored or tagged. TaggedSceneQuery is the tag-lookup implementation used
by the examples and tests.

Example:
    >>> from src.sphere_tracer.scene.world import World, TaggedSceneQuery
    >>> from src.sphere_tracer.materials import MaterialDescriptor
    >>> world = World()
    >>> world.add_sphere("ball", (0.0, 1.0, 0.0), 2.0, MaterialDescriptor())
    >>> len(TaggedSceneQuery(world).collect_sphere_primitives())
    1
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from src.sphere_tracer.camera.transform import Transform
from src.sphere_tracer.materials.descriptor import MaterialDescriptor
from src.sphere_tracer.scene.primitives import PrimitiveRecord

# Tag marking objects the tracer should render as spheres
SPHERE_TAG = "RTSphere"


class SceneQuery(Protocol):
    """Source of the ray-traceable spheres for the current frame."""

    def collect_sphere_primitives(self) -> Sequence[PrimitiveRecord]: ...


@dataclass
class SceneObject:
    """A named object with a transform, a material and a set of tags."""

    name: str
    transform: Transform
    material: MaterialDescriptor
    tags: set[str] = field(default_factory=set)


class World:
    """Ordered collection of scene objects with tag lookup."""

    def __init__(self, objects: Iterable[SceneObject] = ()) -> None:
        self._objects: list[SceneObject] = list(objects)

    def __len__(self) -> int:
        return len(self._objects)

    def __iter__(self):
        return iter(self._objects)

    def add(self, obj: SceneObject) -> SceneObject:
        """Add an object and return it."""
        self._objects.append(obj)
        return obj

    def add_sphere(
        self,
        name: str,
        position: tuple[float, float, float],
        diameter: float,
        material: MaterialDescriptor,
        tags: Iterable[str] = (SPHERE_TAG,),
    ) -> SceneObject:
        """Add a sphere object scaled uniformly to the given diameter."""
        transform = Transform(position=position, scale=(diameter, diameter, diameter))
        return self.add(SceneObject(name, transform, material, set(tags)))

    def remove(self, obj: SceneObject) -> None:
        """Remove an object.

        Raises:
            ValueError: If the object is not in the world.
        """
        self._objects.remove(obj)

    def find(self, name: str) -> SceneObject | None:
        """Find the first object with a name."""
        for obj in self._objects:
            if obj.name == name:
                return obj
        return None

    def find_with_tag(self, tag: str) -> list[SceneObject]:
        """Get all objects carrying a tag, in insertion order."""
        return [obj for obj in self._objects if tag in obj.tags]


class TaggedSceneQuery:
    """SceneQuery that reports every world object carrying a tag."""

    def __init__(self, world: World, tag: str = SPHERE_TAG) -> None:
        self.world = world
        self.tag = tag

    def collect_sphere_primitives(self) -> list[PrimitiveRecord]:
        return [PrimitiveRecord.from_object(obj) for obj in self.world.find_with_tag(self.tag)]
