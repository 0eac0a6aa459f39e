"""Demo sphere scene used by the example scripts.

The scene is a small showcase of the material model:
- A very large sphere acting as the ground
- A diffuse, a glossy and a mirror sphere in a row
- A bright emissive sphere above them

Example:
    >>> from src.sphere_tracer.scene.demo import create_demo_scene
    >>> world, camera = create_demo_scene()
    >>> len(world)
    5
"""

from dataclasses import dataclass

from src.sphere_tracer.camera.perspective import PerspectiveCamera
from src.sphere_tracer.camera.transform import Transform
from src.sphere_tracer.materials.descriptor import MaterialDescriptor, emissive_material
from src.sphere_tracer.scene.world import World

# Ground sphere diameter; large enough to look flat from the camera
GROUND_DIAMETER = 2000.0


@dataclass
class DemoSceneParams:
    """Parameters for the demo scene.

    Attributes:
        light_strength: Emission strength of the light sphere.
        light_color: RGB emission color of the light sphere.
        ground_color: RGB base color of the ground.
        vfov: Camera vertical field of view in degrees.
    """

    light_strength: float = 8.0
    light_color: tuple[float, float, float] = (1.0, 0.95, 0.85)
    ground_color: tuple[float, float, float] = (0.6, 0.6, 0.6)
    vfov: float = 50.0


def create_demo_scene(params: DemoSceneParams | None = None) -> tuple[World, PerspectiveCamera]:
    """Create the demo world and a camera looking at it.

    Args:
        params: Scene parameters, or None for the defaults.

    Returns:
        Tuple of (world, camera).
    """
    if params is None:
        params = DemoSceneParams()

    world = World()

    world.add_sphere(
        "ground",
        (0.0, -GROUND_DIAMETER * 0.5, 0.0),
        GROUND_DIAMETER,
        MaterialDescriptor(color=(*params.ground_color, 1.0)),
    )
    world.add_sphere(
        "diffuse",
        (-2.2, 1.0, 0.0),
        2.0,
        MaterialDescriptor(color=(0.8, 0.25, 0.2, 1.0)),
    )
    world.add_sphere(
        "glossy",
        (0.0, 1.0, 0.0),
        2.0,
        MaterialDescriptor(color=(0.3, 0.5, 0.85, 1.0), albedo=0.6),
    )
    world.add_sphere(
        "mirror",
        (2.2, 1.0, 0.0),
        2.0,
        MaterialDescriptor(color=(0.95, 0.95, 0.95, 1.0), albedo=1.0),
    )
    world.add_sphere(
        "light",
        (0.0, 4.5, -1.5),
        1.5,
        emissive_material(params.light_color, params.light_strength),
    )

    camera = PerspectiveCamera(Transform(position=(0.0, 2.0, 8.0)), vfov=params.vfov)
    camera.transform.look_at((0.0, 1.0, 0.0))

    return world, camera
