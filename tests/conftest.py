"""Pytest configuration for sphere tracer tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls which can cause
    segmentation faults due to Taichi runtime conflicts.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


class ConstantKernel:
    """Trace kernel stand-in that writes a fixed color over the covered region.

    Records the parameters of every call so tests can check what the
    controller dispatched.
    """

    def __init__(self, color=(0.5, 0.5, 0.5)):
        self.color = color
        self.calls = []

    def __call__(self, target, environment, scene_buffer, params, grid):
        import numpy as np

        self.calls.append((params, grid, scene_buffer.count))

        data = target.to_numpy()
        data[: grid.covered_width, : grid.covered_height] = np.asarray(self.color, dtype=np.float32)
        target.from_numpy(data)


class SampleIndexKernel:
    """Trace kernel stand-in whose output encodes the sample index it was given.

    Frame n writes n / 10 everywhere, so the running mean after N frames
    is (N - 1) / 20.
    """

    def __call__(self, target, environment, scene_buffer, params, grid):
        target.fill(params.sample_index / 10.0)


@pytest.fixture
def constant_kernel():
    """A ConstantKernel writing 0.5 gray."""
    return ConstantKernel()


@pytest.fixture
def sample_index_kernel():
    """A SampleIndexKernel."""
    return SampleIndexKernel()


@pytest.fixture
def demo_world():
    """World with two tagged spheres and one untagged sphere."""
    from src.sphere_tracer.materials import MaterialDescriptor
    from src.sphere_tracer.scene import World

    world = World()
    world.add_sphere("red", (-1.0, 0.0, -5.0), 2.0, MaterialDescriptor(color=(1.0, 0.0, 0.0, 1.0)))
    world.add_sphere("blue", (1.0, 0.0, -5.0), 1.0, MaterialDescriptor(color=(0.0, 0.0, 1.0, 1.0)))
    world.add_sphere("hidden", (0.0, 3.0, -5.0), 1.0, MaterialDescriptor(), tags=())
    return world


@pytest.fixture
def make_controller(demo_world):
    """Factory for controllers over demo_world with a headless surface.

    Every controller created through the factory is disabled at teardown.
    """
    from src.sphere_tracer.camera import PerspectiveCamera, Transform
    from src.sphere_tracer.core import EnvironmentTexture, FixedSurface, RayTracingController
    from src.sphere_tracer.scene import TaggedSceneQuery

    created = []

    def _make(width=32, height=32, kernel=None, settings=None, environment=None):
        camera = PerspectiveCamera(Transform(position=(0.0, 0.0, 0.0)))
        if environment is None:
            environment = EnvironmentTexture.solid((0.2, 0.3, 0.4))
        controller = RayTracingController(
            camera,
            TaggedSceneQuery(demo_world),
            FixedSurface(width, height),
            settings=settings,
            environment=environment,
            kernel=kernel,
        )
        created.append(controller)
        return controller

    yield _make

    for controller in created:
        controller.on_disable()
