"""Default trace kernel launched by the dispatch coordinator.

The controller treats the kernel as an external program: anything with the
TraceKernel call signature can be dispatched. PathTraceKernel is the
bundled implementation. It reads spheres from the packed scene buffer,
traces ``rays_per_pixel`` paths per pixel and writes their mean into the
frame image. It only touches pixels inside the dispatch grid's covered
region; the remainder strip keeps its previous content.

Random numbers come from a stateless hash seeded by pixel, ray and
sample index, so a frame is reproducible for a given sample index. The
sample index therefore decorrelates successive accumulated frames.

Material model:
    - emission_color.rgb * emission_strength is added at every hit
    - the scattered direction blends a cosine-weighted diffuse direction
      with the mirror direction by the material albedo
    - throughput is tinted by color.rgb
    - escaped rays pick up the environment texture
"""

from typing import TYPE_CHECKING, Protocol

import taichi as ti
import taichi.math as tm

from src.sphere_tracer.core.environment import sample_environment
from src.sphere_tracer.core.settings import TILE_SIZE
from src.sphere_tracer.geometry.sphere import HitRecord, hit_sphere
from src.sphere_tracer.scene.primitives import (
    COL_ALBEDO,
    COL_COLOR,
    COL_EMISSION_COLOR,
    COL_EMISSION_STRENGTH,
    COL_POSITION,
    COL_RADIUS,
)

if TYPE_CHECKING:
    from src.sphere_tracer.core.dispatch import CameraFrameParameters, DispatchGrid
    from src.sphere_tracer.core.environment import EnvironmentTexture
    from src.sphere_tracer.scene.collector import DeviceSceneBuffer

vec3 = tm.vec3
vec4 = tm.vec4

# Threads per tile, used as the parallel block size
TILE_THREADS = TILE_SIZE * TILE_SIZE

# Ray parameter bounds and self-intersection offset
T_MIN = 1e-4
T_MAX = 1e10
RAY_EPSILON = 1e-4


class TraceKernel(Protocol):
    """Compute program that fills the frame image for one dispatch."""

    def __call__(
        self,
        target: ti.MatrixField,
        environment: "EnvironmentTexture",
        scene_buffer: "DeviceSceneBuffer",
        params: "CameraFrameParameters",
        grid: "DispatchGrid",
    ) -> None: ...


# =============================================================================
# Random Numbers
# =============================================================================


@ti.func
def _wang_hash(seed: ti.u32) -> ti.u32:
    """Thomas Wang's 32-bit integer hash."""
    s = seed
    s = (s ^ ti.cast(61, ti.u32)) ^ (s >> 16)
    s *= ti.cast(9, ti.u32)
    s = s ^ (s >> 4)
    s *= ti.cast(0x27D4EB2D, ti.u32)
    s = s ^ (s >> 15)
    return s


@ti.func
def _next_random(state: ti.u32):
    """Advance the RNG state and return (new_state, uniform float in [0, 1))."""
    new_state = _wang_hash(state)
    value = ti.cast(new_state >> 8, ti.f32) / 16777216.0
    return new_state, value


@ti.func
def _random_unit_vector(state: ti.u32):
    """Uniform direction on the unit sphere. Returns (new_state, direction)."""
    s1, r1 = _next_random(state)
    s2, r2 = _next_random(s1)
    z = 1.0 - 2.0 * r1
    r = ti.sqrt(tm.max(0.0, 1.0 - z * z))
    phi = 2.0 * tm.pi * r2
    return s2, vec3(r * ti.cos(phi), r * ti.sin(phi), z)


@ti.func
def _pixel_seed(i: ti.i32, j: ti.i32, width: ti.i32, ray: ti.i32, sample_index: ti.u32) -> ti.u32:
    pixel = ti.cast(j * width + i, ti.u32)
    return (
        pixel * ti.cast(719393, ti.u32)
        + sample_index * ti.cast(26699, ti.u32)
        + ti.cast(ray, ti.u32) * ti.cast(9781, ti.u32)
    )


# =============================================================================
# Scene Access
# =============================================================================


@ti.dataclass
class SceneHit:
    """Nearest sphere hit along a ray; index is the scene buffer row."""

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    index: ti.i32


@ti.func
def _sphere_vec3(spheres: ti.template(), index: ti.i32, column: ti.i32) -> vec3:
    return vec3(spheres[index, column], spheres[index, column + 1], spheres[index, column + 2])


@ti.func
def _to_scene_hit(rec: HitRecord, index: ti.i32) -> SceneHit:
    return SceneHit(hit=rec.hit, t=rec.t, point=rec.point, normal=rec.normal, index=index)


@ti.func
def _closest_hit(
    spheres: ti.template(), num_spheres: ti.i32, origin: vec3, direction: vec3
) -> SceneHit:
    """Find the nearest sphere along a ray."""
    closest_t = T_MAX
    result = SceneHit(hit=0, t=0.0, point=vec3(0.0), normal=vec3(0.0), index=-1)

    for s in range(num_spheres):
        center = _sphere_vec3(spheres, s, COL_POSITION)
        rec = hit_sphere(origin, direction, center, spheres[s, COL_RADIUS], T_MIN, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = _to_scene_hit(rec, s)

    return result


# =============================================================================
# Path Tracing
# =============================================================================


@ti.func
def _trace_path(
    spheres: ti.template(),
    num_spheres: ti.i32,
    environment: ti.template(),
    origin: vec3,
    direction: vec3,
    max_bounces: ti.i32,
    state: ti.u32,
):
    """Trace one path. Returns (new_rng_state, radiance)."""
    ray_origin = origin
    ray_direction = direction
    radiance = vec3(0.0)
    throughput = vec3(1.0)
    rng = state
    active = 1

    # One primary segment plus max_bounces scattered segments
    for _ in range(max_bounces + 1):
        if active == 1:
            rec = _closest_hit(spheres, num_spheres, ray_origin, ray_direction)
            index = rec.index

            if rec.hit == 0:
                radiance += throughput * sample_environment(environment, ray_direction)
                active = 0
            else:
                emission = _sphere_vec3(spheres, index, COL_EMISSION_COLOR)
                strength = spheres[index, COL_EMISSION_STRENGTH]
                radiance += throughput * emission * strength

                albedo = spheres[index, COL_ALBEDO]
                rng, offset = _random_unit_vector(rng)
                diffuse = rec.normal + offset
                if tm.length(diffuse) < 1e-6:
                    diffuse = rec.normal
                specular = tm.reflect(ray_direction, rec.normal)

                ray_direction = tm.normalize(tm.mix(tm.normalize(diffuse), specular, albedo))
                ray_origin = rec.point + rec.normal * RAY_EPSILON
                throughput *= _sphere_vec3(spheres, index, COL_COLOR)

                if tm.max(throughput.x, tm.max(throughput.y, throughput.z)) <= 0.0:
                    active = 0

    return rng, radiance


@ti.kernel
def _trace_grid(
    target: ti.template(),
    environment: ti.template(),
    spheres: ti.types.ndarray(dtype=ti.f32, ndim=2),
    num_spheres: ti.i32,
    covered_width: ti.i32,
    covered_height: ti.i32,
    camera_to_world: tm.mat4,
    inverse_projection: tm.mat4,
    max_bounces: ti.i32,
    rays_per_pixel: ti.i32,
    sample_index: ti.u32,
):
    width = target.shape[0]
    height = target.shape[1]

    ti.loop_config(block_dim=TILE_THREADS)
    for i, j in ti.ndrange(covered_width, covered_height):
        origin = (camera_to_world @ vec4(0.0, 0.0, 0.0, 1.0)).xyz
        total = vec3(0.0)

        for ray in range(rays_per_pixel):
            rng = _pixel_seed(i, j, width, ray, sample_index)
            rng, jitter_x = _next_random(rng)
            rng, jitter_y = _next_random(rng)

            # Pixel position to NDC in [-1, 1]
            u = (ti.cast(i, ti.f32) + jitter_x) / width * 2.0 - 1.0
            v = (ti.cast(j, ti.f32) + jitter_y) / height * 2.0 - 1.0

            view_dir = (inverse_projection @ vec4(u, v, 0.0, 1.0)).xyz
            direction = tm.normalize((camera_to_world @ vec4(view_dir, 0.0)).xyz)

            rng, radiance = _trace_path(
                spheres, num_spheres, environment, origin, direction, max_bounces, rng
            )
            total += radiance

        color = total / ti.cast(rays_per_pixel, ti.f32)

        for c in ti.static(range(3)):
            if tm.isnan(color[c]) or tm.isinf(color[c]):
                color[c] = 0.0

        target[i, j] = tm.max(color, vec3(0.0))


class PathTraceKernel:
    """Bundled TraceKernel: sphere path tracing over the dispatch grid."""

    def __call__(
        self,
        target: ti.MatrixField,
        environment: "EnvironmentTexture",
        scene_buffer: "DeviceSceneBuffer",
        params: "CameraFrameParameters",
        grid: "DispatchGrid",
    ) -> None:
        if grid.tile_count == 0:
            return

        _trace_grid(
            target,
            environment.field,
            scene_buffer.array,
            scene_buffer.count,
            grid.covered_width,
            grid.covered_height,
            ti.Matrix(params.camera_to_world.tolist()),
            ti.Matrix(params.inverse_projection.tolist()),
            params.max_bounces,
            params.rays_per_pixel,
            params.sample_index,
        )
