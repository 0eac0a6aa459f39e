"""Core controller module.

This module contains the accumulation-and-dispatch controller and its parts:

Components:
    settings: TracerSettings configuration surface and RunMode
    state: AccumulationState sample counter
    invalidation: FrameInvalidationTracker (camera-driven resets)
    resources: ResourceLifecycleManager and RenderTargets
    environment: Background texture bound to every dispatch
    kernels: TraceKernel interface and the bundled PathTraceKernel
    dispatch: DispatchCoordinator, CameraFrameParameters, DispatchGrid
    compositor: AccumulationCompositor running-mean blend
    controller: RayTracingController lifecycle state machine

Each displayed frame runs invalidation, collection and upload, dispatch
and compositing in that order. The sample index reset by an invalidation
is already visible to the same frame's dispatch.
"""

from .compositor import AccumulationCompositor, blend_weight
from .controller import (
    FixedSurface,
    FrameStats,
    LifecycleState,
    OutputSurface,
    RayTracingController,
)
from .dispatch import (
    CameraFrameParameters,
    DispatchCoordinator,
    DispatchGrid,
    compute_dispatch_grid,
)
from .environment import EnvironmentTexture
from .invalidation import FrameInvalidationTracker
from .kernels import PathTraceKernel, TraceKernel
from .resources import RenderTargets, ResourceLifecycleManager
from .settings import TILE_SIZE, RunMode, TracerSettings
from .state import AccumulationState

__all__ = [
    "AccumulationCompositor",
    "AccumulationState",
    "CameraFrameParameters",
    "DispatchCoordinator",
    "DispatchGrid",
    "EnvironmentTexture",
    "FixedSurface",
    "FrameInvalidationTracker",
    "FrameStats",
    "LifecycleState",
    "OutputSurface",
    "PathTraceKernel",
    "RayTracingController",
    "RenderTargets",
    "ResourceLifecycleManager",
    "RunMode",
    "TILE_SIZE",
    "TraceKernel",
    "TracerSettings",
    "blend_weight",
    "compute_dispatch_grid",
]
