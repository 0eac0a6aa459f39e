"""Tests for the RayTracingController.

This module tests:
- Lifecycle (enable, disable, context manager)
- Frame ordering: invalidation is visible to the same frame's dispatch
- ACTIVE accumulation and PREVIEW freezing
- Pass-through when tracing is off
- Resize handling and resource release
- End-to-end rendering with the bundled kernel

Note: Imports are done inside test methods to avoid Taichi initialization issues.
The conftest.py fixture initializes Taichi before tests run.
"""

import numpy as np
import pytest


class TestLifecycle:
    """Test enable/disable transitions."""

    def test_render_before_enable_raises(self, make_controller, constant_kernel):
        """Test that rendering requires on_enable()."""
        controller = make_controller(kernel=constant_kernel)

        with pytest.raises(RuntimeError, match="not enabled"):
            controller.render_frame()

    def test_get_image_before_first_frame_raises(self, make_controller, constant_kernel):
        """Test that there is no image before the first frame."""
        controller = make_controller(kernel=constant_kernel)
        controller.on_enable()

        with pytest.raises(RuntimeError, match="No frame"):
            controller.get_image_numpy()

    def test_enable_resets_sample_index(self, make_controller, constant_kernel):
        """Test that re-enabling starts a fresh accumulation."""
        controller = make_controller(kernel=constant_kernel)
        controller.on_enable()
        for _ in range(3):
            controller.on_tick()
        controller.on_disable()

        controller.on_enable()
        assert controller.sample_index == 0

    def test_enable_while_enabled_is_noop(self, make_controller, constant_kernel):
        """Test that a second on_enable() keeps the accumulation."""
        controller = make_controller(kernel=constant_kernel)
        controller.on_enable()
        controller.on_tick()
        controller.on_tick()

        controller.on_enable()
        assert controller.sample_index == 2

    def test_context_manager_releases_resources(self, make_controller, constant_kernel):
        """Test that leaving the context disables and releases everything."""
        controller = make_controller(kernel=constant_kernel)

        with controller:
            controller.on_tick()
            targets = controller.targets
            scene_buffer = controller.resources.scene_buffer
            assert controller.is_enabled

        assert not controller.is_enabled
        assert targets.released
        assert scene_buffer.released
        assert controller.targets is None

    def test_context_manager_releases_on_error(self, make_controller, constant_kernel):
        """Test that resources are released when the body raises."""
        controller = make_controller(kernel=constant_kernel)

        with pytest.raises(KeyError):
            with controller:
                controller.on_tick()
                targets = controller.targets
                raise KeyError("boom")

        assert targets.released

    def test_disable_twice_is_safe(self, make_controller, constant_kernel):
        """Test that on_disable() is idempotent."""
        controller = make_controller(kernel=constant_kernel)
        controller.on_enable()
        controller.on_tick()

        controller.on_disable()
        controller.on_disable()

        assert not controller.is_enabled


class TestFrameOrdering:
    """Test the order of work inside a tick."""

    def test_first_frame_uses_index_zero(self, make_controller, constant_kernel):
        """Test that the initial dispatch sees sample index 0, then it advances."""
        controller = make_controller(kernel=constant_kernel)

        with controller:
            stats = controller.on_tick()

            assert stats.sample_index == 0
            assert constant_kernel.calls[0][0].sample_index == 0
            assert controller.sample_index == 1

    def test_camera_move_visible_to_same_frame(self, make_controller, constant_kernel):
        """Test that a camera change resets the index before that frame's dispatch."""
        controller = make_controller(kernel=constant_kernel)

        with controller:
            for _ in range(5):
                controller.on_tick()
            assert controller.sample_index == 5

            controller.camera.transform.translate((0.0, 0.0, 1.0))
            stats = controller.on_tick()

            assert stats.sample_index == 0
            assert constant_kernel.calls[-1][0].sample_index == 0
            np.testing.assert_allclose(constant_kernel.calls[-1][0].camera_to_world[2, 3], 1.0)
            assert controller.sample_index == 1

    def test_still_camera_accumulates(self, make_controller, constant_kernel):
        """Test that dispatched indices count up while the camera is still."""
        controller = make_controller(kernel=constant_kernel)

        with controller:
            for _ in range(4):
                controller.on_tick()

        assert [call[0].sample_index for call in constant_kernel.calls] == [0, 1, 2, 3]

    def test_scene_is_collected_every_frame(self, make_controller, constant_kernel, demo_world):
        """Test that added spheres appear in the next frame without invalidating."""
        from src.sphere_tracer.materials import MaterialDescriptor

        controller = make_controller(kernel=constant_kernel)

        with controller:
            controller.on_tick()
            demo_world.add_sphere("late", (0.0, 0.0, -3.0), 1.0, MaterialDescriptor())
            stats = controller.on_tick()

        assert [call[2] for call in constant_kernel.calls] == [2, 3]
        assert stats.primitive_count == 3
        assert stats.sample_index == 1

    def test_settings_flow_into_parameters(self, make_controller, constant_kernel):
        """Test that replaced settings are used from the next frame on."""
        from src.sphere_tracer.core import TracerSettings

        controller = make_controller(kernel=constant_kernel)

        with controller:
            controller.on_tick()
            controller.settings = TracerSettings(max_bounces=9, rays_per_pixel=5)
            controller.on_tick()

        params = constant_kernel.calls[-1][0]
        assert (params.max_bounces, params.rays_per_pixel) == (9, 5)


class TestRunModes:
    """Test ACTIVE and PREVIEW behavior."""

    def test_constant_kernel_presents_constant(self, make_controller, constant_kernel):
        """Test that N ACTIVE frames of constant output give that constant."""
        controller = make_controller(kernel=constant_kernel)

        with controller:
            for _ in range(10):
                controller.on_tick()
            image = controller.get_image_numpy()

        np.testing.assert_array_equal(image, np.float32(0.5))

    def test_accumulation_is_mean_of_frames(self, make_controller, sample_index_kernel):
        """Test that frames 0..N-1 average to (N - 1) / 20."""
        controller = make_controller(kernel=sample_index_kernel)

        with controller:
            for _ in range(8):
                controller.on_tick()
            accumulation = controller.get_accumulation_numpy()

        np.testing.assert_allclose(accumulation, 0.35, rtol=1e-5)

    def test_preview_freezes_index_and_output(self, make_controller, sample_index_kernel):
        """Test that repeated PREVIEW frames neither advance nor change the image."""
        from src.sphere_tracer.core import RunMode, TracerSettings

        controller = make_controller(
            kernel=sample_index_kernel, settings=TracerSettings(enable_shader=True)
        )

        with controller:
            for _ in range(4):
                controller.on_tick(RunMode.ACTIVE)
            accumulation = controller.get_accumulation_numpy()

            controller.on_tick(RunMode.PREVIEW)
            first = controller.get_image_numpy()
            for _ in range(3):
                stats = controller.on_tick(RunMode.PREVIEW)
                np.testing.assert_array_equal(controller.get_image_numpy(), first)

            assert stats.traced
            assert controller.sample_index == 4
            np.testing.assert_array_equal(controller.get_accumulation_numpy(), accumulation)

    def test_active_after_preview_continues(self, make_controller, sample_index_kernel):
        """Test that accumulation resumes where it stopped after previews."""
        from src.sphere_tracer.core import RunMode, TracerSettings

        controller = make_controller(
            kernel=sample_index_kernel, settings=TracerSettings(enable_shader=True)
        )

        with controller:
            for _ in range(3):
                controller.on_tick(RunMode.ACTIVE)
            controller.on_tick(RunMode.PREVIEW)
            controller.on_tick(RunMode.ACTIVE)

            assert controller.sample_index == 4
            np.testing.assert_allclose(controller.get_accumulation_numpy(), 0.15, rtol=1e-5)


class TestPassThrough:
    """Test frames that skip tracing."""

    def test_preview_without_shader_passes_source_through(self, make_controller, constant_kernel):
        """Test that PREVIEW with the shader disabled presents the input frame."""
        from src.sphere_tracer.core import RunMode

        controller = make_controller(width=8, height=4, kernel=constant_kernel)
        source = np.full((4, 8, 3), 0.25, dtype=np.float32)
        source[0, 0] = (1.0, 0.0, 0.0)

        with controller:
            stats = controller.on_tick(RunMode.PREVIEW, source)
            image = controller.get_image_numpy()

        assert not stats.traced
        assert stats.grid is None
        assert constant_kernel.calls == []
        np.testing.assert_array_equal(image, source)

    def test_pass_through_does_not_advance(self, make_controller, constant_kernel):
        """Test that pass-through frames leave the sample index alone."""
        from src.sphere_tracer.core import RunMode

        controller = make_controller(kernel=constant_kernel)

        with controller:
            controller.on_tick(RunMode.ACTIVE)
            controller.on_tick(RunMode.PREVIEW)
            controller.on_tick(RunMode.PREVIEW)

            assert controller.sample_index == 1


class TestResize:
    """Test output resolution changes."""

    def test_resize_reallocates_once_and_resets(self, make_controller, constant_kernel):
        """Test that a new resolution reallocates the targets and restarts accumulation."""
        controller = make_controller(width=32, height=32, kernel=constant_kernel)

        with controller:
            for _ in range(3):
                controller.on_tick()

            controller.surface.resize(48, 32)
            stats = controller.on_tick()
            controller.on_tick()

            assert stats.reallocated
            assert stats.sample_index == 0
            assert controller.resources.allocation_count == 2
            assert controller.targets.size == (48, 32)
            assert controller.get_image_numpy().shape == (32, 48, 3)

    def test_resize_without_reset(self, make_controller, constant_kernel):
        """Test that reset_on_resize=False keeps the sample index."""
        from src.sphere_tracer.core import TracerSettings

        controller = make_controller(
            kernel=constant_kernel, settings=TracerSettings(reset_on_resize=False)
        )

        with controller:
            for _ in range(3):
                controller.on_tick()
            controller.surface.resize(16, 16)
            stats = controller.on_tick()

        assert stats.reallocated
        assert stats.sample_index == 3

    def test_remainder_strip_stays_black(self, make_controller, constant_kernel):
        """Test that pixels outside the tile grid never receive kernel output."""
        controller = make_controller(width=40, height=20, kernel=constant_kernel)

        with controller:
            stats = controller.on_tick()
            image = controller.get_image_numpy()

        assert (stats.grid.covered_width, stats.grid.covered_height) == (32, 16)
        # Image rows run top to bottom; the uncovered strip is the right columns and top rows
        assert np.all(image[:, 32:] == 0.0)
        assert np.all(image[:4, :] == 0.0)
        np.testing.assert_array_equal(image[4:, :32], np.float32(0.5))

    def test_zero_size_surface_skips_frames(self, make_controller, constant_kernel):
        """Test that a 0x0 surface renders nothing and raises nothing."""
        controller = make_controller(width=0, height=0, kernel=constant_kernel)

        with controller:
            stats = controller.on_tick()

            assert not stats.traced
            assert stats.grid is None
            assert controller.targets is None
            assert controller.sample_index == 0
            assert constant_kernel.calls == []

    def test_minimize_and_restore(self, make_controller, constant_kernel):
        """Test that shrinking to 0x0 keeps the targets and the accumulation."""
        controller = make_controller(width=32, height=16, kernel=constant_kernel)

        with controller:
            for _ in range(3):
                controller.on_tick()
            targets = controller.targets

            controller.surface.resize(0, 0)
            for _ in range(2):
                stats = controller.on_tick()
                assert not stats.traced
            assert controller.targets is targets
            assert controller.sample_index == 3
            np.testing.assert_array_equal(controller.get_image_numpy(), np.float32(0.5))

            controller.surface.resize(32, 16)
            stats = controller.on_tick()

        assert stats.traced
        assert not stats.reallocated
        assert stats.sample_index == 3
        assert controller.resources.allocation_count == 1

    def test_each_frame_releases_previous_scene_buffer(self, make_controller, constant_kernel):
        """Test that only the current frame's scene buffer stays alive."""
        import gc
        import weakref

        controller = make_controller(kernel=constant_kernel)

        with controller:
            controller.on_tick()
            first = controller.resources.scene_buffer
            first_array = weakref.ref(first.array)
            controller.on_tick()
            second = controller.resources.scene_buffer

            gc.collect()
            assert first.released
            assert first_array() is None
            assert not second.released


class TestEndToEnd:
    """Render with the bundled path trace kernel."""

    def test_progressive_render(self, make_controller):
        """Test a few ACTIVE frames with the real kernel."""
        from src.sphere_tracer.core import TracerSettings

        controller = make_controller(
            width=32, height=32, settings=TracerSettings(max_bounces=3, rays_per_pixel=1)
        )

        with controller:
            for _ in range(4):
                stats = controller.on_tick()
            image = controller.get_image_numpy(gamma=2.2)

        assert stats.traced
        assert stats.primitive_count == 2
        assert stats.grid.tile_count == 4
        assert image.shape == (32, 32, 3)
        assert np.all((image >= 0.0) & (image <= 1.0))
        assert image.std() > 0.0

    def test_empty_scene_renders_environment(self, make_controller, demo_world):
        """Test that removing every sphere leaves just the background."""
        from src.sphere_tracer.core import TracerSettings

        for obj in list(demo_world):
            demo_world.remove(obj)

        controller = make_controller(width=16, height=16, settings=TracerSettings(rays_per_pixel=1))

        with controller:
            stats = controller.on_tick()
            image = controller.get_image_numpy()

        assert stats.primitive_count == 0
        np.testing.assert_allclose(image, np.broadcast_to([0.2, 0.3, 0.4], image.shape), rtol=1e-6)
