"""Tests for the world, scene query and primitive collector.

This module tests:
- Tag-based sphere lookup
- PrimitiveRecord derivation from a transform (radius = scale / 2)
- Scene buffer packing and the 56-byte sphere layout
- Device upload, including the empty scene
- Release of device scene buffers
"""

import numpy as np
import pytest


class TestWorld:
    """Test the tagged object list."""

    def test_add_sphere_sets_diameter_scale_and_tag(self):
        """Test that add_sphere scales the transform to the diameter."""
        from src.sphere_tracer.materials import MaterialDescriptor
        from src.sphere_tracer.scene import SPHERE_TAG, World

        world = World()
        obj = world.add_sphere("ball", (1.0, 2.0, 3.0), 4.0, MaterialDescriptor())

        assert obj.transform.scale == (4.0, 4.0, 4.0)
        assert SPHERE_TAG in obj.tags
        assert len(world) == 1

    def test_find_and_remove(self):
        """Test name lookup and removal."""
        from src.sphere_tracer.materials import MaterialDescriptor
        from src.sphere_tracer.scene import World

        world = World()
        obj = world.add_sphere("ball", (0.0, 0.0, 0.0), 1.0, MaterialDescriptor())

        assert world.find("ball") is obj
        world.remove(obj)
        assert world.find("ball") is None
        with pytest.raises(ValueError):
            world.remove(obj)

    def test_query_returns_only_tagged_objects_in_order(self, demo_world):
        """Test that untagged objects are not reported."""
        from src.sphere_tracer.scene import TaggedSceneQuery

        records = TaggedSceneQuery(demo_world).collect_sphere_primitives()

        assert len(records) == 2
        assert records[0].position == (-1.0, 0.0, -5.0)
        assert records[1].position == (1.0, 0.0, -5.0)

    def test_query_with_custom_tag(self, demo_world):
        """Test that the query tag is configurable."""
        from src.sphere_tracer.materials import MaterialDescriptor
        from src.sphere_tracer.scene import TaggedSceneQuery

        demo_world.add_sphere("special", (0.0, 0.0, 0.0), 1.0, MaterialDescriptor(), tags=("Special",))
        records = TaggedSceneQuery(demo_world, tag="Special").collect_sphere_primitives()
        assert len(records) == 1


class TestPrimitiveRecord:
    """Test record derivation and layout."""

    def test_radius_is_half_x_scale(self):
        """Test that the radius comes from the x scale."""
        from src.sphere_tracer.camera import Transform
        from src.sphere_tracer.materials import MaterialDescriptor
        from src.sphere_tracer.scene import PrimitiveRecord, SceneObject

        obj = SceneObject("s", Transform(scale=(3.0, 7.0, 9.0)), MaterialDescriptor())
        assert PrimitiveRecord.from_object(obj).radius == 1.5

    def test_record_reflects_live_transform(self):
        """Test that a moved object produces a moved record."""
        from src.sphere_tracer.materials import MaterialDescriptor
        from src.sphere_tracer.scene import PrimitiveRecord, World

        world = World()
        obj = world.add_sphere("ball", (0.0, 0.0, 0.0), 1.0, MaterialDescriptor())
        obj.transform.position = (5.0, 0.0, 0.0)

        assert PrimitiveRecord.from_object(obj).position == (5.0, 0.0, 0.0)

    def test_sphere_layout_is_56_bytes(self):
        """Test the sphere dtype size and material offset."""
        from src.sphere_tracer.scene import SPHERE_DTYPE, SPHERE_FLOATS

        assert SPHERE_DTYPE.itemsize == 56
        assert SPHERE_FLOATS == 14
        assert SPHERE_DTYPE.fields["radius"][1] == 12
        assert SPHERE_DTYPE.fields["material"][1] == 16

    def test_column_constants_match_dtype(self):
        """Test that the kernel column constants agree with the dtype offsets."""
        from src.sphere_tracer.materials import MATERIAL_DTYPE
        from src.sphere_tracer.scene import primitives

        material_offset = primitives.SPHERE_DTYPE.fields["material"][1]
        assert primitives.COL_RADIUS * 4 == primitives.SPHERE_DTYPE.fields["radius"][1]
        assert primitives.COL_COLOR * 4 == material_offset + MATERIAL_DTYPE.fields["color"][1]
        assert (
            primitives.COL_EMISSION_COLOR * 4
            == material_offset + MATERIAL_DTYPE.fields["emission_color"][1]
        )
        assert (
            primitives.COL_EMISSION_STRENGTH * 4
            == material_offset + MATERIAL_DTYPE.fields["emission_strength"][1]
        )
        assert primitives.COL_ALBEDO * 4 == material_offset + MATERIAL_DTYPE.fields["albedo"][1]


class TestPacking:
    """Test scene buffer packing."""

    def test_pack_has_exactly_one_row_per_record(self, demo_world):
        """Test that the packed buffer has len(records) rows."""
        from src.sphere_tracer.scene import SPHERE_DTYPE, TaggedSceneQuery, pack_scene_buffer

        buffer = pack_scene_buffer(TaggedSceneQuery(demo_world).collect_sphere_primitives())
        assert buffer.dtype == SPHERE_DTYPE
        assert len(buffer) == 2

    def test_float_view_columns(self, demo_world):
        """Test the float view of a packed row."""
        from src.sphere_tracer.scene import TaggedSceneQuery, pack_scene_buffer, scene_buffer_as_floats

        floats = scene_buffer_as_floats(
            pack_scene_buffer(TaggedSceneQuery(demo_world).collect_sphere_primitives())
        )

        assert floats.shape == (2, 14)
        np.testing.assert_array_equal(floats[0, 0:3], [-1.0, 0.0, -5.0])
        assert floats[0, 3] == 1.0
        np.testing.assert_array_equal(floats[0, 4:8], [1.0, 0.0, 0.0, 1.0])
        assert floats[1, 3] == 0.5

    def test_pack_empty(self):
        """Test that an empty scene packs into zero rows."""
        from src.sphere_tracer.scene import pack_scene_buffer, scene_buffer_as_floats

        buffer = pack_scene_buffer([])
        assert len(buffer) == 0
        assert scene_buffer_as_floats(buffer).shape == (0, 14)


class TestCollector:
    """Test per-frame collection and device upload."""

    def test_upload_count_matches_tagged_spheres(self, demo_world):
        """Test the bound count and the uploaded rows."""
        from src.sphere_tracer.scene import PrimitiveCollector, TaggedSceneQuery

        device = PrimitiveCollector(TaggedSceneQuery(demo_world)).collect_and_upload()

        assert device.count == 2
        assert device.capacity == 2
        data = device.to_numpy()
        assert data.shape == (2, 14)
        np.testing.assert_array_equal(data[1, 0:3], [1.0, 0.0, -5.0])

    def test_empty_scene_binds_valid_buffer(self):
        """Test that zero spheres still yields a usable buffer with count 0."""
        from src.sphere_tracer.scene import PrimitiveCollector, TaggedSceneQuery, World

        device = PrimitiveCollector(TaggedSceneQuery(World())).collect_and_upload()

        assert device.count == 0
        assert device.capacity == 1
        assert device.array.shape == (1, 14)
        assert device.to_numpy().shape == (0, 14)

    def test_collection_tracks_world_changes(self, demo_world):
        """Test that each collection reflects the current world."""
        from src.sphere_tracer.materials import MaterialDescriptor
        from src.sphere_tracer.scene import PrimitiveCollector, TaggedSceneQuery

        collector = PrimitiveCollector(TaggedSceneQuery(demo_world))
        assert len(collector.collect()) == 2

        demo_world.add_sphere("extra", (0.0, 0.0, -2.0), 1.0, MaterialDescriptor())
        assert len(collector.collect()) == 3

        demo_world.remove(demo_world.find("red"))
        demo_world.remove(demo_world.find("blue"))
        demo_world.remove(demo_world.find("extra"))
        assert len(collector.collect()) == 0

    def test_release_is_idempotent(self, demo_world):
        """Test that release can be called twice and blocks further use."""
        from src.sphere_tracer.scene import PrimitiveCollector, TaggedSceneQuery

        device = PrimitiveCollector(TaggedSceneQuery(demo_world)).collect_and_upload()
        device.release()
        device.release()

        assert device.released
        with pytest.raises(RuntimeError, match="released"):
            _ = device.array


class TestDemoScene:
    """Test the demo scene factory."""

    def test_demo_scene_contents(self):
        """Test that the demo scene has five spheres and one light."""
        from src.sphere_tracer.scene import TaggedSceneQuery, create_demo_scene

        world, camera = create_demo_scene()
        records = TaggedSceneQuery(world).collect_sphere_primitives()

        assert len(records) == 5
        assert sum(r.material.is_emissive for r in records) == 1
        assert camera.transform.forward[2] < 0.0
