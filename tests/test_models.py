"""Tests for the shared data model."""

import numpy as np
import pytest


class TestInferRole:
    """Tests for property-name role inference."""

    @pytest.mark.parametrize(
        ("name", "role"),
        [
            ("_MainTex", "albedo"),
            ("baseColor", "albedo"),
            ("_BumpMap", "normal"),
            ("normalTexture", "normal"),
            ("_DetailAlbedoMap", "albedo"),
            ("_DetailMask", "detail"),
            ("_ShadowMask", "mask"),
            ("_EmissionMap", "emission"),
            ("_OcclusionMap", "other"),
        ],
    )
    def test_roles(self, name: str, role: str) -> None:
        from notso_atlas.models import infer_role

        assert infer_role(name).value == role


class TestShaderDescriptor:
    """Tests for ShaderDescriptor."""

    def test_from_materials_keeps_first_seen_order(self, make_material, solid_image) -> None:
        from notso_atlas.models import PropertyRole, ShaderDescriptor

        img = solid_image("a", 4)
        mats = [
            make_material("A", _MainTex=img, _BumpMap=None),
            make_material("B", _EmissionMap=img, _MainTex=img),
        ]
        descriptor = ShaderDescriptor.from_materials("Standard", mats)
        assert descriptor.property_names == ["_MainTex", "_BumpMap", "_EmissionMap"]
        assert descriptor.role_of("_BumpMap") is PropertyRole.NORMAL

    def test_role_of_unknown_property_is_inferred(self) -> None:
        from notso_atlas.models import PropertyRole, ShaderDescriptor, ShaderProperty

        descriptor = ShaderDescriptor("Toon", (ShaderProperty("_Ramp", PropertyRole.DETAIL),))
        assert descriptor.role_of("_Ramp") is PropertyRole.DETAIL
        assert descriptor.role_of("_MainTex") is PropertyRole.ALBEDO


class TestImage:
    """Tests for the Image buffer type."""

    def test_rejects_wrong_shape(self) -> None:
        from notso_atlas.models import Image

        with pytest.raises(ValueError, match="expected"):
            Image("rgb", np.zeros((4, 4, 3), dtype=np.uint8))

    def test_rejects_wrong_dtype(self) -> None:
        from notso_atlas.models import Image

        with pytest.raises(ValueError, match="uint8"):
            Image("float", np.zeros((4, 4, 4), dtype=np.float32))

    def test_default_identity_is_unique(self) -> None:
        from notso_atlas.models import Image

        a = Image.filled("same", 2, 2, (0, 0, 0, 255))
        b = Image.filled("same", 2, 2, (0, 0, 0, 255))
        assert a.identity != b.identity

    def test_size_hint_without_pixels(self) -> None:
        from notso_atlas.models import Image

        lazy = Image("lazy", None, readable=False, size_hint=(128, 64))
        assert lazy.size == (128, 64)

    def test_filled_dimensions(self) -> None:
        from notso_atlas.models import Image

        img = Image.filled("wide", 8, 4, (1, 2, 3, 4))
        assert img.pixels is not None
        assert img.pixels.shape == (4, 8, 4)
        assert tuple(img.pixels[3, 7]) == (1, 2, 3, 4)


class TestRect:
    """Tests for Rect geometry."""

    def test_to_pixels(self) -> None:
        from notso_atlas.models import Rect

        assert Rect(0.25, 0.5, 0.25, 0.5).to_pixels(256, 128) == (64, 64, 64, 64)

    def test_padded(self) -> None:
        from notso_atlas.models import Rect

        padded = Rect(0.25, 0.25, 0.5, 0.5).padded(8, 64, 64)
        assert padded.x == pytest.approx(0.125)
        assert padded.width == pytest.approx(0.75)

    def test_shared_edges_do_not_intersect(self) -> None:
        from notso_atlas.models import Rect

        left = Rect(0.0, 0.0, 0.5, 1.0)
        right = Rect(0.5, 0.0, 0.5, 1.0)
        assert not left.intersects(right)
        assert left.intersects(Rect(0.25, 0.25, 0.5, 0.5))

    def test_center(self) -> None:
        from notso_atlas.models import Rect

        assert Rect(0.5, 0.0, 0.25, 0.5).center == (0.625, 0.25)


class TestMaterial:
    """Tests for Material copies."""

    def test_with_slot_leaves_original(self, make_material, solid_image) -> None:
        from notso_atlas.models import TextureSlot

        original = make_material("Body", _MainTex=solid_image("a", 4))
        updated = original.with_slot("_MainTex", TextureSlot(None, (2.0, 2.0)))
        assert original.slot("_MainTex").scale == (1.0, 1.0)
        assert updated.slot("_MainTex").scale == (2.0, 2.0)

    def test_hash_by_identity(self, make_material) -> None:
        a = make_material("Same")
        b = make_material("Same")
        assert a != b
        assert len({a, b}) == 2


class TestAtlasOutcome:
    """Tests for AtlasOutcome helpers."""

    def test_merge_and_copy_for(self, make_material) -> None:
        from notso_atlas.models import AtlasOutcome, MaterialCopy, Rect, SkippedMaterial

        body = make_material("Body")
        hair = make_material("Hair")
        first = AtlasOutcome("A", texture_combinations=2)
        first.material_copies.append(MaterialCopy(body, body.copy("x"), Rect(0, 0, 1, 1)))
        second = AtlasOutcome("B", texture_combinations=3)
        second.skipped.append(SkippedMaterial(hair, "animated"))

        first.merge(second)
        assert first.texture_combinations == 5
        assert first.copy_for(body) is not None
        assert first.copy_for(hair) is None
        assert len(first.skipped) == 1
