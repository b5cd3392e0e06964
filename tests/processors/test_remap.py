"""Tests for surface coordinate remapping."""

import numpy as np
import pytest


def _surface(name, materials, uvs, slot_indices):
    from notso_atlas.models import RenderSurface

    return RenderSurface(
        name,
        list(materials),
        np.asarray(uvs, dtype=np.float32),
        [np.asarray(i, dtype=np.intp) for i in slot_indices],
    )


class TestChainScaleOffset:
    """Tests for chain_scale_offset function."""

    def test_identity_slot(self) -> None:
        from notso_atlas.models import Rect
        from notso_atlas.processors.remap import chain_scale_offset

        scale, offset = chain_scale_offset((1.0, 1.0), (0.0, 0.0), Rect(0.5, 0.25, 0.25, 0.5))
        assert scale == (0.25, 0.5)
        assert offset == (0.5, 0.25)

    def test_preserves_tiling(self) -> None:
        from notso_atlas.models import Rect
        from notso_atlas.processors.remap import chain_scale_offset

        scale, offset = chain_scale_offset((2.0, 2.0), (0.5, 0.0), Rect(0.5, 0.5, 0.5, 0.5))
        assert scale == (1.0, 1.0)
        assert offset == (0.75, 0.5)

    def test_center_maps_to_rect_center(self) -> None:
        from notso_atlas.models import Rect
        from notso_atlas.processors.remap import chain_scale_offset

        rect = Rect(0.125, 0.5, 0.25, 0.375)
        scale, offset = chain_scale_offset((1.0, 1.0), (0.0, 0.0), rect)
        u = 0.5 * scale[0] + offset[0]
        v = 0.5 * scale[1] + offset[1]
        assert (u, v) == pytest.approx(rect.center)


class TestPlanSurfaceRemaps:
    """Tests for plan_surface_remaps function."""

    def test_single_rect_surface(self, make_material) -> None:
        from notso_atlas.models import Rect
        from notso_atlas.processors.remap import plan_surface_remaps

        body = make_material("Body")
        other = make_material("Other")
        surface = _surface("Mesh", [body, other], [[0, 0]], [[0], []])
        rect = Rect(0, 0, 0.5, 0.5)

        instructions = plan_surface_remaps([surface], {body: rect})
        assert len(instructions) == 1
        assert instructions[0].slots == [0]
        assert instructions[0].rect == rect

    def test_unrelated_surface_ignored(self, make_material) -> None:
        from notso_atlas.models import Rect
        from notso_atlas.processors.remap import plan_surface_remaps

        body = make_material("Body")
        surface = _surface("Prop", [make_material("Wood")], [[0, 0]], [[0]])
        assert plan_surface_remaps([surface], {body: Rect(0, 0, 1, 1)}) == []

    def test_ambiguous_surface_logged(self, make_material) -> None:
        from notso_atlas.models import Rect
        from notso_atlas.processors.remap import AMBIGUOUS_REASON, plan_surface_remaps
        from notso_atlas.utils.logging import Diagnostics

        body = make_material("Body")
        hair = make_material("Hair")
        surface = _surface("Mesh", [body, hair], [[0, 0], [1, 1]], [[0], [1]])
        diagnostics = Diagnostics()

        instructions = plan_surface_remaps(
            [surface],
            {body: Rect(0, 0, 0.5, 0.5), hair: Rect(0.5, 0, 0.5, 0.5)},
            diagnostics=diagnostics,
        )
        assert instructions[0].rect is None
        assert instructions[0].reason == AMBIGUOUS_REASON
        assert len(diagnostics.by_component("remap")) == 1

    def test_shared_rect_is_not_ambiguous(self, make_material) -> None:
        from notso_atlas.models import Rect
        from notso_atlas.processors.remap import plan_surface_remaps

        a = make_material("A")
        b = make_material("B")
        rect = Rect(0, 0, 0.5, 0.5)
        surface = _surface("Mesh", [a, b], [[0, 0]], [[0], [0]])
        instructions = plan_surface_remaps([surface], {a: rect, b: Rect(0, 0, 0.5, 0.5)})
        assert instructions[0].rect == rect
        assert instructions[0].slots == [0, 1]


class TestValidateUvBounds:
    """Tests for validate_uv_bounds function."""

    def test_in_bounds(self, make_material) -> None:
        from notso_atlas.config import UVBoundsMode
        from notso_atlas.processors.remap import validate_uv_bounds

        surface = _surface("Mesh", [None], [[0, 0], [1.005, 1]], [[0, 1]])
        assert validate_uv_bounds(surface, UVBoundsMode.SKIP)

    def test_warn_keeps_going(self) -> None:
        from notso_atlas.config import UVBoundsMode
        from notso_atlas.processors.remap import validate_uv_bounds
        from notso_atlas.utils.logging import Diagnostics

        surface = _surface("Mesh", [None], [[0, 0], [2, 1]], [[0, 1]])
        diagnostics = Diagnostics()
        assert validate_uv_bounds(surface, UVBoundsMode.WARN, diagnostics=diagnostics)
        assert diagnostics.by_severity("WARNING")
        assert surface.uvs[1, 0] == 2

    def test_skip_rejects(self) -> None:
        from notso_atlas.config import UVBoundsMode
        from notso_atlas.processors.remap import validate_uv_bounds

        surface = _surface("Mesh", [None], [[-0.5, 0]], [[0]])
        assert not validate_uv_bounds(surface, UVBoundsMode.SKIP)

    def test_wrap_only_touches_indices(self) -> None:
        from notso_atlas.config import UVBoundsMode
        from notso_atlas.processors.remap import validate_uv_bounds

        surface = _surface("Mesh", [None, None], [[1.25, 0.5], [3.0, 3.0]], [[0], [1]])
        assert validate_uv_bounds(surface, UVBoundsMode.WRAP, np.array([0]))
        assert surface.uvs[0].tolist() == pytest.approx([0.25, 0.5])
        assert surface.uvs[1].tolist() == [3.0, 3.0]

    def test_off(self) -> None:
        from notso_atlas.config import UVBoundsMode
        from notso_atlas.processors.remap import validate_uv_bounds

        surface = _surface("Mesh", [None], [[9, 9]], [[0]])
        assert validate_uv_bounds(surface, UVBoundsMode.OFF)


class TestBake:
    """Tests for bake_instruction and apply_remaps."""

    def test_bakes_only_slot_coordinates(self, make_material) -> None:
        from notso_atlas.models import Rect, RemapInstruction
        from notso_atlas.processors.remap import bake_instruction

        body = make_material("Body")
        other = make_material("Other")
        master = make_material("Master")
        surface = _surface(
            "Mesh", [body, other], [[0, 0], [1, 1], [0.5, 0.5]], [[0, 1, 1], [2]]
        )
        instruction = RemapInstruction(surface, [0], Rect(0.5, 0.25, 0.5, 0.25), master)

        bake_instruction(instruction)
        assert surface.uvs[0].tolist() == [0.5, 0.25]
        assert surface.uvs[1].tolist() == [1.0, 0.5]
        assert surface.uvs[2].tolist() == [0.5, 0.5]
        assert surface.materials == [master, other]
        assert instruction.applied

    def test_missing_rect_raises(self, make_material) -> None:
        from notso_atlas.models import RemapInstruction
        from notso_atlas.processors.remap import bake_instruction

        surface = _surface("Mesh", [make_material("A")], [[0, 0]], [[0]])
        with pytest.raises(ValueError, match="No rect"):
            bake_instruction(RemapInstruction(surface, [0], None))

    def test_apply_remaps_skips_out_of_bounds(self, make_material) -> None:
        from notso_atlas.config import UVBoundsMode
        from notso_atlas.models import Rect, RemapInstruction
        from notso_atlas.processors.remap import OUT_OF_BOUNDS_REASON, apply_remaps
        from notso_atlas.utils.logging import Diagnostics

        good = _surface("Good", [make_material("A")], [[0.5, 0.5]], [[0]])
        bad = _surface("Bad", [make_material("B")], [[1.5, 0.5]], [[0]])
        rect = Rect(0, 0, 0.5, 0.5)
        instructions = [
            RemapInstruction(good, [0], rect),
            RemapInstruction(bad, [0], rect),
        ]

        apply_remaps(instructions, UVBoundsMode.SKIP, Diagnostics())
        assert instructions[0].applied
        assert good.uvs[0].tolist() == [0.25, 0.25]
        assert not instructions[1].applied
        assert instructions[1].reason == OUT_OF_BOUNDS_REASON
        assert bad.uvs[0].tolist() == [1.5, 0.5]
