"""Tests for recursive subset bisection."""


def _fits_up_to(limit: int, calls: list[list[str]] | None = None):
    from notso_atlas.packers.splitter import SubsetResult

    def attempt(materials):
        if calls is not None:
            calls.append([m.name for m in materials])
        if len(materials) > limit:
            return None
        return SubsetResult(list(materials), [])

    return attempt


class TestPackSubset:
    """Tests for pack_subset function."""

    def test_fits_first_time(self, make_material) -> None:
        from notso_atlas.packers.splitter import pack_subset
        from notso_atlas.utils.logging import Diagnostics

        mats = [make_material(f"M{i}") for i in range(4)]
        results = pack_subset(mats, _fits_up_to(4), Diagnostics(), [])
        assert len(results) == 1
        assert results[0].materials == mats

    def test_bisects_at_midpoint(self, make_material) -> None:
        from notso_atlas.packers.splitter import pack_subset
        from notso_atlas.utils.logging import Diagnostics

        mats = [make_material(f"M{i}") for i in range(5)]
        calls: list[list[str]] = []
        diagnostics = Diagnostics()
        results = pack_subset(mats, _fits_up_to(3, calls), diagnostics, [])

        assert calls[0] == ["M0", "M1", "M2", "M3", "M4"]
        assert calls[1:] == [["M0", "M1"], ["M2", "M3", "M4"]]
        assert [len(r.materials) for r in results] == [2, 3]
        assert diagnostics.by_component("splitter")

    def test_keeps_order_and_coverage(self, make_material) -> None:
        from notso_atlas.packers.splitter import pack_subset
        from notso_atlas.utils.logging import Diagnostics

        mats = [make_material(f"M{i}") for i in range(9)]
        results = pack_subset(mats, _fits_up_to(2), Diagnostics(), [])
        flattened = [m for r in results for m in r.materials]
        assert flattened == mats

    def test_single_failure_is_skipped(self, make_material) -> None:
        from notso_atlas.packers.splitter import pack_subset
        from notso_atlas.utils.logging import Diagnostics

        mats = [make_material("Huge"), make_material("Small")]
        skipped = []
        diagnostics = Diagnostics()

        def attempt(materials):
            from notso_atlas.packers.splitter import SubsetResult

            if any(m.name == "Huge" for m in materials):
                return None
            return SubsetResult(list(materials), [])

        results = pack_subset(mats, attempt, diagnostics, skipped)
        assert [r.materials for r in results] == [[mats[1]]]
        assert [s.material for s in skipped] == [mats[0]]
        assert skipped[0].reason == "packing failed"
        assert diagnostics.by_severity("WARNING")

    def test_unreadable_image_reason(self, make_material) -> None:
        from notso_atlas.errors import ImageNotReadableError
        from notso_atlas.packers.splitter import pack_subset
        from notso_atlas.utils.logging import Diagnostics

        def attempt(materials):
            raise ImageNotReadableError("Image 'x' has no readable pixels")

        skipped = []
        results = pack_subset([make_material("A")], attempt, Diagnostics(), skipped)
        assert results == []
        assert "no readable pixels" in skipped[0].reason

    def test_single_material_success(self, make_material) -> None:
        from notso_atlas.packers.splitter import pack_subset
        from notso_atlas.utils.logging import Diagnostics

        results = pack_subset([make_material("Solo")], _fits_up_to(1), Diagnostics(), [])
        assert len(results) == 1

    def test_empty(self) -> None:
        from notso_atlas.packers.splitter import pack_subset
        from notso_atlas.utils.logging import Diagnostics

        assert pack_subset([], _fits_up_to(1), Diagnostics(), []) == []
