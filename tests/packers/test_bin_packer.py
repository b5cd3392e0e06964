"""Tests for the growing binary-tree packer."""

import pytest


def _assert_disjoint(result) -> None:
    padded = [r.padded(result.padding, result.width, result.height) for r in result.rects]
    for i, a in enumerate(padded):
        for b in padded[i + 1 :]:
            assert not a.intersects(b)
    for r in result.rects:
        assert 0.0 <= r.x and r.x + r.width <= 1.0
        assert 0.0 <= r.y and r.y + r.height <= 1.0


class TestGrowingPacker:
    """Tests for GrowingPacker."""

    def test_single_block_at_origin(self) -> None:
        from notso_atlas.packers.bin_packer import GrowingPacker

        assert GrowingPacker().fit([(10, 20)]) == [(0, 0)]

    def test_grows_right_then_down(self) -> None:
        from notso_atlas.packers.bin_packer import GrowingPacker

        packer = GrowingPacker()
        positions = packer.fit([(64, 64)] * 4)
        assert positions == [(0, 0), (64, 0), (0, 64), (64, 64)]
        assert (packer.root.w, packer.root.h) == (128, 128)

    def test_fills_free_space_before_growing(self) -> None:
        from notso_atlas.packers.bin_packer import GrowingPacker

        packer = GrowingPacker()
        positions = packer.fit([(64, 64), (32, 32), (32, 32)])
        assert positions[1] == (64, 0)
        assert positions[2] == (64, 32)

    def test_empty(self) -> None:
        from notso_atlas.packers.bin_packer import GrowingPacker

        assert GrowingPacker().fit([]) == []


class TestLayoutSizes:
    """Tests for layout_sizes function."""

    def test_power_of_two_sides(self) -> None:
        from notso_atlas.packers.bin_packer import layout_sizes

        layout = layout_sizes([(50, 50), (50, 50), (50, 50)], 1024, 2)
        assert layout is not None
        assert layout.width == 128 and layout.height == 128

    def test_positions_inside_padding(self) -> None:
        from notso_atlas.packers.bin_packer import layout_sizes

        layout = layout_sizes([(60, 60)], 128, 2)
        assert layout is not None
        assert layout.positions == [(2, 2)]
        assert (layout.width, layout.height) == (64, 64)

    def test_oversized_block(self) -> None:
        from notso_atlas.packers.bin_packer import layout_sizes

        assert layout_sizes([(128, 128)], 128, 2) is None

    def test_overflow(self) -> None:
        from notso_atlas.packers.bin_packer import layout_sizes

        assert layout_sizes([(60, 60)] * 5, 128, 2) is None

    def test_deterministic(self) -> None:
        from notso_atlas.packers.bin_packer import layout_sizes

        sizes = [(30, 60), (60, 30), (40, 40), (10, 80)]
        assert layout_sizes(sizes, 256, 1) == layout_sizes(sizes, 256, 1)


class TestPackImages:
    """Tests for pack_images function."""

    def test_two_images(self, solid_image) -> None:
        from notso_atlas.packers.bin_packer import pack_images

        images = [solid_image("a", 64), solid_image("b", 64, color=(0, 255, 0, 255))]
        result = pack_images(images, 256, 8)
        assert result is not None
        assert result.width <= 256 and result.height <= 256
        assert len(result.rects) == 2
        _assert_disjoint(result)

    def test_pixels_blitted_at_rect(self, solid_image) -> None:
        from notso_atlas.packers.bin_packer import pack_images

        green = solid_image("g", 16, color=(0, 255, 0, 255))
        result = pack_images([green], 64, 2)
        assert result is not None
        x, y, w, h = result.rects[0].to_pixels(result.width, result.height)
        assert (result.image.pixels[y : y + h, x : x + w] == (0, 255, 0, 255)).all()
        assert (result.image.pixels[0, 0] == 0).all()

    def test_missing_image_becomes_placeholder(self, solid_image) -> None:
        from notso_atlas.packers.bin_packer import pack_images

        result = pack_images([solid_image("a", 16), None], 64, 1)
        assert result is not None
        assert result.placed[1].size == (2, 2)

    def test_downscales_oversized(self, solid_image) -> None:
        from notso_atlas.packers.bin_packer import pack_images

        result = pack_images([solid_image("big", 512)], 128, 2)
        assert result is not None
        assert result.placed[0].size == (124, 124)
        assert (result.width, result.height) == (128, 128)

    def test_no_downscale_when_disabled(self, solid_image) -> None:
        from notso_atlas.packers.bin_packer import pack_images

        assert pack_images([solid_image("big", 512)], 128, 2, allow_downscale=False) is None

    def test_too_many_fails(self, solid_image) -> None:
        from notso_atlas.packers.bin_packer import pack_images

        images = [solid_image(f"i{i}", 60) for i in range(5)]
        assert pack_images(images, 128, 2) is None

    def test_empty(self) -> None:
        from notso_atlas.packers.bin_packer import pack_images

        assert pack_images([], 128, 2) is None

    def test_unreadable_raises(self) -> None:
        from notso_atlas.errors import ImageNotReadableError
        from notso_atlas.models import Image
        from notso_atlas.packers.bin_packer import pack_images

        with pytest.raises(ImageNotReadableError):
            pack_images([Image("gpu", None, readable=False)], 128, 2)

    @pytest.mark.parametrize("count", [1, 3, 7, 12])
    def test_non_overlap(self, noise_image, count: int) -> None:
        from notso_atlas.packers.bin_packer import pack_images

        images = [noise_image(f"n{i}", 8 + 4 * i, 40 - 2 * i, seed=i) for i in range(count)]
        result = pack_images(images, 512, 3)
        assert result is not None
        _assert_disjoint(result)
