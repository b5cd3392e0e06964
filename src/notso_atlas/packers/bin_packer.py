"""
Binary tree bin packing of same-purpose images into one atlas.

The layout follows Jake Gordon's growing packer
(https://github.com/jakesgordon/bin-packing): start with a bin the size of
the largest block, split used nodes into ``right`` and ``down`` free
nodes, and grow the bin right or down when a block does not fit.

Each image occupies a block of ``(w + 2 * padding) x (h + 2 * padding)``
with the image centred in it, so neighbouring images are separated by
twice the padding and each image's padded bounds are disjoint from every
other's. Final atlas sides are rounded up to powers of two.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from notso_atlas.models import Image, Rect
from notso_atlas.processors.images import (
    ensure_readable,
    resize_to_fit,
    transparent_placeholder,
)
from notso_atlas.utils import next_power_of_two


@dataclass
class _Node:
    x: int
    y: int
    w: int
    h: int
    used: bool = False
    right: _Node | None = None
    down: _Node | None = None


class GrowingPacker:
    """Places blocks in a bin that grows right or down as needed."""

    def __init__(self) -> None:
        self.root = _Node(0, 0, 0, 0)

    def fit(self, blocks: list[tuple[int, int]]) -> list[tuple[int, int]]:
        """
        Place blocks in the given order.

        Returns the ``(x, y)`` of each block, in input order. Callers sort
        the blocks beforehand; largest first gives the tightest bins.
        """
        positions: list[tuple[int, int]] = []
        if not blocks:
            return positions

        self.root = _Node(0, 0, blocks[0][0], blocks[0][1])
        for w, h in blocks:
            node = self._find(self.root, w, h)
            placed = self._split(node, w, h) if node else self._grow(w, h)
            if placed is None:
                raise RuntimeError(f"Could not place block {w}x{h}")
            positions.append((placed.x, placed.y))
        return positions

    def _find(self, node: _Node | None, w: int, h: int) -> _Node | None:
        if node is None:
            return None
        if node.used:
            return self._find(node.right, w, h) or self._find(node.down, w, h)
        if w <= node.w and h <= node.h:
            return node
        return None

    @staticmethod
    def _split(node: _Node, w: int, h: int) -> _Node:
        node.used = True
        node.down = _Node(node.x, node.y + h, node.w, node.h - h)
        node.right = _Node(node.x + w, node.y, node.w - w, h)
        return node

    def _grow(self, w: int, h: int) -> _Node | None:
        can_grow_right = h <= self.root.h
        can_grow_down = w <= self.root.w

        # Keep the bin roughly square
        should_grow_right = can_grow_right and self.root.h >= self.root.w + w
        should_grow_down = can_grow_down and self.root.w >= self.root.h + h

        if should_grow_right or (not should_grow_down and can_grow_right):
            return self._grow_right(w, h)
        if should_grow_down or can_grow_down:
            return self._grow_down(w, h)
        return None

    def _grow_right(self, w: int, h: int) -> _Node | None:
        old = self.root
        self.root = _Node(
            0,
            0,
            old.w + w,
            old.h,
            used=True,
            down=old,
            right=_Node(old.w, 0, w, old.h),
        )
        node = self._find(self.root, w, h)
        return self._split(node, w, h) if node else None

    def _grow_down(self, w: int, h: int) -> _Node | None:
        old = self.root
        self.root = _Node(
            0,
            0,
            old.w,
            old.h + h,
            used=True,
            down=_Node(0, old.h, old.w, h),
            right=old,
        )
        node = self._find(self.root, w, h)
        return self._split(node, w, h) if node else None


@dataclass
class Layout:
    """Pixel placement of images inside an atlas of ``width`` x ``height``."""

    width: int
    height: int
    positions: list[tuple[int, int]]  # Image origin (inside padding), input order


@dataclass
class PackResult:
    """A packed atlas: pixels, size, normalized rects and the placed images."""

    image: Image
    width: int
    height: int
    rects: list[Rect]
    placed: list[Image]
    padding: int


def layout_sizes(
    sizes: list[tuple[int, int]], max_size: int, padding: int
) -> Layout | None:
    """
    Compute a layout for images of the given sizes, or None if it won't fit.

    Blocks are packed largest side first; ties keep input order so the
    result is reproducible for the same input.
    """
    if not sizes:
        return None
    blocks = [(w + 2 * padding, h + 2 * padding) for w, h in sizes]
    if any(bw > max_size or bh > max_size for bw, bh in blocks):
        return None

    order = sorted(
        range(len(blocks)),
        key=lambda i: (-max(blocks[i]), -blocks[i][0] * blocks[i][1], i),
    )
    packer = GrowingPacker()
    sorted_positions = packer.fit([blocks[i] for i in order])

    positions: list[tuple[int, int]] = [(0, 0)] * len(blocks)
    extent_w = extent_h = 0
    for i, (x, y) in zip(order, sorted_positions):
        positions[i] = (x + padding, y + padding)
        extent_w = max(extent_w, x + blocks[i][0])
        extent_h = max(extent_h, y + blocks[i][1])

    width = next_power_of_two(extent_w)
    height = next_power_of_two(extent_h)
    if width > max_size or height > max_size:
        return None
    return Layout(width, height, positions)


def blit_layout(images: list[Image], layout: Layout, name: str = "") -> Image:
    """Copy each image into a cleared atlas at its layout position."""
    atlas = np.zeros((layout.height, layout.width, 4), dtype=np.uint8)
    for img, (x, y) in zip(images, layout.positions):
        assert img.pixels is not None
        atlas[y : y + img.height, x : x + img.width] = img.pixels
    return Image(name or f"Atlas_{layout.width}x{layout.height}", atlas)


def rects_for(images: list[Image], layout: Layout) -> list[Rect]:
    return [
        Rect(
            x / layout.width,
            y / layout.height,
            img.width / layout.width,
            img.height / layout.height,
        )
        for img, (x, y) in zip(images, layout.positions)
    ]


def pack_images(
    images: list[Image | None],
    max_size: int,
    padding: int,
    allow_downscale: bool = True,
) -> PackResult | None:
    """
    Pack images into one atlas no larger than ``max_size`` on either side.

    Missing images become 2x2 transparent placeholders. If the set does not
    fit, images too large for the usable area are shrunk to fit and packing
    is retried once (unless ``allow_downscale`` is off). Returns None when
    that also fails.

    Raises:
        ImageNotReadableError: an input's pixels cannot be read.
    """
    if not images:
        return None

    readable = [ensure_readable(img or transparent_placeholder()) for img in images]

    layout = layout_sizes([img.size for img in readable], max_size, padding)
    if layout is None and allow_downscale:
        usable = max_size - 2 * padding
        reduced = [resize_to_fit(img, usable) for img in readable]
        if all(r is o for r, o in zip(reduced, readable)):
            return None
        readable = reduced
        layout = layout_sizes([img.size for img in readable], max_size, padding)
    if layout is None:
        return None

    atlas = blit_layout(readable, layout)
    return PackResult(
        image=atlas,
        width=layout.width,
        height=layout.height,
        rects=rects_for(readable, layout),
        placed=readable,
        padding=padding,
    )
