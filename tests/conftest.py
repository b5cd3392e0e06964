"""
Pytest fixtures for the atlas packer tests.

Images are plain numpy buffers, so nothing here needs Blender. The
bridge tests under tests/blender use the real bpy module.
"""

from __future__ import annotations

from collections.abc import Callable

import numpy as np
import pytest

from notso_atlas.models import Image, Material, TextureSlot


def _solid(
    name: str, width: int, height: int | None = None, color=(200, 40, 40, 255)
) -> Image:
    return Image.filled(name, width, height or width, color)


def _noise(name: str, width: int, height: int | None = None, seed: int = 0) -> Image:
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(height or width, width, 4), dtype=np.uint8)
    pixels[..., 3] = 255
    return Image(name, pixels)


def _material(name: str, shader: str = "Standard", **images: Image | None) -> Material:
    slots = {prop: TextureSlot(img) for prop, img in images.items()}
    return Material(name, shader, slots)


@pytest.fixture
def solid_image() -> Callable[..., Image]:
    """Factory for single-colour images."""
    return _solid


@pytest.fixture
def noise_image() -> Callable[..., Image]:
    """Factory for seeded random-noise images."""
    return _noise


@pytest.fixture
def make_material() -> Callable[..., Material]:
    """Factory for materials; keyword arguments become texture slots."""
    return _material


@pytest.fixture
def two_materials() -> list[Material]:
    """Two materials on one shader, each with its own 64x64 _MainTex."""
    return [
        _material("Body", _MainTex=_solid("body", 64, color=(220, 180, 150, 255))),
        _material("Hair", _MainTex=_solid("hair", 64, color=(40, 30, 20, 255))),
    ]
