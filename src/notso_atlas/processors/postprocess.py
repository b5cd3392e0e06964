"""Atlas post-processing: mip-safe padding, fragmentation, seam padding, normals."""

import math

import numpy as np

from notso_atlas.models import Image, Rect
from notso_atlas.utils import mip_levels, next_power_of_two
from notso_atlas.utils.constants import FRAGMENTATION_HEADROOM, NORMAL_PROBE_PIXELS


def mip_padding_floor(atlas_size: int) -> int:
    """Smallest padding that keeps neighbours apart down the mip chain."""
    return max(1, 1 << max(0, mip_levels(atlas_size) - 6))


def optimal_padding(atlas_size: int, padding: int) -> int:
    """Configured padding raised to the mip-safe floor for ``atlas_size``."""
    return max(mip_padding_floor(atlas_size), padding)


def utilization(rects: list[Rect]) -> float:
    """Fraction of the atlas covered by placed images."""
    return sum(r.width * r.height for r in rects)


def fragmentation_target(
    rects: list[Rect],
    width: int,
    height: int,
    source_sizes: list[tuple[int, int]],
    target_utilization: float,
) -> int | None:
    """
    Suggest a smaller square atlas size when this one is underused.

    Returns the new power-of-two size to repack at, or None when the
    current atlas is good enough or cannot shrink. The estimate keeps
    5% headroom over the used area and never goes below the largest
    source image.
    """
    if not rects or not source_sizes:
        return None
    used = utilization(rects)
    if used >= target_utilization:
        return None

    used_area = used * width * height

    new_size = next_power_of_two(math.ceil(math.sqrt(used_area * FRAGMENTATION_HEADROOM)))
    largest = max(max(w, h) for w, h in source_sizes)
    new_size = max(new_size, next_power_of_two(largest))
    if new_size < min(width, height):
        return new_size
    return None


def pad_uv_seams(atlas: Image, rects: list[Rect], padding: int) -> Image:
    """
    Bleed each placed image's border pixels outward by ``padding``.

    Writes into the atlas buffer in place (the atlas is still under
    construction) and returns it. Bleed is clamped to the atlas bounds.
    """
    if padding <= 0 or atlas.pixels is None:
        return atlas

    pixels = atlas.pixels
    height, width = pixels.shape[:2]
    for rect in rects:
        x, y, w, h = rect.to_pixels(width, height)
        x = min(max(x, 0), width - 1)
        y = min(max(y, 0), height - 1)
        w = min(max(w, 1), width - x)
        h = min(max(h, 1), height - y)

        # Bottom and top rows
        pixels[max(0, y - padding) : y, x : x + w] = pixels[y, x : x + w]
        pixels[y + h : min(height, y + h + padding), x : x + w] = pixels[
            y + h - 1, x : x + w
        ]
        # Left and right columns
        pixels[y : y + h, max(0, x - padding) : x] = pixels[y : y + h, x : x + 1]
        pixels[y : y + h, x + w : min(width, x + w + padding)] = pixels[
            y : y + h, x + w - 1 : x + w
        ]
    return atlas


def needs_normal_conversion(image: Image) -> bool:
    """True if the first opaque pixels look like a non tangent-space map."""
    if image.pixels is None:
        return False
    flat = image.pixels.reshape(-1, 4)
    probe = flat[flat[:, 3] > 0][:NORMAL_PROBE_PIXELS]
    return bool((probe[:, 2] < 128).any())


def renormalize_normals(image: Image) -> Image:
    """
    Re-encode a normal map as unit-length, positive-z tangent-space vectors.

    Returns ``image`` untouched when no conversion is needed, otherwise a
    new image. Zero vectors are left as they are; alpha is preserved.
    """
    if not needs_normal_conversion(image):
        return image

    assert image.pixels is not None
    rgb = image.pixels[..., :3].astype(np.float32) / 255.0 * 2.0 - 1.0
    length = np.linalg.norm(rgb, axis=-1, keepdims=True)
    unit = np.divide(rgb, length, out=rgb.copy(), where=length > 1e-6)
    unit[..., 2] = np.abs(unit[..., 2])

    out = image.pixels.copy()
    out[..., :3] = np.clip(np.rint((unit * 0.5 + 0.5) * 255.0), 0, 255).astype(np.uint8)
    return Image(
        name=image.name,
        pixels=out,
        identity=f"{image.identity}+renormalized",
    )
