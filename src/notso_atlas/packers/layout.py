"""Per-property source preparation and fixed-layout atlas replication."""

import numpy as np

from notso_atlas.models import Image, Material, PropertyRole, Rect
from notso_atlas.processors.images import ImageCache, placeholder, resize
from notso_atlas.processors.postprocess import renormalize_normals


def reference_sizes(
    materials: list[Material], properties: list[str], minimum: int
) -> list[tuple[int, int]]:
    """
    Per-material target size: the largest native size across ``properties``.

    Used when each property is packed independently, so that every atlas
    receives a given material's images at the same resolution.
    """
    sizes = []
    for mat in materials:
        w = h = minimum
        for prop in properties:
            img = mat.image_for(prop)
            if img is not None:
                w = max(w, img.width)
                h = max(h, img.height)
        sizes.append((w, h))
    return sizes


def linked_size(materials: list[Material], prop: str, minimum: int) -> tuple[int, int]:
    """Largest native size of ``prop`` across the materials."""
    w = h = minimum
    for mat in materials:
        img = mat.image_for(prop)
        if img is not None:
            w = max(w, img.width)
            h = max(h, img.height)
    return w, h


def prepare_property_images(
    prop: str,
    role: PropertyRole,
    materials: list[Material],
    sizes: list[tuple[int, int]],
    cache: ImageCache,
    preserve_normals: bool = True,
) -> list[Image]:
    """
    Source images for one property, one per material, at the given sizes.

    Empty slots are filled with a role placeholder. Normal-role images are
    renormalized when ``preserve_normals`` is set.

    Raises:
        ImageNotReadableError: a source image cannot be read.
    """
    fix_normals = preserve_normals and role.is_normal
    images: list[Image] = []
    for mat, (w, h) in zip(materials, sizes):
        src = mat.image_for(prop)
        if src is None:
            images.append(placeholder(role, w, h))
        elif fix_normals:
            images.append(
                cache.normalized(src, w, h, "normal", processor=renormalize_normals)
            )
        else:
            images.append(cache.normalized(src, w, h))
    return images


def build_from_layout(
    images: list[Image], rects: list[Rect], width: int, height: int, name: str = ""
) -> Image:
    """
    Resample each image into its rect of a cleared ``width`` x ``height`` atlas.

    Rects come from another property's packing, so every atlas built this
    way shares one coordinate layout.
    """
    if len(images) != len(rects):
        raise ValueError(f"{len(images)} images for {len(rects)} rects")

    atlas = np.zeros((height, width, 4), dtype=np.uint8)
    for img, rect in zip(images, rects):
        x, y, w, h = rect.to_pixels(width, height)
        w = min(w, width - x)
        h = min(h, height - y)
        if w <= 0 or h <= 0:
            continue
        fitted = resize(img, w, h)
        assert fitted.pixels is not None
        # resize() never goes below 2x2; crop for 1-pixel rects
        atlas[y : y + h, x : x + w] = fitted.pixels[:h, :w]
    return Image(name or f"Atlas_{width}x{height}", atlas)
