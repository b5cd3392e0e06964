"""Image readability, resampling, placeholders and the per-run image cache."""

import hashlib
from collections.abc import Callable
from pathlib import Path

import numpy as np
from PIL import Image as PILImage

from notso_atlas.errors import ImageNotReadableError
from notso_atlas.models import ComplexityAnalysis, Image, PropertyRole
from notso_atlas.utils.constants import (
    FINGERPRINT_GRID,
    NORMAL_FLAT_COLOR,
    TRANSPARENT_COLOR,
    WHITE_COLOR,
)

MIN_DIMENSION = 2


def ensure_readable(image: Image) -> Image:
    """
    Return a CPU-readable version of ``image``.

    Already readable images are returned unchanged. Non-readable images
    with resident pixels are copied; images with a loader are loaded.

    Raises:
        ImageNotReadableError: no pixels and no loader, or the loader failed.
    """
    if image.readable and image.pixels is not None:
        return image

    if image.pixels is not None:
        pixels = np.array(image.pixels, dtype=np.uint8, copy=True)
    elif image.loader is not None:
        try:
            pixels = np.ascontiguousarray(image.loader(), dtype=np.uint8)
        except Exception as e:
            raise ImageNotReadableError(f"Failed to load {image.name!r}: {e}") from e
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ImageNotReadableError(
                f"Loader for {image.name!r} returned shape {pixels.shape}"
            )
    else:
        raise ImageNotReadableError(f"Image {image.name!r} has no readable pixels")

    return Image(
        name=image.name,
        pixels=pixels,
        identity=image.identity,
        format="RGBA32",
        dimension=image.dimension,
        readable=True,
    )


def resize(image: Image, width: int, height: int) -> Image:
    """Resample to exactly ``width`` x ``height`` (at least 2x2)."""
    width = max(MIN_DIMENSION, int(width))
    height = max(MIN_DIMENSION, int(height))
    image = ensure_readable(image)
    if image.size == (width, height):
        return image

    assert image.pixels is not None
    pil = PILImage.fromarray(image.pixels)
    scaled = pil.resize((width, height), resample=PILImage.Resampling.BILINEAR)
    return Image(
        name=f"{image.name}_Scaled_{width}x{height}",
        pixels=np.asarray(scaled, dtype=np.uint8).copy(),
        identity=f"{image.identity}@{width}x{height}",
    )


def resize_to_fit(image: Image, max_size: int) -> Image:
    """Shrink (never grow) so both sides fit within ``max_size``, keeping aspect."""
    w, h = image.size
    if w <= max_size and h <= max_size:
        return image
    scale = min(max_size / w, max_size / h)
    new_w = max(MIN_DIMENSION, round(w * scale))
    new_h = max(MIN_DIMENSION, round(h * scale))
    return resize(image, new_w, new_h)


def placeholder(role: PropertyRole, width: int, height: int) -> Image:
    """Flat fill for a missing slot: neutral normal or opaque white."""
    width = max(MIN_DIMENSION, width)
    height = max(MIN_DIMENSION, height)
    if role.is_normal:
        return Image.filled(
            f"NormalPlaceholder_{width}x{height}",
            width,
            height,
            NORMAL_FLAT_COLOR,
        )
    return Image.filled(
        f"WhitePlaceholder_{width}x{height}", width, height, WHITE_COLOR
    )


def transparent_placeholder() -> Image:
    """2x2 fully transparent image for empty packer inputs."""
    return Image.filled("TransparentPlaceholder", 2, 2, TRANSPARENT_COLOR)


def fingerprint(image: Image) -> str:
    """
    Content fingerprint: dimensions, format and a coarse pixel grid.

    Falls back to the image identity when the pixels cannot be read.
    """
    h = hashlib.sha1()
    h.update(f"{image.width}x{image.height}_{image.format}_".encode())
    try:
        readable = ensure_readable(image)
    except ImageNotReadableError:
        h.update(image.identity.encode())
        return h.hexdigest()

    assert readable.pixels is not None
    sy = max(1, readable.height // FINGERPRINT_GRID)
    sx = max(1, readable.width // FINGERPRINT_GRID)
    h.update(np.ascontiguousarray(readable.pixels[::sy, ::sx]).tobytes())
    return h.hexdigest()


class ImageCache:
    """
    Per-run memo of normalized images and complexity analyses.

    Keys are content fingerprints, so two distinct image objects with the
    same content share work. Entries are never invalidated during a run.
    """

    def __init__(self) -> None:
        self._fingerprints: dict[int, tuple[Image, str]] = {}
        self._images: dict[tuple[str, int, int, str], Image] = {}
        self.analyses: dict[tuple[str, str], ComplexityAnalysis] = {}
        self.hits = 0
        self.misses = 0

    def fingerprint(self, image: Image) -> str:
        # The image is kept next to its id so the id cannot be recycled
        entry = self._fingerprints.get(id(image))
        if entry is None:
            entry = (image, fingerprint(image))
            self._fingerprints[id(image)] = entry
        return entry[1]

    def normalized(
        self,
        image: Image,
        width: int,
        height: int,
        variant: str = "",
        processor: Callable[[Image], Image] | None = None,
    ) -> Image:
        """Readable copy of ``image`` at ``width`` x ``height``, memoized."""
        key = (self.fingerprint(image), width, height, variant)
        cached = self._images.get(key)
        if cached is not None:
            self.hits += 1
            return cached
        self.misses += 1
        result = resize(ensure_readable(image), width, height)
        if processor is not None:
            result = processor(result)
        self._images[key] = result
        return result


def load_image_file(path: str | Path) -> Image:
    """Read an image file as RGBA, flipped so row 0 is the bottom row."""
    path = Path(path)
    try:
        with PILImage.open(path) as pil:
            pixels = np.asarray(pil.convert("RGBA"), dtype=np.uint8)
    except OSError as e:
        raise ImageNotReadableError(f"Cannot read {path}: {e}") from e
    return Image(path.stem, np.ascontiguousarray(pixels[::-1]), identity=str(path))


def save_image_file(image: Image, path: str | Path) -> None:
    """Write an image to disk (top row first, format from the extension)."""
    readable = ensure_readable(image)
    assert readable.pixels is not None
    PILImage.fromarray(np.ascontiguousarray(readable.pixels[::-1])).save(path)
