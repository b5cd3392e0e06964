"""Data model shared by the atlas engine components."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from notso_atlas.config import CompressionTier
    from notso_atlas.utils.logging import Diagnostics


class PropertyRole(str, Enum):
    """What a texture property feeds in the shader."""

    ALBEDO = "albedo"
    NORMAL = "normal"
    DETAIL = "detail"
    MASK = "mask"
    EMISSION = "emission"
    OTHER = "other"

    @property
    def is_normal(self) -> bool:
        return self is PropertyRole.NORMAL


def infer_role(property_name: str) -> PropertyRole:
    """Classify a texture property by its name."""
    lower = property_name.lower()
    if "normal" in lower or "bump" in lower:
        return PropertyRole.NORMAL
    if any(k in lower for k in ("main", "albedo", "diffuse", "base")):
        return PropertyRole.ALBEDO
    if "detail" in lower:
        return PropertyRole.DETAIL
    if "mask" in lower:
        return PropertyRole.MASK
    if "emission" in lower or "emissive" in lower:
        return PropertyRole.EMISSION
    return PropertyRole.OTHER


@dataclass(frozen=True)
class ShaderProperty:
    name: str
    role: PropertyRole


@dataclass(frozen=True)
class ShaderDescriptor:
    """Texture properties a shader declares, in declaration order."""

    name: str
    properties: tuple[ShaderProperty, ...] = ()

    @property
    def property_names(self) -> list[str]:
        return [p.name for p in self.properties]

    def role_of(self, property_name: str) -> PropertyRole:
        for prop in self.properties:
            if prop.name == property_name:
                return prop.role
        return infer_role(property_name)

    @classmethod
    def from_names(cls, name: str, property_names: Iterable[str]) -> ShaderDescriptor:
        return cls(name, tuple(ShaderProperty(p, infer_role(p)) for p in property_names))

    @classmethod
    def from_materials(cls, name: str, materials: Iterable[Material]) -> ShaderDescriptor:
        """Union of the materials' slot names, first-seen order, inferred roles."""
        seen: dict[str, None] = {}
        for mat in materials:
            for prop in mat.slots:
                seen.setdefault(prop, None)
        return cls.from_names(name, seen)


@dataclass(frozen=True, eq=False)
class Image:
    """
    An RGBA8 pixel buffer.

    ``pixels`` has shape ``(height, width, 4)`` and dtype uint8. Row 0 is the
    bottom row, so pixel ``(x, y)`` lives at ``pixels[y, x]`` and matches
    texture-space coordinates with v pointing up.

    ``identity`` is the stable key used for grouping and deduplication.
    An image with ``readable=False`` (or no resident pixels but a
    ``loader``) must go through ``ensure_readable`` before its pixels are
    touched.
    """

    name: str
    pixels: np.ndarray | None
    identity: str = ""
    format: str = "RGBA32"
    dimension: str = "2D"
    readable: bool = True
    loader: Callable[[], np.ndarray] | None = None
    size_hint: tuple[int, int] | None = None

    def __post_init__(self) -> None:
        if not self.identity:
            object.__setattr__(self, "identity", f"{self.name}#{id(self):x}")
        if self.pixels is not None:
            if self.pixels.ndim != 3 or self.pixels.shape[2] != 4:
                raise ValueError(f"Image {self.name!r}: expected (h, w, 4) pixels")
            if self.pixels.dtype != np.uint8:
                raise ValueError(f"Image {self.name!r}: expected uint8 pixels")

    @property
    def width(self) -> int:
        if self.pixels is not None:
            return int(self.pixels.shape[1])
        return self.size_hint[0] if self.size_hint else 0

    @property
    def height(self) -> int:
        if self.pixels is not None:
            return int(self.pixels.shape[0])
        return self.size_hint[1] if self.size_hint else 0

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def is_2d(self) -> bool:
        return self.dimension == "2D"

    @classmethod
    def filled(
        cls, name: str, width: int, height: int, color: tuple[int, int, int, int]
    ) -> Image:
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[...] = color
        return cls(name, pixels)


@dataclass(frozen=True)
class TextureSlot:
    """A property's image plus the scale/offset applied to sampled coordinates."""

    image: Image | None = None
    scale: tuple[float, float] = (1.0, 1.0)
    offset: tuple[float, float] = (0.0, 0.0)


@dataclass(frozen=True, eq=False)
class Material:
    """
    An immutable material: shader name plus texture slots by property name.

    Hashes by identity so originals can be used in exclusion sets and as
    dictionary keys.
    """

    name: str
    shader: str
    slots: Mapping[str, TextureSlot] = field(default_factory=dict)

    def has_property(self, prop: str) -> bool:
        return prop in self.slots

    def image_for(self, prop: str) -> Image | None:
        slot = self.slots.get(prop)
        return slot.image if slot else None

    def slot(self, prop: str) -> TextureSlot:
        return self.slots.get(prop, TextureSlot())

    def with_slot(self, prop: str, slot: TextureSlot) -> Material:
        slots = dict(self.slots)
        slots[prop] = slot
        return replace(self, slots=slots)

    def copy(self, name: str | None = None) -> Material:
        return Material(name or self.name, self.shader, dict(self.slots))


@dataclass(frozen=True)
class Rect:
    """A placement rectangle in normalized atlas coordinates."""

    x: float
    y: float
    width: float
    height: float

    @property
    def origin(self) -> tuple[float, float]:
        return self.x, self.y

    @property
    def size(self) -> tuple[float, float]:
        return self.width, self.height

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2

    def to_pixels(self, atlas_width: int, atlas_height: int) -> tuple[int, int, int, int]:
        """Rounded pixel rectangle ``(x, y, w, h)``."""
        return (
            int(round(self.x * atlas_width)),
            int(round(self.y * atlas_height)),
            int(round(self.width * atlas_width)),
            int(round(self.height * atlas_height)),
        )

    def padded(self, padding: int, atlas_width: int, atlas_height: int) -> Rect:
        """This rect grown by ``padding`` pixels on every side."""
        px = padding / atlas_width
        py = padding / atlas_height
        return Rect(self.x - px, self.y - py, self.width + 2 * px, self.height + 2 * py)

    def intersects(self, other: Rect, eps: float = 1e-9) -> bool:
        """Strict overlap test; shared edges do not count."""
        return (
            self.x < other.x + other.width - eps
            and other.x < self.x + self.width - eps
            and self.y < other.y + other.height - eps
            and other.y < self.y + self.height - eps
        )

    def key(self, digits: int = 4) -> tuple[float, ...]:
        return tuple(round(v, digits) for v in (self.x, self.y, self.width, self.height))


@dataclass(frozen=True)
class PropertyGroup:
    """Properties whose per-material image assignments are identical."""

    representative: str
    members: tuple[str, ...]
    signature: tuple[str, ...]


@dataclass(frozen=True)
class ComplexityAnalysis:
    score: float
    unique_colors: int = 0
    color_diversity: float = 0.0
    variance: float = 0.0
    edge_density: float = 0.0
    role_modifier: float = 0.0
    reason: str = ""
    assumed: bool = False


@dataclass(frozen=True)
class ImportSettings:
    """Target parameters for the downstream texture encoder."""

    max_size: int
    quality: int
    compression: str  # "compressed" | "uncompressed" | "custom"
    format: str
    filter_mode: str | None
    aniso_level: int
    mipmaps: bool
    mipmap_filter: str | None = None
    mipmap_fade: tuple[int, int] | None = None
    srgb: bool = True
    texture_type: str = "default"


@dataclass
class Atlas:
    """A packed image plus one placement rect per input material."""

    name: str
    image: Image
    rects: list[Rect]
    property_name: str
    members: tuple[str, ...] = ()
    role: PropertyRole = PropertyRole.OTHER
    padding: int = 0
    analysis: ComplexityAnalysis | None = None
    tier: CompressionTier | None = None
    import_settings: ImportSettings | None = None

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


@dataclass(frozen=True)
class MaterialCopy:
    """Output for one original material: its replacement and its rect."""

    original: Material
    material: Material
    rect: Rect


@dataclass
class RenderSurface:
    """
    A renderable mesh the caller has already duplicated for this run.

    ``uvs`` is the owned coordinate attribute, shape ``(n, 2)``.
    ``slot_indices[i]`` lists the coordinate indices used by material slot
    ``i``.
    """

    name: str
    materials: list[Material | None]
    uvs: np.ndarray
    slot_indices: list[np.ndarray]


@dataclass
class RemapInstruction:
    surface: RenderSurface
    slots: list[int]
    rect: Rect | None
    material: Material | None = None
    applied: bool = False
    reason: str = ""


@dataclass(frozen=True)
class SkippedMaterial:
    material: Material
    reason: str


@dataclass
class AtlasOutcome:
    """Everything one ``process()`` call produced."""

    shader: str
    atlases: list[Atlas] = field(default_factory=list)
    material_copies: list[MaterialCopy] = field(default_factory=list)
    remap_instructions: list[RemapInstruction] = field(default_factory=list)
    skipped: list[SkippedMaterial] = field(default_factory=list)
    texture_combinations: int = 0
    diagnostics: Diagnostics | None = None

    @property
    def unique_atlas_count(self) -> int:
        return len(self.atlases)

    def copy_for(self, original: Material) -> MaterialCopy | None:
        for copy in self.material_copies:
            if copy.original is original:
                return copy
        return None

    def merge(self, other: AtlasOutcome) -> None:
        self.atlases.extend(other.atlases)
        self.material_copies.extend(other.material_copies)
        self.remap_instructions.extend(other.remap_instructions)
        self.skipped.extend(other.skipped)
        self.texture_combinations += other.texture_combinations
