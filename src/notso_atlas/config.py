"""Atlas generation configuration."""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any

from notso_atlas.errors import ConfigurationError
from notso_atlas.utils import is_power_of_two, parse_overrides
from notso_atlas.utils.constants import (
    COMPLEXITY_DEFAULTS,
    DEFAULT_TIERS,
    ROLE_MODIFIER_DEFAULTS,
)


class Workflow(str, Enum):
    """How non-driver properties get their layout."""

    INDEPENDENT = "independent"
    DRIVER_LINKED = "driver-linked"


class UVBoundsMode(str, Enum):
    """What to do with surfaces whose coordinates leave the unit square."""

    OFF = "off"
    WARN = "warn"
    WRAP = "wrap"
    SKIP = "skip"


FILTER_MODES = ("point", "bilinear", "trilinear")
MIPMAP_FILTERS = ("box", "kaiser")
COMPRESSION_FORMATS = ("automatic", "dxt1", "dxt5", "bc7", "astc", "etc2", "uncompressed")


@dataclass(frozen=True)
class CompressionTier:
    """A complexity range mapped to a bundle of import parameters."""

    name: str
    min_complexity: float
    max_complexity: float
    max_texture_size: int = 2048
    quality: int = 75
    enabled: bool = True
    format: str | None = None
    filter_mode: str | None = None
    aniso_level: int = 1
    force_mipmaps: bool = False
    disable_mipmaps: bool = False
    include_properties: str = ""
    exclude_properties: str = ""

    def __post_init__(self) -> None:
        if self.min_complexity > self.max_complexity:
            raise ConfigurationError(
                f"Tier {self.name!r}: min_complexity > max_complexity"
            )
        if self.max_texture_size <= 0:
            raise ConfigurationError(f"Tier {self.name!r}: max_texture_size must be > 0")
        if not 0 <= self.quality <= 100:
            raise ConfigurationError(f"Tier {self.name!r}: quality must be 0-100")
        if self.aniso_level < 0:
            raise ConfigurationError(f"Tier {self.name!r}: aniso_level must be >= 0")
        if self.filter_mode is not None and self.filter_mode not in FILTER_MODES:
            raise ConfigurationError(
                f"Tier {self.name!r}: unknown filter mode {self.filter_mode!r}"
            )
        if self.force_mipmaps and self.disable_mipmaps:
            raise ConfigurationError(
                f"Tier {self.name!r}: force_mipmaps and disable_mipmaps are exclusive"
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CompressionTier":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown tier keys: {sorted(unknown)}")
        return cls(**dict(data))


def default_tiers() -> tuple[CompressionTier, ...]:
    return tuple(CompressionTier.from_mapping(t) for t in DEFAULT_TIERS)


@dataclass(frozen=True)
class AtlasConfig:
    """
    Flat, validated configuration for one atlas run.

    Constructed once and treated as immutable. Invalid values raise
    ``ConfigurationError`` immediately.

    Pattern fields are comma-separated lists; ``*`` is a wildcard and a
    pattern without ``*`` matches as a case-insensitive substring.
    """

    # Packing
    max_atlas_size: int = 2048
    padding: int = 2
    minimum_materials_for_atlas: int = 2
    minimum_texture_size: int = 32
    max_materials_per_atlas: int = 0  # 0 = unlimited
    workflow: Workflow = Workflow.INDEPENDENT

    # Filters
    allowed_properties: str = "*"
    excluded_properties: str = ""
    allowed_shaders: str = ""
    excluded_shaders: str = "Hidden,UI,Unlit/Transparent"
    excluded_material_patterns: str = ""

    # Post-processing
    mip_aware_padding: bool = True
    optimize_fragmentation: bool = True
    target_utilization: float = 0.75
    pad_uv_seams: bool = True
    preserve_normal_maps: bool = True
    uv_bounds_mode: UVBoundsMode = UVBoundsMode.WARN

    # Complexity analysis
    color_diversity_weight: float = COMPLEXITY_DEFAULTS["color_diversity_weight"]
    color_variance_weight: float = COMPLEXITY_DEFAULTS["color_variance_weight"]
    edge_density_weight: float = COMPLEXITY_DEFAULTS["edge_density_weight"]
    edge_threshold: float = COMPLEXITY_DEFAULTS["edge_threshold"]
    role_modifiers: Mapping[str, float] = field(
        default_factory=lambda: dict(ROLE_MODIFIER_DEFAULTS)
    )

    # Compression / import parameters
    tiers: tuple[CompressionTier, ...] = field(default_factory=default_tiers)
    per_property_sizes: str = ""
    per_property_quality: str = ""
    uncompressed_properties: str = ""
    compress_atlases: bool = True
    compression_format: str = "automatic"
    optimize_filter_modes: bool = True
    detail_filter: str = "trilinear"
    simple_filter: str = "bilinear"
    generate_mipmaps: bool = True
    mipmap_filter: str = "kaiser"
    fade_out_mipmaps: bool = False
    mipmap_fade_start: int = 1
    auto_detect_color_space: bool = True

    # Naming
    atlas_name_prefix: str = "Atlas"
    include_shader_in_name: bool = True
    include_property_in_name: bool = True
    include_tier_in_name: bool = False

    verbose: bool = False

    def __post_init__(self) -> None:
        # Coerce plain values handed in from JSON / CLI
        if not isinstance(self.workflow, Workflow):
            object.__setattr__(self, "workflow", _coerce_enum(Workflow, self.workflow))
        if not isinstance(self.uv_bounds_mode, UVBoundsMode):
            object.__setattr__(
                self, "uv_bounds_mode", _coerce_enum(UVBoundsMode, self.uv_bounds_mode)
            )
        tiers = tuple(
            t if isinstance(t, CompressionTier) else CompressionTier.from_mapping(t)
            for t in self.tiers
        )
        object.__setattr__(self, "tiers", tiers)
        modifiers = dict(ROLE_MODIFIER_DEFAULTS)
        modifiers.update(self.role_modifiers)
        object.__setattr__(self, "role_modifiers", modifiers)
        self._validate()

    def _validate(self) -> None:
        if not is_power_of_two(self.max_atlas_size):
            raise ConfigurationError(
                f"max_atlas_size must be a positive power of two, got {self.max_atlas_size}"
            )
        if self.padding < 0:
            raise ConfigurationError(f"padding must be >= 0, got {self.padding}")
        if self.padding * 2 >= self.max_atlas_size:
            raise ConfigurationError("padding leaves no room inside max_atlas_size")
        if self.minimum_materials_for_atlas < 1:
            raise ConfigurationError("minimum_materials_for_atlas must be >= 1")
        if self.minimum_texture_size < 1:
            raise ConfigurationError("minimum_texture_size must be >= 1")
        if self.max_materials_per_atlas < 0:
            raise ConfigurationError("max_materials_per_atlas must be >= 0")
        if not 0.5 <= self.target_utilization <= 0.95:
            raise ConfigurationError("target_utilization must be within [0.5, 0.95]")
        for name in (
            "color_diversity_weight",
            "color_variance_weight",
            "edge_density_weight",
            "edge_threshold",
        ):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be >= 0")
        if not any(t.enabled for t in self.tiers):
            raise ConfigurationError("at least one enabled compression tier is required")
        if self.compression_format not in COMPRESSION_FORMATS:
            raise ConfigurationError(
                f"unknown compression_format {self.compression_format!r}"
            )
        for name in ("detail_filter", "simple_filter"):
            if getattr(self, name) not in FILTER_MODES:
                raise ConfigurationError(f"unknown {name} {getattr(self, name)!r}")
        if self.mipmap_filter not in MIPMAP_FILTERS:
            raise ConfigurationError(f"unknown mipmap_filter {self.mipmap_filter!r}")
        try:
            sizes = parse_overrides(self.per_property_sizes)
            parse_overrides(self.per_property_quality)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        if any(v <= 0 for v in sizes.values()):
            raise ConfigurationError("per_property_sizes values must be > 0")

    @property
    def size_overrides(self) -> dict[str, int]:
        return parse_overrides(self.per_property_sizes)

    @property
    def quality_overrides(self) -> dict[str, int]:
        return parse_overrides(self.per_property_quality)

    @property
    def enabled_tiers(self) -> list[CompressionTier]:
        """Enabled tiers ordered by ``min_complexity`` (stable)."""
        return sorted(
            (t for t in self.tiers if t.enabled), key=lambda t: t.min_complexity
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AtlasConfig":
        """Build a config from a plain dict (e.g. a parsed JSON document)."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown config keys: {sorted(unknown)}")
        values = dict(data)
        if "tiers" in values:
            values["tiers"] = tuple(values["tiers"])
        return cls(**values)


def _coerce_enum(enum_cls: type[Enum], value: Any) -> Any:
    try:
        return enum_cls(value)
    except ValueError as e:
        choices = ", ".join(m.value for m in enum_cls)
        raise ConfigurationError(
            f"{value!r} is not a valid {enum_cls.__name__} ({choices})"
        ) from e
