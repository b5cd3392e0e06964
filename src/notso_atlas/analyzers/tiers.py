"""Compression tier selection and encoder import parameters."""

from notso_atlas.config import AtlasConfig, CompressionTier
from notso_atlas.models import ComplexityAnalysis, Image, ImportSettings, PropertyRole
from notso_atlas.utils import floor_power_of_two, matches_any, split_patterns
from notso_atlas.utils.logging import Diagnostics

COMPONENT = "tiers"

# Properties sampled as linear data rather than colour
LINEAR_KEYWORDS = ("metallic", "roughness", "mask")

MIPMAP_FADE_SPAN = 3


def tier_applies(tier: CompressionTier, score: float, property_name: str) -> bool:
    if not tier.min_complexity <= score <= tier.max_complexity:
        return False
    if split_patterns(tier.include_properties) and not matches_any(
        property_name, tier.include_properties
    ):
        return False
    return not matches_any(property_name, tier.exclude_properties)


def select_tier(
    score: float,
    property_name: str,
    tiers: list[CompressionTier],
    diagnostics: Diagnostics | None = None,
) -> CompressionTier:
    """
    Pick the first enabled tier whose range and filters accept the score.

    Tiers are considered in ``min_complexity`` order. When none applies the
    middle enabled tier is returned and a configuration-gap warning is
    recorded.

    Raises:
        ValueError: no tier is enabled.
    """
    enabled = sorted((t for t in tiers if t.enabled), key=lambda t: t.min_complexity)
    if not enabled:
        raise ValueError("No enabled compression tiers")

    for tier in enabled:
        if tier_applies(tier, score, property_name):
            return tier

    fallback = enabled[len(enabled) // 2]
    if diagnostics is not None:
        diagnostics.warn(
            COMPONENT,
            f"No tier matches score {score:.3f} for '{property_name}', "
            f"falling back to '{fallback.name}'",
            property=property_name,
            score=round(score, 3),
        )
    return fallback


def is_linear_property(property_name: str) -> bool:
    lower = property_name.lower()
    return any(k in lower for k in LINEAR_KEYWORDS)


def build_import_settings(
    image: Image,
    analysis: ComplexityAnalysis,
    tier: CompressionTier,
    property_name: str,
    role: PropertyRole,
    config: AtlasConfig,
) -> ImportSettings:
    """
    Resolve the encoder parameters for one atlas.

    Per-property overrides beat the tier; the max size never exceeds the
    atlas's native size and is rounded down to a power of two.
    """
    key = property_name.lower()

    target = config.size_overrides.get(key, tier.max_texture_size)
    native = max(image.width, image.height)
    max_size = floor_power_of_two(min(target, native))

    quality = config.quality_overrides.get(key, tier.quality)

    uncompressed = {p.lower() for p in split_patterns(config.uncompressed_properties)}
    if key in uncompressed:
        compression, fmt = "uncompressed", "uncompressed"
    elif tier.format:
        compression, fmt = "custom", tier.format
    elif config.compress_atlases:
        compression, fmt = "compressed", config.compression_format
    else:
        compression, fmt = "uncompressed", "uncompressed"

    filter_mode = tier.filter_mode
    if filter_mode is None and config.optimize_filter_modes:
        filter_mode = (
            config.detail_filter if analysis.score >= 0.5 else config.simple_filter
        )

    mipmaps = config.generate_mipmaps
    if tier.force_mipmaps:
        mipmaps = True
    if tier.disable_mipmaps:
        mipmaps = False

    mipmap_filter = config.mipmap_filter if mipmaps else None
    mipmap_fade = None
    if mipmaps and config.fade_out_mipmaps:
        mipmap_fade = (
            config.mipmap_fade_start,
            config.mipmap_fade_start + MIPMAP_FADE_SPAN,
        )

    srgb = True
    if config.auto_detect_color_space:
        srgb = not role.is_normal and not is_linear_property(property_name)

    texture_type = "default"
    if config.preserve_normal_maps and role.is_normal:
        texture_type = "normal"

    return ImportSettings(
        max_size=max_size,
        quality=quality,
        compression=compression,
        format=fmt,
        filter_mode=filter_mode,
        aniso_level=tier.aniso_level,
        mipmaps=mipmaps,
        mipmap_filter=mipmap_filter,
        mipmap_fade=mipmap_fade,
        srgb=srgb,
        texture_type=texture_type,
    )
