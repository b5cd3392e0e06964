"""Constants and thresholds for atlas generation."""

from typing import TypedDict

# Placeholder fills (RGBA8)
NORMAL_FLAT_COLOR: tuple[int, int, int, int] = (128, 128, 255, 255)
WHITE_COLOR: tuple[int, int, int, int] = (255, 255, 255, 255)
TRANSPARENT_COLOR: tuple[int, int, int, int] = (0, 0, 0, 0)

# Signature sentinels for "no image assigned"
ABSENT_NORMAL = "<absent:normal>"
ABSENT_OTHER = "<absent:other>"

# Complexity analysis defaults
COMPLEXITY_DEFAULTS: dict[str, float] = {
    "color_diversity_weight": 0.3,
    "color_variance_weight": 0.3,
    "edge_density_weight": 0.4,
    "edge_threshold": 0.1,  # RGB euclidean distance in [0, sqrt(3)]
    "assumed_score": 0.5,  # Unreadable atlas
}

# Per-role score modifiers
ROLE_MODIFIER_DEFAULTS: dict[str, float] = {
    "albedo": 0.1,
    "normal": 0.15,
    "detail": 0.05,
    "mask": -0.1,
    "emission": 0.05,
    "other": 0.0,
}

# Samples per axis for the analysis stride / fingerprint grid
ANALYSIS_SAMPLE_TARGET = 256
FINGERPRINT_GRID = 8

# Pixels checked when detecting a non tangent-space normal map
NORMAL_PROBE_PIXELS = 64

# Fragmentation control
FRAGMENTATION_HEADROOM = 1.05
FRAGMENTATION_MAX_ATTEMPTS = 3

# UV bounds tolerance
UV_BOUNDS_TOLERANCE = 0.01

# Compression tiers, ordered by min_complexity
DEFAULT_TIERS: list[dict[str, object]] = [
    {
        "name": "Low Detail",
        "min_complexity": 0.0,
        "max_complexity": 0.25,
        "max_texture_size": 512,
        "quality": 50,
        "aniso_level": 1,
    },
    {
        "name": "Medium Detail",
        "min_complexity": 0.25,
        "max_complexity": 0.5,
        "max_texture_size": 1024,
        "quality": 75,
        "aniso_level": 2,
    },
    {
        "name": "High Detail",
        "min_complexity": 0.5,
        "max_complexity": 0.75,
        "max_texture_size": 2048,
        "quality": 90,
        "aniso_level": 4,
    },
    {
        "name": "Ultra Detail",
        "min_complexity": 0.75,
        "max_complexity": 1.0,
        "max_texture_size": 4096,
        "quality": 100,
        "aniso_level": 8,
    },
]


class CliConfig(TypedDict):
    """Defaults for the command-line front end."""

    max_atlas_size: int
    padding: int
    workflow: str
    minimum_materials_for_atlas: int
    use_webp: bool
    verbose: bool


# Default configuration for the CLI
DEFAULT_CONFIG: CliConfig = {
    "max_atlas_size": 2048,  # Power of two
    "padding": 2,  # Pixels around each packed image
    "workflow": "independent",  # or "driver-linked"
    "minimum_materials_for_atlas": 2,  # Skip shaders with fewer materials
    "use_webp": True,  # WebP textures on export
    "verbose": False,  # Echo DEBUG diagnostics
}
