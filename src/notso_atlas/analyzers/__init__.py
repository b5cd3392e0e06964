"""Analyzers for property grouping, atlas complexity, and compression tiers."""

from notso_atlas.analyzers.complexity import analyze_complexity
from notso_atlas.analyzers.properties import (
    build_property_groups,
    count_texture_combinations,
)
from notso_atlas.analyzers.tiers import build_import_settings, select_tier

__all__ = [
    "analyze_complexity",
    "build_import_settings",
    "build_property_groups",
    "count_texture_combinations",
    "select_tier",
]
