"""Image normalization, atlas post-processing, and surface remapping."""

from notso_atlas.processors.images import (
    ImageCache,
    ensure_readable,
    placeholder,
    resize,
)
from notso_atlas.processors.postprocess import (
    fragmentation_target,
    optimal_padding,
    pad_uv_seams,
    renormalize_normals,
)
from notso_atlas.processors.remap import (
    bake_instruction,
    chain_scale_offset,
    plan_surface_remaps,
    validate_uv_bounds,
)

__all__ = [
    "ImageCache",
    "bake_instruction",
    "chain_scale_offset",
    "ensure_readable",
    "fragmentation_target",
    "optimal_padding",
    "pad_uv_seams",
    "placeholder",
    "plan_surface_remaps",
    "renormalize_normals",
    "resize",
    "validate_uv_bounds",
]
