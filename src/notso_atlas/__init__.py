"""
Texture Atlas Packer for Character Assets
=========================================
Packs same-shader materials into shared texture atlases and picks
per-atlas compression settings from the atlas's visual complexity.

Pipeline:
- Groups texture properties that share identical image assignments
- Packs each group's images with a growing binary-tree packer
- Bisects material subsets that don't fit the maximum atlas size
- Replicates one UV layout across properties (driver-linked workflow)
- Pads seams, keeps mip chains apart, shrinks underused atlases
- Renormalizes normal maps
- Scores complexity (colour diversity, variance, edge density)
- Maps the score to a compression tier and encoder import settings
- Chains material scale/offset or bakes surface UVs onto the atlas

Usage:
    CLI:
        notso-atlas pack body.png face.png -o atlas.png
        notso-atlas analyze atlas.png --property _MainTex
        notso-atlas optimize avatar.glb --workflow driver-linked

    Python:
        from notso_atlas import AtlasConfig, process
        outcome = process("Standard", materials, config=AtlasConfig())
"""

from importlib.metadata import PackageNotFoundError, version

from notso_atlas.config import AtlasConfig, CompressionTier, UVBoundsMode, Workflow
from notso_atlas.engine import process, process_batches
from notso_atlas.errors import AtlasError, ConfigurationError, ImageNotReadableError
from notso_atlas.models import (
    Atlas,
    AtlasOutcome,
    Image,
    Material,
    PropertyRole,
    RenderSurface,
    ShaderDescriptor,
    ShaderProperty,
    TextureSlot,
)

try:
    __version__ = version("notso-atlas")
except PackageNotFoundError:
    __version__ = "unknown"

__all__ = [
    "Atlas",
    "AtlasConfig",
    "AtlasError",
    "AtlasOutcome",
    "CompressionTier",
    "ConfigurationError",
    "Image",
    "ImageNotReadableError",
    "Material",
    "PropertyRole",
    "RenderSurface",
    "ShaderDescriptor",
    "ShaderProperty",
    "TextureSlot",
    "UVBoundsMode",
    "Workflow",
    "process",
    "process_batches",
]
