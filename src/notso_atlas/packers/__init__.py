"""Bin packing, subset splitting, and fixed-layout replication."""

from notso_atlas.packers.bin_packer import PackResult, pack_images
from notso_atlas.packers.layout import build_from_layout, prepare_property_images
from notso_atlas.packers.splitter import SubsetResult, pack_subset

__all__ = [
    "PackResult",
    "SubsetResult",
    "build_from_layout",
    "pack_images",
    "pack_subset",
    "prepare_property_images",
]
