"""GLB/glTF import, atlas and export functions."""

from notso_atlas.exporters.gltf import atlas_and_export, export_gltf, import_gltf

__all__ = [
    "atlas_and_export",
    "export_gltf",
    "import_gltf",
]
