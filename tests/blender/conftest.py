"""
Pytest fixtures for the Blender bridge tests.

Uses real bpy module (Blender as Python module). Test modules here skip
themselves when it is not installed.
"""

import numpy as np
import pytest


@pytest.fixture(autouse=True)
def reset_blender_scene() -> None:
    """Reset Blender to factory settings before each test."""
    import bpy

    bpy.ops.wm.read_factory_settings(use_empty=True)


def _textured_material(name: str, color: tuple[int, int, int, int], size: int = 32):
    import bpy

    image = bpy.data.images.new(f"{name}_tex", width=size, height=size, alpha=True)
    rgba = np.array(color, dtype=np.float32) / 255.0
    image.pixels.foreach_set(np.tile(rgba, size * size))

    mat = bpy.data.materials.new(name)
    mat.use_nodes = True
    tree = mat.node_tree
    bsdf = next(n for n in tree.nodes if n.type == "BSDF_PRINCIPLED")
    tex = tree.nodes.new("ShaderNodeTexImage")
    tex.image = image
    tree.links.new(tex.outputs["Color"], bsdf.inputs["Base Color"])
    return mat


@pytest.fixture
def textured_material():
    """Factory: Principled material whose Base Color is a flat generated image."""
    return _textured_material


@pytest.fixture
def two_material_cube():
    """Cube whose faces alternate between a red and a blue textured material."""
    import bpy

    bpy.ops.mesh.primitive_cube_add()
    obj = bpy.context.active_object
    obj.data.materials.append(_textured_material("Red", (255, 0, 0, 255)))
    obj.data.materials.append(_textured_material("Blue", (0, 0, 255, 255)))
    for i, poly in enumerate(obj.data.polygons):
        poly.material_index = i % 2
    return obj
