"""
Blender scene bridge.

Reads the current scene into engine inputs (shader descriptors, materials,
lazily loaded images, render surfaces) and writes an ``AtlasOutcome`` back
without touching the originals: atlases become new images, materials are
copied before rewiring, and mesh data is duplicated before its UVs are
rewritten.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from notso_atlas._bpy import bpy
from notso_atlas.models import (
    Atlas,
    AtlasOutcome,
    Image,
    Material,
    RemapInstruction,
    RenderSurface,
    ShaderDescriptor,
    TextureSlot,
)
from notso_atlas.utils.logging import log_detail, log_warn

SKIP_IMAGES = ("Render Result", "Viewer Node")

# Nodes walked through between an image texture and a shader input
PASSTHROUGH_NODES = ("NORMAL_MAP", "BUMP", "SEPARATE_COLOR", "SEPRGB", "GAMMA", "INVERT")
MAX_LINK_DEPTH = 4

QUALITY_PROPERTY = "notso_atlas_quality"


@dataclass
class SceneData:
    """Engine inputs for one scene plus the bpy objects they came from."""

    batches: dict[ShaderDescriptor, list[Material]] = field(default_factory=dict)
    surfaces: list[RenderSurface] = field(default_factory=list)
    bpy_materials: dict[int, Any] = field(default_factory=dict)  # id(Material)
    bpy_objects: dict[str, Any] = field(default_factory=dict)  # surface name
    texture_nodes: dict[int, dict[str, str]] = field(default_factory=dict)

    @property
    def material_count(self) -> int:
        return sum(len(m) for m in self.batches.values())


def image_loader(bpy_image: Any) -> Callable[[], np.ndarray]:
    """Deferred RGBA8 read of a bpy image (rows bottom-up)."""

    def load() -> np.ndarray:
        w, h = bpy_image.size[0], bpy_image.size[1]
        buf = np.empty(w * h * 4, dtype=np.float32)
        bpy_image.pixels.foreach_get(buf)
        return np.clip(np.rint(buf * 255.0), 0, 255).astype(np.uint8).reshape(h, w, 4)

    return load


def _to_image(bpy_image: Any, cache: dict[str, Image]) -> Image:
    cached = cache.get(bpy_image.name)
    if cached is not None:
        return cached
    image = Image(
        name=bpy_image.name,
        pixels=None,
        identity=f"bpy:{bpy_image.name}",
        format=bpy_image.file_format or "RGBA32",
        dimension="2D" if bpy_image.source in ("FILE", "GENERATED") else bpy_image.source,
        readable=False,
        loader=image_loader(bpy_image),
        size_hint=(bpy_image.size[0], bpy_image.size[1]),
    )
    cache[bpy_image.name] = image
    return image


def _shader_node(bpy_mat: Any) -> Any | None:
    """Shader node linked into the active material output's Surface."""
    if not bpy_mat.use_nodes or bpy_mat.node_tree is None:
        return None
    for node in bpy_mat.node_tree.nodes:
        if node.type == "OUTPUT_MATERIAL" and node.is_active_output:
            surface = node.inputs.get("Surface")
            if surface is not None and surface.is_linked:
                return surface.links[0].from_node
    return None


def _upstream_image_node(socket: Any, depth: int = 0) -> Any | None:
    if not socket.is_linked or depth > MAX_LINK_DEPTH:
        return None
    node = socket.links[0].from_node
    if node.type == "TEX_IMAGE":
        return node
    if node.type in PASSTHROUGH_NODES:
        for inp in node.inputs:
            found = _upstream_image_node(inp, depth + 1)
            if found is not None:
                return found
    return None


def texture_inputs(bpy_mat: Any) -> tuple[str, dict[str, Any]]:
    """
    Shader type and the image texture node feeding each shader input.

    Returns ("", {}) for materials without a node-based surface shader.
    """
    shader = _shader_node(bpy_mat)
    if shader is None:
        return "", {}
    found: dict[str, Any] = {}
    for inp in shader.inputs:
        node = _upstream_image_node(inp)
        if node is not None and node.image is not None:
            found[inp.name] = node
    return shader.bl_idname, found


def _mapping_node(tex_node: Any) -> Any | None:
    vector = tex_node.inputs.get("Vector")
    if vector is None or not vector.is_linked:
        return None
    node = vector.links[0].from_node
    return node if node.type == "MAPPING" else None


def _slot_for(tex_node: Any, image: Image) -> TextureSlot:
    mapping = _mapping_node(tex_node)
    if mapping is None:
        return TextureSlot(image)
    scale = mapping.inputs["Scale"].default_value
    location = mapping.inputs["Location"].default_value
    return TextureSlot(image, (scale[0], scale[1]), (location[0], location[1]))


def surface_from_object(obj: Any, materials: list[Material | None]) -> RenderSurface | None:
    """Wrap a mesh object's active UV layer as a render surface."""
    mesh = obj.data
    uv_layer = mesh.uv_layers.active
    if uv_layer is None:
        return None

    n_loops = len(mesh.loops)
    uvs = np.empty(n_loops * 2, dtype=np.float32)
    uv_layer.data.foreach_get("uv", uvs)

    n_polys = len(mesh.polygons)
    mat_index = np.empty(n_polys, dtype=np.int32)
    loop_total = np.empty(n_polys, dtype=np.int32)
    mesh.polygons.foreach_get("material_index", mat_index)
    mesh.polygons.foreach_get("loop_total", loop_total)
    loop_slot = np.repeat(mat_index, loop_total)

    slot_indices = [np.nonzero(loop_slot == s)[0] for s in range(len(materials))]
    return RenderSurface(obj.name, list(materials), uvs.reshape(-1, 2), slot_indices)


def collect_scene_batches() -> SceneData:
    """Read every mesh object's materials into per-shader batches."""
    data = SceneData()
    images: dict[str, Image] = {}
    converted: dict[str, Material] = {}
    properties: dict[str, dict[str, None]] = {}
    by_shader: dict[str, list[Material]] = {}

    for obj in bpy.data.objects:
        if obj.type != "MESH":
            continue

        slot_materials: list[Material | None] = []
        for mat_slot in obj.material_slots:
            bpy_mat = mat_slot.material
            if bpy_mat is None:
                slot_materials.append(None)
                continue

            mat = converted.get(bpy_mat.name)
            if mat is None:
                shader, nodes = texture_inputs(bpy_mat)
                if not shader:
                    slot_materials.append(None)
                    continue
                slots = {
                    prop: _slot_for(node, _to_image(node.image, images))
                    for prop, node in nodes.items()
                    if node.image.name not in SKIP_IMAGES
                }
                mat = Material(bpy_mat.name, shader, slots)
                converted[bpy_mat.name] = mat
                data.bpy_materials[id(mat)] = bpy_mat
                data.texture_nodes[id(mat)] = {p: n.name for p, n in nodes.items()}
                by_shader.setdefault(shader, []).append(mat)
                props = properties.setdefault(shader, {})
                for prop in slots:
                    props.setdefault(prop, None)
            slot_materials.append(mat)

        surface = surface_from_object(obj, slot_materials)
        if surface is not None:
            data.surfaces.append(surface)
            data.bpy_objects[surface.name] = obj

    for shader, mats in by_shader.items():
        descriptor = ShaderDescriptor.from_names(shader, properties[shader])
        data.batches[descriptor] = mats
    return data


def create_atlas_image(atlas: Atlas) -> Any:
    """New bpy image holding the atlas pixels, with its import settings applied."""
    w, h = atlas.width, atlas.height
    bpy_image = bpy.data.images.new(atlas.name, width=w, height=h, alpha=True)
    assert atlas.image.pixels is not None
    bpy_image.pixels.foreach_set(atlas.image.pixels.astype(np.float32).ravel() / 255.0)

    settings = atlas.import_settings
    if settings is not None:
        if max(w, h) > settings.max_size:
            scale = settings.max_size / max(w, h)
            bpy_image.scale(max(1, int(w * scale)), max(1, int(h * scale)))
        bpy_image.colorspace_settings.name = "sRGB" if settings.srgb else "Non-Color"
        bpy_image[QUALITY_PROPERTY] = settings.quality
    bpy_image.pack()
    return bpy_image


def _ensure_mapping(node_tree: Any, tex_node: Any) -> Any:
    """Mapping node feeding ``tex_node``, created (with UV input) if missing."""
    mapping = _mapping_node(tex_node)
    if mapping is not None:
        return mapping
    coords = node_tree.nodes.new("ShaderNodeTexCoord")
    mapping = node_tree.nodes.new("ShaderNodeMapping")
    coords.location = (tex_node.location[0] - 500, tex_node.location[1])
    mapping.location = (tex_node.location[0] - 250, tex_node.location[1])
    node_tree.links.new(coords.outputs["UV"], mapping.inputs["Vector"])
    node_tree.links.new(mapping.outputs["Vector"], tex_node.inputs["Vector"])
    return mapping


def _rewire(bpy_mat: Any, node_names: dict[str, str], material: Material, images: dict[int, Any]) -> None:
    nodes = bpy_mat.node_tree.nodes
    for prop, slot in material.slots.items():
        name = node_names.get(prop)
        if name is None or slot.image is None or id(slot.image) not in images:
            continue
        tex_node = nodes.get(name)
        if tex_node is None:
            continue
        tex_node.image = images[id(slot.image)]
        if slot.scale == (1.0, 1.0) and slot.offset == (0.0, 0.0):
            mapping = _mapping_node(tex_node)
        else:
            mapping = _ensure_mapping(bpy_mat.node_tree, tex_node)
        if mapping is not None:
            mapping.inputs["Scale"].default_value[0] = slot.scale[0]
            mapping.inputs["Scale"].default_value[1] = slot.scale[1]
            mapping.inputs["Location"].default_value[0] = slot.offset[0]
            mapping.inputs["Location"].default_value[1] = slot.offset[1]


def _write_uvs(obj: Any, instruction: RemapInstruction) -> None:
    """Give the object its own mesh copy and write the baked UVs into it."""
    obj.data = obj.data.copy()
    uv_layer = obj.data.uv_layers.active
    uv_layer.data.foreach_set("uv", instruction.surface.uvs.astype(np.float32).ravel())


def apply_outcome(outcome: AtlasOutcome, scene: SceneData) -> dict[str, int]:
    """
    Substitute the outcome onto the live scene.

    Returns counts of created images, materials, swapped slots and meshes
    whose UVs were rewritten.
    """
    stats = {"images": 0, "materials": 0, "slots": 0, "meshes": 0}

    images: dict[int, Any] = {}
    for atlas in outcome.atlases:
        images[id(atlas.image)] = create_atlas_image(atlas)
        stats["images"] += 1
        log_detail(f"{atlas.name}: {atlas.width}x{atlas.height}")

    # One bpy material per produced material (shared by driver-linked subsets)
    replacements: dict[int, Any] = {}
    swaps: dict[str, Any] = {}
    for copy in outcome.material_copies:
        src = scene.bpy_materials.get(id(copy.original))
        if src is None:
            log_warn(f"No Blender material for '{copy.original.name}'")
            continue
        new_mat = replacements.get(id(copy.material))
        if new_mat is None:
            new_mat = src.copy()
            new_mat.name = copy.material.name
            _rewire(new_mat, scene.texture_nodes[id(copy.original)], copy.material, images)
            replacements[id(copy.material)] = new_mat
            stats["materials"] += 1
        swaps[src.name] = new_mat

    linked = {
        id(replacements[id(i.material)])
        for i in outcome.remap_instructions
        if i.material is not None and id(i.material) in replacements
    }
    for instruction in outcome.remap_instructions:
        obj = scene.bpy_objects.get(instruction.surface.name)
        if obj is None or not instruction.applied:
            continue
        _write_uvs(obj, instruction)
        stats["meshes"] += 1
        new_mat = replacements.get(id(instruction.material))
        if new_mat is None:
            continue
        for slot in instruction.slots:
            obj.material_slots[slot].material = new_mat
            stats["slots"] += 1

    # Independent copies replace their original everywhere
    for surface in scene.surfaces:
        obj = scene.bpy_objects.get(surface.name)
        if obj is None:
            continue
        for mat_slot in obj.material_slots:
            mat = mat_slot.material
            if mat is None or mat.name not in swaps:
                continue
            new_mat = swaps[mat.name]
            if id(new_mat) in linked:
                continue
            mat_slot.material = new_mat
            stats["slots"] += 1
    return stats
