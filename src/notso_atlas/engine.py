"""
Atlas engine entry point.

``process()`` runs one shader group end to end: filter the batch, group
properties by image signature, pack (bisecting subsets that don't fit),
replicate the layout across properties, post-process, score complexity,
pick compression tiers and remap materials or surfaces onto the result.
"""

from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any

from notso_atlas.analyzers.complexity import analyze_complexity
from notso_atlas.analyzers.properties import (
    build_property_groups,
    count_texture_combinations,
)
from notso_atlas.analyzers.tiers import build_import_settings, select_tier
from notso_atlas.config import AtlasConfig, Workflow
from notso_atlas.errors import ConfigurationError
from notso_atlas.models import (
    Atlas,
    AtlasOutcome,
    Image,
    Material,
    MaterialCopy,
    Rect,
    RenderSurface,
    ShaderDescriptor,
    SkippedMaterial,
    TextureSlot,
)
from notso_atlas.packers.bin_packer import PackResult, pack_images
from notso_atlas.packers.layout import (
    build_from_layout,
    linked_size,
    prepare_property_images,
    reference_sizes,
)
from notso_atlas.packers.splitter import SubsetResult, pack_subset
from notso_atlas.processors.images import ImageCache
from notso_atlas.processors.postprocess import (
    fragmentation_target,
    optimal_padding,
    pad_uv_seams,
    renormalize_normals,
)
from notso_atlas.processors.remap import (
    apply_remaps,
    chain_scale_offset,
    plan_surface_remaps,
)
from notso_atlas.utils import is_name_allowed, matches_any, sanitize_name
from notso_atlas.utils.constants import FRAGMENTATION_MAX_ATTEMPTS
from notso_atlas.utils.logging import Diagnostics

COMPONENT = "engine"

NO_ALLOWED_PROPERTIES = "no allowed properties"


def _resolve_config(config: AtlasConfig | Mapping[str, Any] | None) -> AtlasConfig:
    if config is None:
        return AtlasConfig()
    if isinstance(config, AtlasConfig):
        return config
    if isinstance(config, Mapping):
        return AtlasConfig.from_mapping(config)
    raise ConfigurationError(f"Expected AtlasConfig, got {type(config).__name__}")


def _unique(materials: Iterable[Material]) -> list[Material]:
    seen: set[int] = set()
    result = []
    for mat in materials:
        if id(mat) not in seen:
            seen.add(id(mat))
            result.append(mat)
    return result


def _chunks(items: list[Material], size: int) -> list[list[Material]]:
    if size <= 0:
        return [items]
    return [items[i : i + size] for i in range(0, len(items), size)]


def _non_2d_property(material: Material, properties: list[str]) -> str | None:
    for prop in properties:
        img = material.image_for(prop)
        if img is not None and not img.is_2d:
            return prop
    return None


def atlas_name(
    config: AtlasConfig,
    shader: str,
    property_name: str,
    tier_name: str | None,
    index: int,
) -> str:
    """Compose an atlas name from the configured naming parts."""
    parts = [config.atlas_name_prefix]
    if config.include_shader_in_name:
        parts.append(sanitize_name(shader))
    if config.include_property_in_name:
        parts.append(sanitize_name(property_name))
    if config.include_tier_in_name and tier_name:
        parts.append(sanitize_name(tier_name))
    parts.append(str(index))
    return "_".join(p for p in parts if p)


def atlas_padding(config: AtlasConfig) -> int:
    """Configured padding, raised to the mip-safe floor when enabled."""
    if config.mip_aware_padding:
        return optimal_padding(config.max_atlas_size, config.padding)
    return config.padding


def pack_compact(
    images: list[Image],
    config: AtlasConfig,
    padding: int,
    diagnostics: Diagnostics | None = None,
) -> PackResult | None:
    """
    Pack at the maximum atlas size, then repack smaller while underused.

    Repacking never downscales the images and stops after a fixed number
    of attempts; the last successful pack is kept.
    """
    result = pack_images(images, config.max_atlas_size, padding)
    if result is None or not config.optimize_fragmentation:
        return result

    for _ in range(FRAGMENTATION_MAX_ATTEMPTS):
        target = fragmentation_target(
            result.rects,
            result.width,
            result.height,
            [img.size for img in result.placed],
            config.target_utilization,
        )
        if target is None:
            break
        smaller = pack_images(result.placed, target, padding, allow_downscale=False)
        if smaller is None:
            break
        if diagnostics is not None:
            diagnostics.debug(
                COMPONENT,
                f"Repacked {result.width}x{result.height} -> "
                f"{smaller.width}x{smaller.height}",
            )
        result = smaller
    return result


class _ShaderRun:
    """Per-call state for atlasing one shader group."""

    def __init__(
        self,
        descriptor: ShaderDescriptor,
        properties: list[str],
        config: AtlasConfig,
        diagnostics: Diagnostics,
    ) -> None:
        self.descriptor = descriptor
        self.properties = properties
        self.roles = {p: descriptor.role_of(p) for p in properties}
        self.config = config
        self.diagnostics = diagnostics
        self.cache = ImageCache()
        self.linked = config.workflow is Workflow.DRIVER_LINKED
        self.padding = atlas_padding(config)

    def pack_compact(self, images: list[Image]) -> PackResult | None:
        return pack_compact(images, self.config, self.padding, self.diagnostics)

    def attempt(self, materials: list[Material]) -> SubsetResult | None:
        """Build every representative property's atlas for one subset."""
        config = self.config
        groups, representatives = build_property_groups(
            self.properties, materials, self.roles
        )
        if not representatives:
            return None

        if len(groups) < len(self.properties):
            self.diagnostics.debug(
                COMPONENT,
                f"Deduped properties: {len(self.properties)} props -> "
                f"{len(groups)} unique texture groups",
            )

        shared_sizes = None
        if not self.linked:
            shared_sizes = reference_sizes(
                materials, self.properties, config.minimum_texture_size
            )

        sources = {}
        for rep in representatives:
            if shared_sizes is None:
                size = linked_size(materials, rep, config.minimum_texture_size)
                sizes = [size] * len(materials)
            else:
                sizes = shared_sizes
            sources[rep] = prepare_property_images(
                rep,
                self.roles[rep],
                materials,
                sizes,
                self.cache,
                config.preserve_normal_maps,
            )

        driver = representatives[0]
        driver_pack = self.pack_compact(sources[driver])
        if driver_pack is None:
            self.diagnostics.info(
                COMPONENT,
                f"Failed to pack driver '{driver}' for subset ({len(materials)}) "
                f"on '{self.descriptor.name}'",
            )
            return None

        packed: dict[str, tuple] = {driver: (driver_pack.image, driver_pack.rects)}
        for rep in representatives[1:]:
            if self.linked:
                image = build_from_layout(
                    sources[rep], driver_pack.rects, driver_pack.width, driver_pack.height
                )
                packed[rep] = (image, driver_pack.rects)
                continue
            result = self.pack_compact(sources[rep])
            if result is None:
                self.diagnostics.info(
                    COMPONENT,
                    f"Failed to pack '{rep}' for subset ({len(materials)}) "
                    f"on '{self.descriptor.name}'",
                )
                return None
            packed[rep] = (result.image, result.rects)

        atlases = []
        for rep in representatives:
            image, rects = packed[rep]
            role = self.roles[rep]
            if config.pad_uv_seams:
                pad_uv_seams(image, rects, self.padding)
            if config.preserve_normal_maps and role.is_normal:
                image = renormalize_normals(image)
            atlases.append(
                Atlas(
                    name=image.name,
                    image=image,
                    rects=rects,
                    property_name=rep,
                    members=groups[rep].members,
                    role=role,
                    padding=self.padding,
                )
            )
        return SubsetResult(list(materials), atlases, driver_pack.rects)

    def finish_atlases(self, subset: SubsetResult, first_index: int) -> None:
        """Analyse, pick tiers and name each atlas of a packed subset."""
        config = self.config
        for offset, atlas in enumerate(subset.atlases):
            analysis = analyze_complexity(atlas.image, atlas.role, config, self.cache)
            if analysis.assumed:
                self.diagnostics.warn(
                    COMPONENT,
                    f"Atlas for '{atlas.property_name}': {analysis.reason}",
                    property=atlas.property_name,
                )
            tier = select_tier(
                analysis.score, atlas.property_name, config.tiers, self.diagnostics
            )
            atlas.analysis = analysis
            atlas.tier = tier
            atlas.import_settings = build_import_settings(
                atlas.image, analysis, tier, atlas.property_name, atlas.role, config
            )
            atlas.name = atlas_name(
                config,
                self.descriptor.name,
                atlas.property_name.lstrip("_"),
                tier.name,
                first_index + offset,
            )
            atlas.image = replace(atlas.image, name=atlas.name)
            self.diagnostics.debug(
                COMPONENT,
                f"Atlas {atlas.property_name}: {tier.name} "
                f"(score: {analysis.score:.2f}) - {analysis.reason}",
                atlas=atlas.name,
            )

    def material_copies(self, subset: SubsetResult) -> list[MaterialCopy]:
        """Independent workflow: one copy per material with chained transforms."""
        copies = []
        for i, original in enumerate(subset.materials):
            copy = original.copy(f"{original.name}_Atlased")
            for atlas in subset.atlases:
                rect = atlas.rects[i]
                for prop in atlas.members:
                    slot = original.slot(prop)
                    scale, offset = chain_scale_offset(slot.scale, slot.offset, rect)
                    copy = copy.with_slot(prop, TextureSlot(atlas.image, scale, offset))
            copies.append(MaterialCopy(original, copy, subset.driver_rects[i]))
        return copies

    def master_material(self, subset: SubsetResult) -> Material:
        """Driver-linked workflow: one merged material over the shared layout."""
        first = subset.materials[0]
        master = first.copy(f"{first.name}_MASTER_Atlased")
        for atlas in subset.atlases:
            for prop in atlas.members:
                master = master.with_slot(prop, TextureSlot(atlas.image))
        return master


def process(
    shader: ShaderDescriptor | str,
    materials: Iterable[Material],
    exclusions: Iterable[Material] = frozenset(),
    config: AtlasConfig | Mapping[str, Any] | None = None,
    surfaces: Iterable[RenderSurface] = (),
    diagnostics: Diagnostics | None = None,
) -> AtlasOutcome:
    """
    Atlas one shader group.

    Args:
        shader: Descriptor of the shader's texture properties, or just its
            name (properties are then taken from the materials' slots).
        materials: The shader's materials, in order.
        exclusions: Materials known to be animated; never atlased.
        config: Run configuration (or a mapping to build one from).
        surfaces: Render surfaces to remap in the driver-linked workflow.
            Their coordinate buffers are modified in place.
        diagnostics: Stream to append to; a fresh one is created if omitted.

    Returns:
        The atlases, material copies, remap instructions, skipped materials
        and diagnostics for this group.

    Raises:
        ConfigurationError: the configuration is invalid.
    """
    config = _resolve_config(config)
    if diagnostics is None:
        diagnostics = Diagnostics(verbose=config.verbose)

    materials = _unique(materials)
    if isinstance(shader, ShaderDescriptor):
        descriptor = shader
    else:
        descriptor = ShaderDescriptor.from_materials(shader, materials)

    outcome = AtlasOutcome(descriptor.name, diagnostics=diagnostics)

    def skip(mats: Iterable[Material], reason: str) -> None:
        outcome.skipped.extend(SkippedMaterial(m, reason) for m in mats)

    if not is_name_allowed(descriptor.name, config.allowed_shaders, config.excluded_shaders):
        diagnostics.info(COMPONENT, f"Shader '{descriptor.name}' excluded by filter")
        skip(materials, "shader excluded")
        return outcome

    excluded = {id(m) for m in exclusions}
    candidates = []
    for mat in materials:
        if id(mat) in excluded:
            skip([mat], "animated")
        elif matches_any(mat.name, config.excluded_material_patterns):
            diagnostics.debug(COMPONENT, f"Material '{mat.name}' excluded by pattern")
            skip([mat], "excluded by pattern")
        else:
            candidates.append(mat)

    properties = [
        p
        for p in descriptor.property_names
        if is_name_allowed(p, config.allowed_properties, config.excluded_properties)
    ]
    diagnostics.debug(
        COMPONENT,
        f"Allowed texture properties for '{descriptor.name}': [{', '.join(properties)}]",
    )
    if not properties:
        diagnostics.info(
            COMPONENT, f"No allowed texture properties found for shader '{descriptor.name}'"
        )
        skip(candidates, NO_ALLOWED_PROPERTIES)
        return outcome

    atlasable = []
    for mat in candidates:
        bad = _non_2d_property(mat, properties)
        if bad is not None:
            diagnostics.debug(
                COMPONENT, f"Material '{mat.name}' has a non-2D texture on '{bad}'"
            )
            skip([mat], f"non-2D texture on '{bad}'")
        else:
            atlasable.append(mat)

    if len(atlasable) < config.minimum_materials_for_atlas:
        diagnostics.info(
            COMPONENT,
            f"Shader '{descriptor.name}' has only {len(atlasable)} atlasable "
            f"materials - skipping",
        )
        skip(atlasable, "below minimum materials for atlas")
        return outcome

    outcome.texture_combinations = count_texture_combinations(atlasable, properties)

    run = _ShaderRun(descriptor, properties, config, diagnostics)
    surfaces = list(surfaces)

    for chunk in _chunks(atlasable, config.max_materials_per_atlas):
        for subset in pack_subset(chunk, run.attempt, diagnostics, outcome.skipped):
            run.finish_atlases(subset, len(outcome.atlases))
            outcome.atlases.extend(subset.atlases)

            if not run.linked:
                outcome.material_copies.extend(run.material_copies(subset))
                continue

            master = run.master_material(subset)
            rect_by_material: dict[Material, Rect] = {}
            for mat, rect in zip(subset.materials, subset.driver_rects):
                outcome.material_copies.append(MaterialCopy(mat, master, rect))
                rect_by_material[mat] = rect
            instructions = plan_surface_remaps(
                surfaces, rect_by_material, master, diagnostics
            )
            apply_remaps(instructions, config.uv_bounds_mode, diagnostics)
            outcome.remap_instructions.extend(instructions)

    mode = "Driver-linked" if run.linked else "Independent"
    diagnostics.info(
        COMPONENT,
        f"{mode} atlasing complete for '{descriptor.name}' - "
        f"{outcome.unique_atlas_count} unique atlases ({len(properties)} props)",
        cache_hits=run.cache.hits,
        skipped=len(outcome.skipped),
    )
    return outcome


def process_batches(
    batches: Mapping[ShaderDescriptor | str, Iterable[Material]],
    exclusions: Iterable[Material] = frozenset(),
    config: AtlasConfig | Mapping[str, Any] | None = None,
    surfaces: Iterable[RenderSurface] = (),
    diagnostics: Diagnostics | None = None,
) -> AtlasOutcome:
    """Run ``process()`` for every shader group in turn and merge the outcomes."""
    config = _resolve_config(config)
    if diagnostics is None:
        diagnostics = Diagnostics(verbose=config.verbose)
    exclusions = list(exclusions)
    surfaces = list(surfaces)

    merged = AtlasOutcome("*", diagnostics=diagnostics)
    for shader, materials in batches.items():
        outcome = process(shader, materials, exclusions, config, surfaces, diagnostics)
        merged.merge(outcome)
    return merged

