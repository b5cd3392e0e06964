"GLB/glTF import, atlas and export pipeline."

import os
from pathlib import Path
from typing import Any

from notso_atlas._bpy import bpy
from notso_atlas.blender import apply_outcome, collect_scene_batches
from notso_atlas.config import AtlasConfig
from notso_atlas.engine import process_batches
from notso_atlas.models import AtlasOutcome
from notso_atlas.utils.logging import (
    Diagnostics,
    StepTimer,
    bold,
    bright_cyan,
    bright_green,
    cyan,
    dim,
    filter_blender_output,
    format_bytes,
    format_count,
    format_duration,
    green,
    log_detail,
    log_error,
    log_info,
    log_ok,
    log_warn,
    print_header,
    timed,
    yellow,
)


def import_gltf(filepath: str, quiet: bool = False, step: StepTimer | None = None) -> None:
    """Clear the scene and import a GLB/glTF file.

    Args:
        filepath: Path to GLB/glTF file
        quiet: Suppress verbose Blender output
        step: Optional StepTimer for progress tracking
    """
    ext = os.path.splitext(filepath)[1].lower()
    if ext not in (".glb", ".gltf"):
        raise ValueError(f"Unsupported format: {ext}")

    with timed("Clearing scene", print_on_exit=False):
        bpy.ops.object.select_all(action="SELECT")
        bpy.ops.object.delete()

    # Log level: 0=all, 30=WARNING
    log_level = 30 if quiet else 0

    if step:
        step.step("Importing into Blender...")
        log_detail(dim(os.path.basename(filepath)))
    else:
        log_info(f"Importing {cyan(os.path.basename(filepath))}...")

    if quiet:
        with filter_blender_output():
            with timed("glTF import", print_on_exit=False) as t:
                bpy.ops.import_scene.gltf(filepath=filepath, loglevel=log_level)
    else:
        with timed("glTF import", print_on_exit=False) as t:
            bpy.ops.import_scene.gltf(filepath=filepath, loglevel=log_level)

    msg = f"Imported in {bright_cyan(format_duration(t.elapsed))}"
    if step:
        log_detail(msg)
    else:
        log_ok(msg)


def _do_export(output_path: str, export_format: str, use_webp: bool) -> None:
    """Execute the actual glTF export call."""
    export_params: dict[str, Any] = {
        "filepath": output_path,
        "export_format": export_format,
        "export_image_format": "WEBP" if use_webp else "AUTO",
        "export_yup": True,
        "export_texcoords": True,
        "export_normals": True,
        "export_materials": "EXPORT",
        "export_skins": True,
        "export_animations": True,
        "export_shared_accessors": True,
    }

    # Blender 5.0+ requires export_loglevel for proper logging initialization
    if bpy.app.version >= (5, 0, 0):
        export_params["export_loglevel"] = -1

    bpy.ops.export_scene.gltf(**export_params)  # pyright: ignore[reportCallIssue]


def export_gltf(
    output_path: str, export_format: str = "GLB", use_webp: bool = True, quiet: bool = False
) -> str | None:
    """Single export attempt. Returns the path on success, None on failure."""
    output_path = bpy.path.abspath(output_path)
    try:
        if quiet:
            with filter_blender_output():
                _do_export(output_path, export_format, use_webp)
        else:
            _do_export(output_path, export_format, use_webp)
        return output_path
    except RuntimeError as e:
        log_error(f"Export exception: {e}")
        return None


def _report_outcome(outcome: AtlasOutcome) -> None:
    for atlas in outcome.atlases:
        tier = atlas.tier.name if atlas.tier else "-"
        score = f"{atlas.analysis.score:.2f}" if atlas.analysis else "-"
        log_detail(
            f"{atlas.name}: {cyan(f'{atlas.width}x{atlas.height}')} "
            f"{dim(f'[{tier}, score {score}]')}"
        )
    if outcome.skipped:
        log_detail(
            yellow(f"{format_count(len(outcome.skipped), 'material')} kept original")
        )
        for skipped in outcome.skipped:
            log_detail(dim(f"{skipped.material.name}: {skipped.reason}"), indent=8)


def atlas_and_export(
    input_path: str | None = None,
    output_path: Path | None = None,
    config: AtlasConfig | None = None,
    export_format: str = "GLB",
    use_webp: bool = True,
    quiet: bool = False,
) -> str | None:
    """
    Atlas the scene's materials and export the result.

    Args:
        input_path: GLB/glTF to import first (if None, uses current scene)
        output_path: Where to write the export (default: ``<input>_atlased.glb``)
        config: Atlas configuration
        export_format: 'GLB', 'GLTF_SEPARATE', or 'GLTF_EMBEDDED'
        use_webp: Export textures as WebP
        quiet: Suppress Blender's verbose output (show only warnings/errors)
    """
    config = config or AtlasConfig()
    step = StepTimer(total_steps=5 if input_path else 4)

    print_header("TEXTURE ATLAS PACKER")

    if input_path:
        import_gltf(input_path, quiet=quiet, step=step)

    step.step("Collecting materials...")
    with timed("Collect", print_on_exit=False) as t:
        scene = collect_scene_batches()
    log_detail(
        f"{format_count(scene.material_count, 'material')} across "
        f"{format_count(len(scene.batches), 'shader')}, "
        f"{format_count(len(scene.surfaces), 'surface')} "
        f"{dim(f'({format_duration(t.elapsed)})')}"
    )

    step.step(f"Packing atlases ({config.workflow.value})...")
    diagnostics = Diagnostics(echo=not quiet, verbose=config.verbose)
    with timed("Atlas", print_on_exit=False) as t:
        outcome = process_batches(
            scene.batches, config=config, surfaces=scene.surfaces, diagnostics=diagnostics
        )
    log_detail(
        f"{green(format_count(outcome.unique_atlas_count, 'atlas', 'atlases'))} "
        f"{dim(f'({format_duration(t.elapsed)})')}"
    )
    _report_outcome(outcome)

    step.step("Applying atlases to scene...")
    with timed("Apply", print_on_exit=False) as t:
        stats = apply_outcome(outcome, scene)
    log_detail(
        f"{stats['images']} images, {stats['materials']} materials, "
        f"{stats['slots']} slots, {stats['meshes']} meshes "
        f"{dim(f'({format_duration(t.elapsed)})')}"
    )

    if output_path is None:
        base = os.path.splitext(input_path or bpy.data.filepath or "scene")[0]
        output_path = Path(f"{base}_atlased.glb")

    step.step("Exporting...")
    log_detail(dim(str(output_path)))
    with timed("glTF export", print_on_exit=False) as t:
        result = export_gltf(str(output_path), export_format, use_webp, quiet)
    step.finish()

    if result is None or not os.path.exists(result):
        log_error("Export failed")
        return None

    warnings = diagnostics.summary().get("WARNING", 0)
    if warnings:
        log_warn(f"{format_count(warnings, 'warning')} during atlasing")

    size = os.path.getsize(result)
    print(f"\n{cyan('=' * 60)}")
    print(f"  {bold('OUTPUT')}: {bright_green(os.path.basename(result))}")
    print(f"  {bold('SIZE')}:   {bright_cyan(format_bytes(size))} ({size:,} bytes)")
    print(f"  {bold('TIME')}:   {bright_cyan(format_duration(step.total_elapsed()))}")
    print(f"{cyan('=' * 60)}")
    step.print_summary()
    return result
