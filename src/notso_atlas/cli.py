"""Command-line interface for the texture atlas packer."""

import json
import os
import sys
from enum import Enum
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.table import Table

try:
    __version__ = version("notso-atlas")
except PackageNotFoundError:
    __version__ = "unknown"

from notso_atlas.config import AtlasConfig
from notso_atlas.errors import AtlasError, ConfigurationError
from notso_atlas.utils.constants import DEFAULT_CONFIG

app = typer.Typer(
    name="notso-atlas",
    help="Pack character textures into atlases with adaptive compression",
    add_completion=False,
    rich_markup_mode="rich",
    suggest_commands=True,
    no_args_is_help=True,
)
console = Console()

COMMANDS = ("optimize", "pack", "analyze")


def version_callback(value: bool) -> None:
    if value:
        print(f"notso-atlas {__version__}")
        raise typer.Exit()


class WorkflowChoice(Enum):
    independent = "independent"
    driver_linked = "driver-linked"


class ExportFormat(Enum):
    glb = "glb"
    gltf = "gltf"
    gltf_embedded = "gltf-embedded"


ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="JSON file with atlas settings",
        rich_help_panel="Atlas Options",
    ),
]
MaxSizeOption = Annotated[
    int | None,
    typer.Option(
        "--max-size",
        help=f"Max atlas size, power of two [dim](default {DEFAULT_CONFIG['max_atlas_size']})[/]",
        rich_help_panel="Atlas Options",
    ),
]
PaddingOption = Annotated[
    int | None,
    typer.Option(
        "--padding",
        help=f"Pixels around each packed image [dim](default {DEFAULT_CONFIG['padding']})[/]",
        rich_help_panel="Atlas Options",
    ),
]
WorkflowOption = Annotated[
    WorkflowChoice | None,
    typer.Option(
        "--workflow",
        "-w",
        help="[bold]independent[/]: per-material copies; [bold]driver-linked[/]: one shared layout",
        rich_help_panel="Atlas Options",
    ),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", help="Show debug diagnostics"),
]
VersionOption = Annotated[
    bool | None,
    typer.Option(
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
]


@app.callback()
def root(version: VersionOption = None) -> None:
    """
    Pack character textures into atlases with adaptive compression.
    """


def _fail(message: str) -> typer.Exit:
    console.print(f"[bold red][ERROR][/] {message}")
    return typer.Exit(code=1)


def load_config(
    config_path: Path | None,
    max_size: int | None = None,
    padding: int | None = None,
    workflow: WorkflowChoice | None = None,
    verbose: bool = False,
    **extra: Any,
) -> AtlasConfig:
    """
    Build an AtlasConfig from an optional JSON file plus CLI overrides.

    Raises:
        typer.Exit: unreadable file or invalid settings.
    """
    values: dict[str, Any] = {}
    if config_path is not None:
        try:
            values = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise _fail(f"Cannot read config {config_path}: {e}") from e
        if not isinstance(values, dict):
            raise _fail(f"Config {config_path} must contain a JSON object")

    if max_size is not None:
        values["max_atlas_size"] = max_size
    if padding is not None:
        values["padding"] = padding
    if workflow is not None:
        values["workflow"] = workflow.value
    if verbose:
        values["verbose"] = True
    values.update({k: v for k, v in extra.items() if v is not None})

    try:
        return AtlasConfig.from_mapping(values)
    except ConfigurationError as e:
        raise _fail(f"Invalid configuration: {e}") from e


@app.command()
def optimize(
    input_path: Annotated[
        str,
        typer.Argument(
            help="Input file ([bold green].glb[/] or [bold green].gltf[/])",
            metavar="INPUT",
        ),
    ],
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Output path (default: [italic]input_atlased.\\[glb|gltf][/])",
            rich_help_panel="Core Options",
        ),
    ] = None,
    export_format: Annotated[
        ExportFormat,
        typer.Option("--format", "-f", help="Output format", rich_help_panel="Core Options"),
    ] = ExportFormat.glb,
    use_webp: Annotated[
        bool,
        typer.Option(
            "--webp/--no-webp",
            help="Enable/Disable WebP textures",
            rich_help_panel="Core Options",
        ),
    ] = DEFAULT_CONFIG["use_webp"],
    exclude_materials: Annotated[
        str | None,
        typer.Option(
            "--exclude-materials",
            help="Comma-separated material name patterns to leave alone",
            rich_help_panel="Atlas Options",
        ),
    ] = None,
    config_path: ConfigOption = None,
    max_size: MaxSizeOption = None,
    padding: PaddingOption = None,
    workflow: WorkflowOption = None,
    verbose: VerboseOption = False,
) -> None:
    """
    Import a model, atlas its materials and export it (requires Blender).
    """
    abs_input_path = os.path.abspath(input_path)
    if not os.path.isfile(abs_input_path):
        raise _fail(f"File not found: {abs_input_path}")

    ext = os.path.splitext(abs_input_path)[1].lower()
    if ext not in (".glb", ".gltf"):
        console.print(f"[bold red][ERROR][/] Unsupported format: {ext}")
        console.print("        Supported: .glb, .gltf")
        raise typer.Exit(code=1)

    config = load_config(
        config_path,
        max_size,
        padding,
        workflow,
        verbose,
        excluded_material_patterns=exclude_materials,
    )

    # Lazy import to keep CLI snappy and avoid bpy issues in help
    from notso_atlas.exporters import atlas_and_export

    format_map = {
        "glb": "GLB",
        "gltf": "GLTF_SEPARATE",
        "gltf-embedded": "GLTF_EMBEDDED",
    }
    out_ext = ".gltf" if export_format.value.startswith("gltf") else ".glb"
    if output is None:
        output = Path(f"{os.path.splitext(abs_input_path)[0]}_atlased{out_ext}")

    result = atlas_and_export(
        input_path=abs_input_path,
        output_path=output.absolute(),
        config=config,
        export_format=format_map[export_format.value],
        use_webp=use_webp,
        quiet=not verbose,
    )
    if not result:
        raise typer.Exit(code=1)


@app.command()
def pack(
    images: Annotated[
        list[Path],
        typer.Argument(help="Image files to pack, in order", metavar="IMAGES..."),
    ],
    output: Annotated[
        Path,
        typer.Option("--output", "-o", help="Atlas image to write", rich_help_panel="Core Options"),
    ] = Path("atlas.png"),
    layout_path: Annotated[
        Path | None,
        typer.Option(
            "--layout",
            help="Where to write the rect layout (default: [italic]<output>.json[/])",
            rich_help_panel="Core Options",
        ),
    ] = None,
    config_path: ConfigOption = None,
    max_size: MaxSizeOption = None,
    padding: PaddingOption = None,
    verbose: VerboseOption = False,
) -> None:
    """
    Pack image files into one atlas and write its layout as JSON.
    """
    from notso_atlas.engine import atlas_padding, pack_compact
    from notso_atlas.processors.images import load_image_file, save_image_file
    from notso_atlas.processors.postprocess import pad_uv_seams
    from notso_atlas.utils.logging import Diagnostics

    config = load_config(config_path, max_size, padding, None, verbose)

    try:
        sources = [load_image_file(p) for p in images]
    except AtlasError as e:
        raise _fail(str(e)) from e

    pad = atlas_padding(config)
    diagnostics = Diagnostics(echo=verbose, verbose=verbose)
    result = pack_compact(sources, config, pad, diagnostics)
    if result is None:
        raise _fail(
            f"{len(sources)} images do not fit a {config.max_atlas_size}px atlas"
        )
    if config.pad_uv_seams:
        pad_uv_seams(result.image, result.rects, pad)

    save_image_file(result.image, output)
    layout = {
        "width": result.width,
        "height": result.height,
        "padding": pad,
        "rects": [
            {
                "image": str(path),
                "x": rect.x,
                "y": rect.y,
                "width": rect.width,
                "height": rect.height,
            }
            for path, rect in zip(images, result.rects)
        ],
    }
    layout_path = layout_path or output.with_suffix(".json")
    layout_path.write_text(json.dumps(layout, indent=2), encoding="utf-8")

    console.print(
        f"[bold green]OK[/] {output} [cyan]{result.width}x{result.height}[/] "
        f"({len(sources)} images, padding {pad}) -> {layout_path}"
    )


@app.command()
def analyze(
    images: Annotated[
        list[Path],
        typer.Argument(help="Image files to score", metavar="IMAGES..."),
    ],
    property_name: Annotated[
        str | None,
        typer.Option(
            "--property",
            "-p",
            help="Texture property name used for role and tier filters (default: file name)",
        ),
    ] = None,
    config_path: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """
    Score image complexity and show the compression tier each would get.
    """
    from notso_atlas.analyzers import (
        analyze_complexity,
        build_import_settings,
        select_tier,
    )
    from notso_atlas.models import infer_role
    from notso_atlas.processors.images import load_image_file
    from notso_atlas.utils.logging import Diagnostics

    config = load_config(config_path, verbose=verbose)
    diagnostics = Diagnostics(echo=verbose, verbose=verbose)

    table = Table(title="Atlas complexity")
    table.add_column("Image")
    table.add_column("Size", justify="right")
    table.add_column("Role")
    table.add_column("Colors", justify="right")
    table.add_column("Variance", justify="right")
    table.add_column("Edges", justify="right")
    table.add_column("Score", justify="right", style="bold")
    table.add_column("Tier", style="cyan")
    table.add_column("Max size", justify="right")
    table.add_column("Quality", justify="right")

    for path in images:
        try:
            image = load_image_file(path)
        except AtlasError as e:
            raise _fail(str(e)) from e
        prop = property_name or image.name
        role = infer_role(prop)
        analysis = analyze_complexity(image, role, config)
        tier = select_tier(analysis.score, prop, config.tiers, diagnostics)
        settings = build_import_settings(image, analysis, tier, prop, role, config)
        table.add_row(
            path.name,
            f"{image.width}x{image.height}",
            role.value,
            str(analysis.unique_colors),
            f"{analysis.variance:.3f}",
            f"{analysis.edge_density:.3f}",
            f"{analysis.score:.3f}",
            tier.name,
            str(settings.max_size),
            str(settings.quality),
        )

    console.print(table)


def main() -> None:
    """Entry point - handles both CLI and Blender execution."""
    # Blender passes script arguments after "--"
    args = sys.argv[1:]
    if "--" in sys.argv:
        args = sys.argv[sys.argv.index("--") + 1 :]

    if not args and "blender" in os.path.basename(sys.argv[0]).lower():
        # Running inside Blender with an open file and no CLI args
        from notso_atlas.exporters import atlas_and_export

        atlas_and_export(
            config=AtlasConfig(
                max_atlas_size=DEFAULT_CONFIG["max_atlas_size"],
                padding=DEFAULT_CONFIG["padding"],
                workflow=DEFAULT_CONFIG["workflow"],
                minimum_materials_for_atlas=DEFAULT_CONFIG["minimum_materials_for_atlas"],
                verbose=DEFAULT_CONFIG["verbose"],
            ),
            use_webp=DEFAULT_CONFIG["use_webp"],
        )
        return

    # 'notso-atlas model.glb' is shorthand for 'notso-atlas optimize model.glb'
    if args and args[0] not in COMMANDS and not args[0].startswith("-"):
        args = ["optimize", *args]
    app(args=args, standalone_mode=True)


if __name__ == "__main__":
    main()
