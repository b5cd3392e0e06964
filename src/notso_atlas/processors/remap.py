"""
Surface coordinate remapping onto packed atlas rects.

Independent workflow: each material copy keeps its own images' rects, so
the rect is folded into the slot's scale/offset (``chain_scale_offset``).

Driver-linked workflow: every property shares one layout, so the rect is
baked straight into the surface's coordinates and the slots are pointed
at the merged master material. A surface can only be baked to a single
rect; surfaces whose slots use materials with different rects are left
untouched.
"""

import numpy as np

from notso_atlas.config import UVBoundsMode
from notso_atlas.models import Material, Rect, RemapInstruction, RenderSurface
from notso_atlas.utils.constants import UV_BOUNDS_TOLERANCE
from notso_atlas.utils.logging import Diagnostics

COMPONENT = "remap"

AMBIGUOUS_REASON = "multiple atlas rects across its materials"
OUT_OF_BOUNDS_REASON = "coordinates outside the unit square"


def chain_scale_offset(
    scale: tuple[float, float], offset: tuple[float, float], rect: Rect
) -> tuple[tuple[float, float], tuple[float, float]]:
    """Fold ``rect`` into an existing scale/offset, keeping its tiling."""
    new_scale = (scale[0] * rect.width, scale[1] * rect.height)
    new_offset = (offset[0] * rect.width + rect.x, offset[1] * rect.height + rect.y)
    return new_scale, new_offset


def plan_surface_remaps(
    surfaces: list[RenderSurface],
    rect_by_material: dict[Material, Rect],
    master: Material | None = None,
    diagnostics: Diagnostics | None = None,
) -> list[RemapInstruction]:
    """
    One instruction per surface that uses any material in ``rect_by_material``.

    Instructions for surfaces mapping to more than one distinct rect carry
    ``rect=None`` and a reason, and are never baked.
    """
    instructions = []
    for surface in surfaces:
        slots: list[int] = []
        rects: list[Rect] = []
        for i, mat in enumerate(surface.materials):
            if mat is not None and mat in rect_by_material:
                slots.append(i)
                rects.append(rect_by_material[mat])
        if not slots:
            continue

        if len({r.key() for r in rects}) > 1:
            if diagnostics is not None:
                diagnostics.warn(
                    COMPONENT,
                    f"Skipping coordinate bake for '{surface.name}': {AMBIGUOUS_REASON}",
                    surface=surface.name,
                    slots=len(slots),
                )
            instructions.append(
                RemapInstruction(surface, slots, None, master, reason=AMBIGUOUS_REASON)
            )
            continue

        instructions.append(RemapInstruction(surface, slots, rects[0], master))
    return instructions


def slot_coordinate_indices(surface: RenderSurface, slots: list[int]) -> np.ndarray:
    """Unique coordinate indices used by ``slots``."""
    parts = [np.asarray(surface.slot_indices[s], dtype=np.intp) for s in slots]
    if not parts:
        return np.empty(0, dtype=np.intp)
    return np.unique(np.concatenate(parts))


def validate_uv_bounds(
    surface: RenderSurface,
    mode: UVBoundsMode,
    indices: np.ndarray | None = None,
    diagnostics: Diagnostics | None = None,
) -> bool:
    """
    Check coordinates against the unit square (with a small tolerance).

    ``wrap`` folds out-of-range coordinates back into [0, 1) in place.
    Returns False only in ``skip`` mode for an out-of-range surface.
    """
    if mode is UVBoundsMode.OFF or surface.uvs.size == 0:
        return True

    uvs = surface.uvs if indices is None else surface.uvs[indices]
    if uvs.size == 0:
        return True
    lo = uvs.min(axis=0)
    hi = uvs.max(axis=0)
    if (lo >= -UV_BOUNDS_TOLERANCE).all() and (hi <= 1.0 + UV_BOUNDS_TOLERANCE).all():
        return True

    message = (
        f"'{surface.name}' UVs out of bounds: "
        f"U[{lo[0]:.3f}, {hi[0]:.3f}] V[{lo[1]:.3f}, {hi[1]:.3f}]"
    )
    if mode is UVBoundsMode.WRAP:
        if indices is None:
            surface.uvs[:] = np.mod(surface.uvs, 1.0)
        else:
            surface.uvs[indices] = np.mod(surface.uvs[indices], 1.0)
        if diagnostics is not None:
            diagnostics.info(COMPONENT, f"{message}, wrapped to 0-1", surface=surface.name)
        return True

    if diagnostics is not None:
        diagnostics.warn(COMPONENT, message, surface=surface.name)
    return mode is not UVBoundsMode.SKIP


def bake_instruction(instruction: RemapInstruction) -> None:
    """
    Rewrite the slot coordinates into the rect and swap in the master material.

    Mutates the surface's own buffers; callers hand in surfaces whose
    geometry they have already duplicated. Each coordinate is transformed
    once even when several slots share it.
    """
    rect = instruction.rect
    if rect is None:
        raise ValueError(f"No rect to bake for '{instruction.surface.name}'")

    surface = instruction.surface
    indices = slot_coordinate_indices(surface, instruction.slots)
    origin = np.asarray(rect.origin, dtype=surface.uvs.dtype)
    size = np.asarray(rect.size, dtype=surface.uvs.dtype)
    surface.uvs[indices] = origin + surface.uvs[indices] * size

    if instruction.material is not None:
        for slot in instruction.slots:
            surface.materials[slot] = instruction.material
    instruction.applied = True


def apply_remaps(
    instructions: list[RemapInstruction],
    uv_bounds_mode: UVBoundsMode,
    diagnostics: Diagnostics,
) -> None:
    """Validate and bake every unambiguous instruction."""
    for instruction in instructions:
        if instruction.rect is None:
            continue
        surface = instruction.surface
        indices = slot_coordinate_indices(surface, instruction.slots)
        if not validate_uv_bounds(surface, uv_bounds_mode, indices, diagnostics):
            instruction.reason = OUT_OF_BOUNDS_REASON
            continue
        bake_instruction(instruction)
