"""Recursive bisection of material subsets that do not fit one atlas."""

from collections.abc import Callable
from dataclasses import dataclass, field

from notso_atlas.errors import ImageNotReadableError
from notso_atlas.models import Atlas, Material, Rect, SkippedMaterial
from notso_atlas.utils.logging import Diagnostics

COMPONENT = "splitter"


@dataclass
class SubsetResult:
    """Atlases built for one contiguous subset of a shader's materials."""

    materials: list[Material]
    atlases: list[Atlas]  # one per representative property, driver first
    driver_rects: list[Rect] = field(default_factory=list)


Attempt = Callable[[list[Material]], SubsetResult | None]


def pack_subset(
    materials: list[Material],
    attempt: Attempt,
    diagnostics: Diagnostics,
    skipped: list[SkippedMaterial],
    depth: int = 0,
) -> list[SubsetResult]:
    """
    Pack ``materials`` with ``attempt``, bisecting on failure.

    A failing subset of more than one material is split at ``len // 2`` and
    each half is packed independently; results are concatenated in order.
    A single material that still fails is appended to ``skipped``.
    """
    if not materials:
        return []

    try:
        result = attempt(materials)
        reason = "packing failed"
    except ImageNotReadableError as e:
        result = None
        reason = str(e)

    if result is not None:
        return [result]

    if len(materials) == 1:
        mat = materials[0]
        diagnostics.warn(
            COMPONENT,
            f"Dropping '{mat.name}' from atlasing: {reason}",
            material=mat.name,
        )
        skipped.append(SkippedMaterial(mat, reason))
        return []

    mid = len(materials) // 2
    diagnostics.debug(
        COMPONENT,
        f"Subset of {len(materials)} did not fit, splitting {mid}/{len(materials) - mid}",
        depth=depth,
    )
    return pack_subset(
        materials[:mid], attempt, diagnostics, skipped, depth + 1
    ) + pack_subset(materials[mid:], attempt, diagnostics, skipped, depth + 1)
