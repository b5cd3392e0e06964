"""Property signature grouping and texture-combination statistics."""

from notso_atlas.models import Material, PropertyGroup, PropertyRole
from notso_atlas.utils.constants import ABSENT_NORMAL, ABSENT_OTHER


def property_signature(
    prop: str, materials: list[Material], role: PropertyRole
) -> tuple[str, ...]:
    """Per-material image identities for ``prop``, with role-specific sentinels."""
    absent = ABSENT_NORMAL if role.is_normal else ABSENT_OTHER
    key = []
    for mat in materials:
        img = mat.image_for(prop)
        key.append(img.identity if img is not None else absent)
    return tuple(key)


def build_property_groups(
    properties: list[str],
    materials: list[Material],
    roles: dict[str, PropertyRole],
) -> tuple[dict[str, PropertyGroup], list[str]]:
    """
    Group properties whose per-material image assignments are identical.

    Each distinct signature becomes one group; its representative is the
    first property (in declaration order) with that signature. Only image
    identities are compared, never pixels.

    Returns:
        (groups keyed by representative, representatives in declaration order)
    """
    by_signature: dict[tuple[str, ...], list[str]] = {}
    for prop in properties:
        role = roles.get(prop, PropertyRole.OTHER)
        sig = property_signature(prop, materials, role)
        by_signature.setdefault(sig, []).append(prop)

    groups: dict[str, PropertyGroup] = {}
    for sig, members in by_signature.items():
        groups[members[0]] = PropertyGroup(members[0], tuple(members), sig)

    representatives = [p for p in properties if p in groups]
    return groups, representatives


def count_texture_combinations(materials: list[Material], properties: list[str]) -> int:
    """Number of distinct per-material image sets over ``properties``."""
    combos = set()
    for mat in materials:
        ids = sorted(
            img.identity
            for prop in properties
            if (img := mat.image_for(prop)) is not None
        )
        combos.add(tuple(ids))
    return len(combos)
