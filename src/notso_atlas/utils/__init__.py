"""Size math, name matching and override parsing helpers."""

import math
import re


def is_power_of_two(n: int) -> bool:
    """Check whether n is a positive power of two."""
    return n > 0 and (n & (n - 1)) == 0


def next_power_of_two(n: int) -> int:
    """Smallest power of two >= n."""
    if n <= 1:
        return 1
    return 1 << (n - 1).bit_length()


def floor_power_of_two(n: int) -> int:
    """Largest power of two <= n."""
    if n <= 1:
        return 1
    return 1 << (n.bit_length() - 1)


def mip_levels(size: int) -> int:
    """Number of mip levels in a full chain for a texture of this size."""
    if size < 1:
        return 0
    return int(math.floor(math.log2(size))) + 1


def split_patterns(patterns: str) -> list[str]:
    """Split a comma-separated pattern string, dropping blanks."""
    if not patterns:
        return []
    return [p.strip() for p in patterns.split(",") if p.strip()]


def matches_wildcard(text: str, pattern: str) -> bool:
    """
    Case-insensitive name match.

    ``*`` matches anything. A pattern containing ``*`` must match the whole
    text; a plain pattern matches as a substring.
    """
    if pattern == "*":
        return True
    if "*" in pattern:
        regex = "^" + re.escape(pattern).replace(r"\*", ".*") + "$"
        return re.match(regex, text, flags=re.IGNORECASE) is not None
    return pattern.lower() in text.lower()


def matches_any(text: str, patterns: str | list[str]) -> bool:
    """True if text matches any of the comma-separated patterns."""
    if isinstance(patterns, str):
        patterns = split_patterns(patterns)
    return any(matches_wildcard(text, p) for p in patterns)


def is_name_allowed(name: str, allowed: str, excluded: str) -> bool:
    """
    Apply an allow/exclude pattern pair to a name.

    Exclusions win. An empty allow list (or one containing ``*``) allows
    everything that is not excluded.
    """
    if matches_any(name, excluded):
        return False
    allow = split_patterns(allowed)
    if not allow or "*" in allow:
        return True
    return matches_any(name, allow)


def parse_overrides(text: str) -> dict[str, int]:
    """
    Parse a ``"name:value,name:value"`` override string.

    Keys are lower-cased for case-insensitive lookup.

    Raises:
        ValueError: on an entry without a colon or with a non-integer value.
    """
    result: dict[str, int] = {}
    for entry in split_patterns(text):
        name, sep, value = entry.partition(":")
        if not sep or not name.strip():
            raise ValueError(f"Malformed override entry: {entry!r}")
        try:
            result[name.strip().lower()] = int(value.strip())
        except ValueError as e:
            raise ValueError(f"Override value for {name.strip()!r} is not an integer") from e
    return result


def sanitize_name(name: str) -> str:
    """Make a name safe for use in generated asset names."""
    sanitized = re.sub(r"[^a-zA-Z0-9_]", "_", name)
    return re.sub(r"_+", "_", sanitized).strip("_")
