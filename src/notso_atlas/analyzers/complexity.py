"""Visual complexity scoring of packed atlases."""

import numpy as np

from notso_atlas.config import AtlasConfig
from notso_atlas.errors import ImageNotReadableError
from notso_atlas.models import ComplexityAnalysis, Image, PropertyRole
from notso_atlas.processors.images import ImageCache, ensure_readable
from notso_atlas.utils.constants import ANALYSIS_SAMPLE_TARGET, COMPLEXITY_DEFAULTS

UNREADABLE_REASON = "unreadable texture - assuming medium"


def sample_stride(width: int) -> int:
    return max(1, width // ANALYSIS_SAMPLE_TARGET)


def color_metrics(pixels: np.ndarray, stride: int) -> tuple[int, float, float]:
    """
    Unique colour count, diversity and variance over a strided sample.

    Diversity is unique RGBA colours / 256, clamped to 1. Variance is the
    mean squared RGB distance from the sample mean, normalized by 255^2.
    """
    sampled = np.ascontiguousarray(pixels[::stride, ::stride]).reshape(-1, 4)
    unique = int(np.unique(sampled.view(np.uint32)).size)
    diversity = min(1.0, unique / 256.0)

    rgb = sampled[:, :3].astype(np.float64)
    deviation = rgb - rgb.mean(axis=0)
    variance = float(np.mean(np.sum(deviation**2, axis=1)) / (255.0 * 255.0))
    return unique, diversity, variance


def edge_density(pixels: np.ndarray, stride: int, threshold: float) -> float:
    """
    Fraction of interior sample points with a strong local gradient.

    The gradient compares each point with its right and lower neighbour at
    ``stride`` distance (RGB euclidean distance, channels in [0, 1]).
    """
    height, width = pixels.shape[:2]
    ys = np.arange(stride, height - stride, stride)
    xs = np.arange(stride, width - stride, stride)
    if ys.size == 0 or xs.size == 0:
        return 0.0

    rgb = pixels[..., :3].astype(np.float32) / 255.0
    center = rgb[np.ix_(ys, xs)]
    right = rgb[np.ix_(ys, xs + stride)]
    down = rgb[np.ix_(ys + stride, xs)]

    grad_x = np.linalg.norm(center - right, axis=-1)
    grad_y = np.linalg.norm(center - down, axis=-1)
    gradient = np.sqrt(grad_x**2 + grad_y**2)
    return float(np.mean(gradient > threshold))


def role_modifier(role: PropertyRole, config: AtlasConfig) -> float:
    return float(config.role_modifiers.get(role.value, 0.0))


def analyze_complexity(
    image: Image,
    role: PropertyRole,
    config: AtlasConfig,
    cache: ImageCache | None = None,
) -> ComplexityAnalysis:
    """
    Score an atlas's visual detail in [0, 1].

    An image that cannot be read scores 0.5 with ``assumed=True`` instead
    of failing. Results are memoized in ``cache`` by content and role.
    """
    key = None
    if cache is not None:
        key = (cache.fingerprint(image), role.value)
        cached = cache.analyses.get(key)
        if cached is not None:
            return cached

    try:
        readable = ensure_readable(image)
    except ImageNotReadableError:
        analysis = ComplexityAnalysis(
            score=COMPLEXITY_DEFAULTS["assumed_score"],
            role_modifier=role_modifier(role, config),
            reason=UNREADABLE_REASON,
            assumed=True,
        )
    else:
        assert readable.pixels is not None
        stride = sample_stride(readable.width)
        unique, diversity, variance = color_metrics(readable.pixels, stride)
        edges = edge_density(readable.pixels, stride, config.edge_threshold)
        modifier = role_modifier(role, config)

        base = (
            diversity * config.color_diversity_weight
            + variance * config.color_variance_weight
            + edges * config.edge_density_weight
        )
        score = min(1.0, max(0.0, base + modifier))
        analysis = ComplexityAnalysis(
            score=score,
            unique_colors=unique,
            color_diversity=diversity,
            variance=variance,
            edge_density=edges,
            role_modifier=modifier,
            reason=(
                f"score:{score:.3f}, colors:{unique}, "
                f"edges:{edges:.3f}, var:{variance:.3f}"
            ),
        )

    if cache is not None and key is not None:
        cache.analyses[key] = analysis
    return analysis
