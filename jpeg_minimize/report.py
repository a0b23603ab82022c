"""Human-readable before/after summary lines."""

from __future__ import annotations

from dataclasses import dataclass

from .codecs.base import ImageHandle
from .config import Thresholds
from .search import SearchState, SearchStep


@dataclass(frozen=True)
class ImageStats:
    quality: int
    colors: int
    size: int  # bytes
    type_name: str

    @classmethod
    def of(cls, image: ImageHandle, size: int) -> "ImageStats":
        return cls(quality=image.quality, colors=image.unique_colors, size=size, type_name=image.type_name)


def format_before(stats: ImageStats) -> str:
    return "Before quality:%u colors:%u size:%5.1fKB type:%s " % (
        stats.quality,
        stats.colors,
        stats.size / 1024.0,
        stats.type_name,
    )


def format_step(step: SearchStep) -> str:
    return "%.2f/%.2f@%u " % (step.sample.pixel_error, step.sample.density_ratio, step.quality)


def format_skip(state: SearchState, thresholds: Thresholds) -> str:
    if state == SearchState.SKIP_LOW_COLOR:
        return " Color count is too low, skipping..."
    if state == SearchState.SKIP_ALREADY_TUNED:
        return " Quality < %u, won't second-guess..." % thresholds.quality_min_secondguess
    return ""


def saved(before: ImageStats, after: ImageStats) -> tuple[int, float]:
    """Bytes saved and percent saved (0 for an empty source)."""

    delta = before.size - after.size
    pct = delta * 100.0 / before.size if before.size else 0.0
    return delta, pct


def format_after(before: ImageStats, after: ImageStats) -> str:
    delta, pct = saved(before, after)
    return "After  quality:%u colors:%u size:%5.1fKB saved:(%.1fKB %.1f%%)" % (
        after.quality,
        after.colors,
        after.size / 1024.0,
        delta / 1024.0,
        pct,
    )
