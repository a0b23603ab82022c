"""Perceptual distortion signals between a candidate encoding and its source."""

from __future__ import annotations

from dataclasses import dataclass

from .codecs.base import CodecError, ImageHandle
from .config import Thresholds


@dataclass(frozen=True)
class DistortionSample:
    pixel_error: float  # normalized RMSE x 100
    density_ratio: float  # relative change in unique-color density

    def exceeds(self, thresholds: Thresholds) -> bool:
        return (
            self.pixel_error > thresholds.cmp_threshold
            or self.density_ratio > thresholds.color_density_ratio
        )


def color_density(image: ImageHandle) -> float:
    """Unique colors per pixel."""

    pixels = image.width * image.height
    if pixels <= 0:
        raise CodecError(f"image has no pixels ({image.width}x{image.height})")
    return image.unique_colors / pixels


class DistortionEvaluator:
    """Measures candidates against one fixed source image."""

    def __init__(self, source: ImageHandle) -> None:
        self._source = source
        self.original_density = color_density(source)

    def evaluate(self, candidate: ImageHandle) -> DistortionSample:
        pixel_error = self._source.compare(candidate) * 100
        density_ratio = abs(color_density(candidate) - self.original_density) / self.original_density
        return DistortionSample(pixel_error=pixel_error, density_ratio=density_ratio)
