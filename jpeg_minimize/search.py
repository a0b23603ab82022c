"""Binary search for the lowest quality that stays visually equivalent.

Each step re-encodes the *source* at the midpoint quality, reads it back and
measures it. A candidate that exceeds either distortion threshold raises the
floor; an acceptable one lowers the ceiling, so the window closes on the
smallest acceptable quality.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from .codecs.base import Codec, ColorMode, ImageHandle
from .config import Thresholds
from .distortion import DistortionEvaluator, DistortionSample

log = logging.getLogger(__name__)


class SearchState(enum.Enum):
    SKIP_LOW_COLOR = "skip-low-color"
    SKIP_ALREADY_TUNED = "skip-already-tuned"
    CONVERGED = "converged"


@dataclass(frozen=True)
class SearchBounds:
    qmin: int
    qmax: int

    def __post_init__(self) -> None:
        if self.qmin > self.qmax:
            raise ValueError(f"qmin must be <= qmax, got [{self.qmin}, {self.qmax}]")

    @property
    def width(self) -> int:
        return self.qmax - self.qmin

    @property
    def open(self) -> bool:
        return self.qmax > self.qmin + 2

    def midpoint(self) -> int:
        return (self.qmax + self.qmin) // 2

    def final_quality(self) -> int:
        # Round half up: with a gap of 1 this picks qmax, never the rejected qmin.
        return (self.qmax + self.qmin + 1) // 2


def run_adjusted_bounds(source_quality: int, thresholds: Thresholds) -> SearchBounds:
    """Window for one image: never above its own quality, at most max_iterations**2 wide."""

    qmax = min(int(source_quality), thresholds.quality_max)
    qmin = max(qmax - thresholds.max_iterations**2, thresholds.quality_min)
    return SearchBounds(qmin=min(qmin, qmax), qmax=qmax)


@dataclass(frozen=True)
class SearchStep:
    quality: int
    sample: DistortionSample
    accepted: bool


@dataclass
class SearchResult:
    state: SearchState
    image: ImageHandle
    quality: int
    bounds: SearchBounds
    steps: list[SearchStep] = field(default_factory=list)

    @property
    def encodes(self) -> int:
        return len(self.steps)

    @property
    def skipped(self) -> bool:
        return self.state in {SearchState.SKIP_LOW_COLOR, SearchState.SKIP_ALREADY_TUNED}


class QualitySearch:
    def __init__(
        self,
        codec: Codec,
        thresholds: Thresholds,
        evaluator_factory: Callable[[ImageHandle], DistortionEvaluator] = DistortionEvaluator,
    ) -> None:
        self._codec = codec
        self._thresholds = thresholds
        self._evaluator_factory = evaluator_factory

    def skip_reason(self, source: ImageHandle) -> SearchState | None:
        t = self._thresholds
        if source.unique_colors < t.min_unique_colors and source.color_mode != ColorMode.GRAYSCALE:
            return SearchState.SKIP_LOW_COLOR
        if source.quality < t.quality_min_secondguess:
            return SearchState.SKIP_ALREADY_TUNED
        return None

    def run(
        self,
        source: ImageHandle,
        bounds: SearchBounds,
        scratch_path: Path,
        progress: Callable[[SearchStep], None] | None = None,
    ) -> SearchResult:
        """Search for the lowest acceptable quality within bounds.

        scratch_path receives every candidate encoding. The returned image is
        a clone of source carrying the chosen quality; it has not been written.
        """

        skip = self.skip_reason(source)
        if skip is not None:
            log.info("Skipping search (%s)", skip.value)
            return SearchResult(state=skip, image=source, quality=source.quality, bounds=bounds)

        evaluator = self._evaluator_factory(source)
        steps: list[SearchStep] = []
        log.debug("Searching quality in [%d, %d]", bounds.qmin, bounds.qmax)

        while bounds.open:
            q = bounds.midpoint()
            candidate = self._codec.reencode(source, q, scratch_path)
            sample = evaluator.evaluate(candidate)
            accepted = not sample.exceeds(self._thresholds)
            if accepted:
                bounds = SearchBounds(qmin=bounds.qmin, qmax=q)
            else:
                bounds = SearchBounds(qmin=q, qmax=bounds.qmax)

            step = SearchStep(quality=q, sample=sample, accepted=accepted)
            steps.append(step)
            log.debug(
                "q=%d pixel_error=%.3f density_ratio=%.3f %s -> [%d, %d]",
                q,
                sample.pixel_error,
                sample.density_ratio,
                "accept" if accepted else "reject",
                bounds.qmin,
                bounds.qmax,
            )
            if progress is not None:
                progress(step)

        final_q = bounds.final_quality()
        result_image = source.clone()
        result_image.set_quality(final_q)
        return SearchResult(
            state=SearchState.CONVERGED,
            image=result_image,
            quality=final_q,
            bounds=bounds,
            steps=steps,
        )
