"""Thresholds and output settings.

Defaults are compiled in. The search reads them from an immutable AppConfig
passed in at construction; nothing here is mutated at runtime.

Threshold defaults:
- cmp_threshold: do not let the pixel error statistic (normalized RMSE x 100)
  exceed this. It is the best single indicator of overall change, though it
  treats every region of the image as equally important.
- color_density_ratio: never change unique-color density by more than this
  fraction.
- min_unique_colors: full-color photographs carry tens of thousands of colors
  and hide a few thousand changed ones well; gradients, text and flat
  graphics with fewer colors band visibly, so they are left alone.
- quality_max: beyond ~95 JPEG files grow quickly for almost no visible gain.
- quality_min: lowest quality considered. 70 is conservative.
- quality_min_secondguess: below this the image is assumed to be hand-tuned.
- max_iterations: bounds the search window to max_iterations ** 2 levels.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from .utils.quality import clamp


@dataclass(frozen=True)
class Thresholds:
    cmp_threshold: float = 1.00
    color_density_ratio: float = 0.11
    min_unique_colors: int = 4096
    quality_max: int = 95
    quality_min: int = 70
    quality_min_secondguess: int = 82
    max_iterations: int = 5

    def validate(self) -> "Thresholds":
        if self.cmp_threshold < 0 or self.color_density_ratio < 0:
            raise ValueError("cmp_threshold and color_density_ratio must be >= 0")
        if not (1 <= self.quality_min <= self.quality_max <= 100):
            raise ValueError("quality bounds must satisfy 1 <= quality_min <= quality_max <= 100")
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        if self.min_unique_colors < 0:
            raise ValueError("min_unique_colors must be >= 0")
        return self


@dataclass(frozen=True)
class OutputSettings:
    """Applied to the winning image right before it is written."""

    # 2x2 is 4:2:0; small color detail is the part of the image vision resolves worst.
    sampling_factor: str = "2x2"
    strip: bool = True


@dataclass(frozen=True)
class AppConfig:
    thresholds: Thresholds = field(default_factory=Thresholds)
    output: OutputSettings = field(default_factory=OutputSettings)


_INT_THRESHOLDS = {"min_unique_colors", "quality_max", "quality_min", "quality_min_secondguess", "max_iterations"}
_THRESHOLD_RANGES: dict[str, tuple[float, float]] = {
    "cmp_threshold": (0.0, 100.0),
    "color_density_ratio": (0.0, 10.0),
    "min_unique_colors": (0, 2**24),
    "quality_max": (1, 100),
    "quality_min": (1, 100),
    "quality_min_secondguess": (1, 101),
    "max_iterations": (1, 10),
}
_SAMPLING_FACTORS = {"1x1", "2x1", "2x2"}


def _read_raw(path: Path) -> dict[str, Any]:
    if path.suffix.lower() in {".yml", ".yaml"}:
        try:
            import yaml  # type: ignore
        except Exception as e:  # pragma: no cover
            raise RuntimeError(
                "YAML config requested but PyYAML is not installed. Install with: pip install pyyaml"
            ) from e
        with path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    else:
        with path.open("r", encoding="utf-8") as f:
            raw = json.load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"config root must be a mapping: {path}")
    return raw


def load_config(path: Path | None) -> AppConfig:
    """Load optional config overrides.

    Supports JSON by default.
    YAML is supported if PyYAML is installed and the file extension is .yml/.yaml.

    Schema (all keys optional):
    {
      "thresholds": {
        "cmp_threshold": 1.0,
        "color_density_ratio": 0.11,
        "min_unique_colors": 4096,
        "quality_max": 95,
        "quality_min": 70,
        "quality_min_secondguess": 82,
        "max_iterations": 5
      },
      "output": {"sampling_factor": "2x2", "strip": true}
    }

    Malformed values are skipped; numbers are clamped to a sane range.
    Raises ValueError if the merged thresholds are inconsistent.
    """

    if path is None:
        return AppConfig()

    path = path.expanduser().resolve()
    if not path.exists() or not path.is_file():
        raise FileNotFoundError(f"config file not found: {path}")

    raw = _read_raw(path)
    base = AppConfig()

    overrides: dict[str, Any] = {}
    t_raw = raw.get("thresholds") if isinstance(raw.get("thresholds"), dict) else {}
    for f in fields(Thresholds):
        if f.name not in t_raw:
            continue
        try:
            value = float(t_raw[f.name])
        except (TypeError, ValueError):
            continue
        lo, hi = _THRESHOLD_RANGES[f.name]
        value = clamp(value, lo, hi)
        overrides[f.name] = int(value) if f.name in _INT_THRESHOLDS else value
    thresholds = replace(base.thresholds, **overrides).validate()

    output = base.output
    o_raw = raw.get("output") if isinstance(raw.get("output"), dict) else {}
    sampling_factor = str(o_raw.get("sampling_factor", output.sampling_factor))
    if sampling_factor not in _SAMPLING_FACTORS:
        sampling_factor = output.sampling_factor
    strip = o_raw.get("strip", output.strip)
    if not isinstance(strip, bool):
        strip = output.strip

    return AppConfig(
        thresholds=thresholds,
        output=OutputSettings(sampling_factor=sampling_factor, strip=strip),
    )
