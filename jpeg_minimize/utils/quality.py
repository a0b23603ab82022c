"""JPEG quality helpers.

JPEG files do not store the quality setting they were encoded with, only the
resulting quantization tables. Like ImageMagick's %Q, we recover it by finding
the IJG quality whose scaled Annex K luminance table best matches the file's.
"""

from __future__ import annotations

from typing import Sequence

ANNEX_K_LUMA_TABLE: tuple[tuple[int, ...], ...] = (
    # ITU-T Annex K luma quantization table in natural order.
    (16, 11, 10, 16, 24, 40, 51, 61),
    (12, 12, 14, 19, 26, 58, 60, 55),
    (14, 13, 16, 24, 40, 57, 69, 56),
    (14, 17, 22, 29, 51, 87, 80, 62),
    (18, 22, 37, 56, 68, 109, 103, 77),
    (24, 35, 55, 64, 81, 104, 113, 92),
    (49, 64, 78, 87, 103, 121, 120, 101),
    (72, 92, 95, 98, 112, 100, 103, 99),
)

ANNEX_K_LUMA_FLAT: tuple[int, ...] = tuple(v for row in ANNEX_K_LUMA_TABLE for v in row)


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def ijg_scale_factor(quality: int) -> int:
    """libjpeg's jpeg_quality_scaling()."""

    quality = int(clamp(quality, 1, 100))
    if quality < 50:
        return 5000 // quality
    return 200 - quality * 2


def scaled_table(base: Sequence[int], quality: int) -> list[int]:
    """Scale a base quantization table the way libjpeg does for baseline output."""

    scale = ijg_scale_factor(quality)
    return [int(clamp((v * scale + 50) // 100, 1, 255)) for v in base]


_TABLE_SUMS: dict[int, int] = {q: sum(scaled_table(ANNEX_K_LUMA_FLAT, q)) for q in range(1, 101)}


def estimate_quality(luma_table: Sequence[int]) -> int:
    """Estimate the IJG quality that produced luma_table.

    Comparison is on table sums, so the result does not depend on whether the
    table is given in natural or zigzag order. Ties resolve to the higher
    quality.
    """

    values = [int(v) for v in luma_table]
    if len(values) != 64:
        raise ValueError(f"expected 64 quantization coefficients, got {len(values)}")
    total = sum(values)
    best_q = 100
    best_err: int | None = None
    for q in range(100, 0, -1):
        err = abs(_TABLE_SUMS[q] - total)
        if best_err is None or err < best_err:
            best_q, best_err = q, err
    return best_q
