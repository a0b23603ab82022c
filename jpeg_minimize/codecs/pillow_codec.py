"""Pillow codec backend.

Pillow does not report JPEG quality, so it is estimated from the luminance
quantization table (see utils.quality). Only JPEG input is accepted: quality
has no meaning for other formats here.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any

from PIL import Image, ImageChops, ImageStat

from ..utils.quality import estimate_quality
from . import register_codec
from .base import Codec, CodecError, ColorMode, ImageHandle

log = logging.getLogger(__name__)

SAMPLING_FACTORS: dict[str, str] = {
    "1x1": "4:4:4",
    "2x1": "4:2:2",
    "2x2": "4:2:0",
}

_GRAYSCALE_MODES = {"L", "LA", "I", "I;16", "F"}
_COLOR_MODES = {"RGB", "RGBA", "RGBX", "CMYK", "YCbCr", "P", "PA", "LAB", "HSV"}
_TYPE_NAMES = {
    "1": "Bilevel",
    "L": "Grayscale",
    "LA": "GrayscaleAlpha",
    "P": "Palette",
    "RGB": "TrueColor",
    "RGBA": "TrueColorAlpha",
    "CMYK": "ColorSeparation",
}
_METADATA_KEYS = ("exif", "icc_profile", "comment", "xmp")


class PillowImage(ImageHandle):
    def __init__(self, im: Image.Image, quality: int, info: dict[str, Any] | None = None) -> None:
        self._im = im
        self._quality = int(quality)
        self._info: dict[str, Any] = dict(info or {})
        self._subsampling: str | None = None
        self._unique_colors: int | None = None

    @property
    def pil_image(self) -> Image.Image:
        return self._im

    @property
    def quality(self) -> int:
        return self._quality

    @property
    def unique_colors(self) -> int:
        if self._unique_colors is None:
            w, h = self._im.size
            colors = self._im.getcolors(maxcolors=max(1, w * h))
            if colors is None:  # pragma: no cover - maxcolors covers every pixel
                raise CodecError("could not enumerate image colors")
            self._unique_colors = len(colors)
        return self._unique_colors

    @property
    def width(self) -> int:
        return self._im.size[0]

    @property
    def height(self) -> int:
        return self._im.size[1]

    @property
    def color_mode(self) -> ColorMode:
        if self._im.mode in _GRAYSCALE_MODES:
            return ColorMode.GRAYSCALE
        if self._im.mode in _COLOR_MODES:
            return ColorMode.COLOR
        return ColorMode.OTHER

    @property
    def type_name(self) -> str:
        return _TYPE_NAMES.get(self._im.mode, self._im.mode)

    def set_quality(self, quality: int) -> None:
        if not 1 <= int(quality) <= 100:
            raise CodecError(f"quality must be in 1..100, got {quality}")
        self._quality = int(quality)

    def set_sampling_factor(self, factor: str) -> None:
        subsampling = SAMPLING_FACTORS.get(factor)
        if subsampling is None and factor in SAMPLING_FACTORS.values():
            subsampling = factor
        if subsampling is None:
            raise CodecError(f"unsupported sampling factor: {factor}")
        self._subsampling = subsampling

    def strip(self) -> None:
        self._info = {}

    def write(self, path: Path) -> None:
        im = self._im
        if im.mode not in {"RGB", "L", "CMYK"}:
            im = im.convert("RGB")
        else:
            im = im.copy()
        # Pillow carries some im.info entries into the output on its own.
        im.info = {}

        params: dict[str, Any] = {"format": "JPEG", "quality": self._quality, "optimize": True}
        if self._subsampling is not None:
            params["subsampling"] = self._subsampling
        for key in _METADATA_KEYS:
            value = self._info.get(key)
            if value:
                params[key] = value

        try:
            im.save(path, **params)
        except (OSError, ValueError) as e:
            raise CodecError(f"failed to write {path}: {e}") from e

    def compare(self, other: ImageHandle) -> float:
        if not isinstance(other, PillowImage):
            raise CodecError("pillow images can only be compared with pillow images")
        a = self._im
        b = other.pil_image
        if a.size != b.size:
            raise CodecError(f"image sizes differ: {a.size} vs {b.size}")
        if a.mode not in {"RGB", "L", "CMYK"}:
            a = a.convert("RGB")
        if b.mode != a.mode:
            b = b.convert(a.mode)

        try:
            diff = ImageChops.difference(a, b)
        except ValueError as e:
            raise CodecError(f"cannot compare images: {e}") from e
        rms = ImageStat.Stat(diff).rms
        mean_square = sum(r * r for r in rms) / len(rms)
        return math.sqrt(mean_square) / 255.0

    def clone(self) -> "PillowImage":
        dup = PillowImage(self._im.copy(), self._quality, self._info)
        dup._subsampling = self._subsampling
        dup._unique_colors = self._unique_colors
        return dup


@register_codec
class PillowCodec(Codec):
    name = "pillow"
    priority = 10

    def is_available(self) -> bool:
        return True

    def load(self, path: Path) -> PillowImage:
        try:
            with Image.open(path) as im:
                im.load()
                if im.format != "JPEG":
                    raise CodecError(f"not a JPEG image: {path} ({im.format})")
                tables = getattr(im, "quantization", None) or {}
                if 0 not in tables:
                    raise CodecError(f"no quantization tables in {path}")
                quality = estimate_quality(tables[0])
                info = dict(im.info)
                pixels = im.copy()
        except CodecError:
            raise
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            raise CodecError(f"failed to read {path}: {e}") from e

        log.debug("Loaded %s: %dx%d %s q=%d", path, pixels.size[0], pixels.size[1], pixels.mode, quality)
        return PillowImage(pixels, quality, info)
