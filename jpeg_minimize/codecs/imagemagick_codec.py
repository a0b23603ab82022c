"""ImageMagick command line codec backend.

Works with ImageMagick 7 (`magick`) or the ImageMagick 6 tool set
(`identify`, `convert`, `compare`). Every loaded image is copied into a
private temp directory first, so handles stay valid after the file they were
read from is overwritten. Those copies are never modified, which lets clones
share them.
"""

from __future__ import annotations

import logging
import re
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

from ..utils.subprocess import CommandError, run
from . import register_codec
from .base import Codec, CodecError, ColorMode, ImageHandle

log = logging.getLogger(__name__)

IDENTIFY_FORMAT = "%Q %k %w %h %[type]\\n"

_GRAYSCALE_TYPES = {"Grayscale", "GrayscaleAlpha"}
_COLOR_TYPES = {
    "Palette",
    "PaletteAlpha",
    "PaletteBilevelAlpha",
    "TrueColor",
    "TrueColorAlpha",
    "ColorSeparation",
    "ColorSeparationAlpha",
}

_NORMALIZED_RE = re.compile(r"\(\s*([-+]?[0-9]*\.?[0-9]+(?:[eE][-+]?[0-9]+)?)\s*\)")


@dataclass(frozen=True)
class MagickAttributes:
    quality: int
    unique_colors: int
    width: int
    height: int
    type_name: str


def parse_identify(text: str) -> MagickAttributes:
    """Parse the first line of `identify -format IDENTIFY_FORMAT` output."""

    lines = [ln for ln in text.splitlines() if ln.strip()]
    if not lines:
        raise CodecError("identify produced no output")
    parts = lines[0].split()
    if len(parts) < 4:
        raise CodecError(f"unexpected identify output: {lines[0]!r}")
    try:
        quality, colors, width, height = (int(p) for p in parts[:4])
    except ValueError as e:
        raise CodecError(f"unexpected identify output: {lines[0]!r}") from e
    type_name = parts[4] if len(parts) > 4 else "Undefined"
    return MagickAttributes(quality, colors, width, height, type_name)


def parse_compare(text: str) -> float:
    """Extract the normalized error from `compare -metric RMSE` output.

    ImageMagick prints "<absolute> (<normalized>)" on stderr.
    """

    m = _NORMALIZED_RE.search(text)
    if m is None:
        raise CodecError(f"unexpected compare output: {text.strip()!r}")
    return float(m.group(1))


def _resolve_tools() -> dict[str, list[str]] | None:
    magick = shutil.which("magick")
    if magick is not None:
        return {"identify": [magick, "identify"], "convert": [magick], "compare": [magick, "compare"]}
    tools = {name: shutil.which(name) for name in ("identify", "convert", "compare")}
    if all(tools.values()):
        return {name: [exe] for name, exe in tools.items() if exe is not None}
    return None


class MagickImage(ImageHandle):
    def __init__(self, codec: "ImageMagickCodec", path: Path, attrs: MagickAttributes) -> None:
        self._codec = codec
        self._path = path
        self._attrs = attrs
        self._quality = attrs.quality
        self._sampling_factor: str | None = None
        self._strip = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def quality(self) -> int:
        return self._quality

    @property
    def unique_colors(self) -> int:
        return self._attrs.unique_colors

    @property
    def width(self) -> int:
        return self._attrs.width

    @property
    def height(self) -> int:
        return self._attrs.height

    @property
    def color_mode(self) -> ColorMode:
        if self._attrs.type_name in _GRAYSCALE_TYPES:
            return ColorMode.GRAYSCALE
        if self._attrs.type_name in _COLOR_TYPES:
            return ColorMode.COLOR
        return ColorMode.OTHER

    @property
    def type_name(self) -> str:
        return self._attrs.type_name

    def set_quality(self, quality: int) -> None:
        if not 1 <= int(quality) <= 100:
            raise CodecError(f"quality must be in 1..100, got {quality}")
        self._quality = int(quality)

    def set_sampling_factor(self, factor: str) -> None:
        self._sampling_factor = factor

    def strip(self) -> None:
        self._strip = True

    def write(self, path: Path) -> None:
        cmd = self._codec.tool("convert") + [str(self._path), "-quality", str(self._quality)]
        if self._sampling_factor is not None:
            cmd.extend(["-sampling-factor", self._sampling_factor])
        if self._strip:
            cmd.append("-strip")
        cmd.append(str(path))
        self._codec.run_tool(cmd)

    def compare(self, other: ImageHandle) -> float:
        if not isinstance(other, MagickImage):
            raise CodecError("imagemagick images can only be compared with imagemagick images")
        cmd = self._codec.tool("compare") + ["-metric", "RMSE", str(self._path), str(other.path), "null:"]
        # exit code 1 means "images differ"
        res = self._codec.run_tool(cmd, ok_returncodes=(0, 1))
        return parse_compare(res.stderr or res.stdout)

    def clone(self) -> "MagickImage":
        dup = MagickImage(self._codec, self._path, self._attrs)
        dup._quality = self._quality
        dup._sampling_factor = self._sampling_factor
        dup._strip = self._strip
        return dup


@register_codec
class ImageMagickCodec(Codec):
    name = "imagemagick"
    priority = 20

    def __init__(self) -> None:
        self._tools = _resolve_tools()
        self._workdir: Path | None = None
        self._counter = 0

    def is_available(self) -> bool:
        return self._tools is not None

    def tool(self, name: str) -> list[str]:
        if self._tools is None:
            raise CodecError("ImageMagick executables not found on PATH")
        return list(self._tools[name])

    def run_tool(self, cmd: list[str], *, ok_returncodes=(0,)):
        try:
            return run(cmd, ok_returncodes=ok_returncodes)
        except CommandError as e:
            raise CodecError(str(e)) from e

    def _private_copy(self, path: Path) -> Path:
        if self._workdir is None:
            self._workdir = Path(tempfile.mkdtemp(prefix="jpeg-minimize-"))
        self._counter += 1
        copy = self._workdir / f"{self._counter:04d}{Path(path).suffix}"
        try:
            shutil.copyfile(path, copy)
        except OSError as e:
            raise CodecError(f"failed to read {path}: {e}") from e
        return copy

    def load(self, path: Path) -> MagickImage:
        identify = self.tool("identify")
        private = self._private_copy(path)
        res = self.run_tool(identify + ["-format", IDENTIFY_FORMAT, f"{private}[0]"])
        attrs = parse_identify(res.stdout)
        log.debug("Loaded %s: %s", path, attrs)
        return MagickImage(self, private, attrs)

    def close(self) -> None:
        if self._workdir is not None:
            shutil.rmtree(self._workdir, ignore_errors=True)
            self._workdir = None
