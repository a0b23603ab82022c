"""Codec interface and shared data structures.

The search never touches pixels. Everything it needs from an image goes through
the narrow capability set defined here, so backends (Pillow, ImageMagick, test
stubs) are interchangeable.
"""

from __future__ import annotations

import abc
import enum
from pathlib import Path


class CodecError(RuntimeError):
    """Decode, encode or compare failure. Always fatal for a run."""


class ColorMode(enum.Enum):
    GRAYSCALE = "grayscale"
    COLOR = "color"
    OTHER = "other"


class ImageHandle(abc.ABC):
    """An opaque loaded image.

    Setters (quality, sampling factor, strip) only affect the next write();
    the decoded pixels do not change until the encoding is read back.
    """

    @property
    @abc.abstractmethod
    def quality(self) -> int:
        """Encoding quality as reported (or estimated) by the codec."""

    @property
    @abc.abstractmethod
    def unique_colors(self) -> int:
        ...

    @property
    @abc.abstractmethod
    def width(self) -> int:
        ...

    @property
    @abc.abstractmethod
    def height(self) -> int:
        ...

    @property
    @abc.abstractmethod
    def color_mode(self) -> ColorMode:
        ...

    @property
    @abc.abstractmethod
    def type_name(self) -> str:
        """Human-readable image type, e.g. "TrueColor" or "Grayscale"."""

    @abc.abstractmethod
    def set_quality(self, quality: int) -> None:
        ...

    @abc.abstractmethod
    def set_sampling_factor(self, factor: str) -> None:
        """Chroma sampling factor in ImageMagick notation ("2x2", "2x1", "1x1")."""

    @abc.abstractmethod
    def strip(self) -> None:
        """Drop embedded profiles, comments and other metadata."""

    @abc.abstractmethod
    def write(self, path: Path) -> None:
        ...

    @abc.abstractmethod
    def compare(self, other: "ImageHandle") -> float:
        """Normalized root-mean-square pixel error against other, in 0..1."""

    @abc.abstractmethod
    def clone(self) -> "ImageHandle":
        ...


class Codec(abc.ABC):
    """Abstract base class for codec backends."""

    name: str

    @abc.abstractmethod
    def is_available(self) -> bool:
        """Return True if the backend's library or executables are present."""

    @abc.abstractmethod
    def load(self, path: Path) -> ImageHandle:
        ...

    def reencode(self, image: ImageHandle, quality: int, path: Path) -> ImageHandle:
        """Encode a copy of image at quality into path and read it back.

        The round trip through the real compressor is what makes the quality
        change visible to later measurements; image itself is left untouched.
        """

        tmp = image.clone()
        tmp.set_quality(quality)
        tmp.write(path)
        return self.load(path)

    def close(self) -> None:
        """Release temp resources held by handles of this codec."""
