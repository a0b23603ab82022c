from __future__ import annotations

import random
from pathlib import Path

import pytest
from PIL import Image

from jpeg_minimize.codecs.base import Codec, CodecError, ColorMode, ImageHandle
from jpeg_minimize.distortion import DistortionSample


class FakeImage(ImageHandle):
    """In-memory handle; writes record the quality into the file."""

    def __init__(
        self,
        quality: int = 90,
        colors: int = 50000,
        width: int = 100,
        height: int = 100,
        mode: ColorMode = ColorMode.COLOR,
        payload: int = 200 * 1024,
    ) -> None:
        self._quality = quality
        self._colors = colors
        self._width = width
        self._height = height
        self._mode = mode
        self.payload = payload
        self.sampling_factor: str | None = None
        self.stripped = False

    @property
    def quality(self) -> int:
        return self._quality

    @property
    def unique_colors(self) -> int:
        return self._colors

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def color_mode(self) -> ColorMode:
        return self._mode

    @property
    def type_name(self) -> str:
        return {ColorMode.GRAYSCALE: "Grayscale", ColorMode.COLOR: "TrueColor"}.get(self._mode, "Bilevel")

    def set_quality(self, quality: int) -> None:
        self._quality = quality

    def set_sampling_factor(self, factor: str) -> None:
        self.sampling_factor = factor

    def strip(self) -> None:
        self.stripped = True

    def write(self, path: Path) -> None:
        # size shrinks with quality, so lower quality => smaller file
        size = max(1, self.payload * self._quality // 100)
        header = f"{self._quality} {self._colors} {self._width} {self._height} {self._mode.value}\n".encode()
        Path(path).write_bytes(header + b"\0" * size)

    def compare(self, other: ImageHandle) -> float:
        return abs(self._quality - other.quality) / 1000.0

    def clone(self) -> "FakeImage":
        dup = type(self)(self._quality, self._colors, self._width, self._height, self._mode, self.payload)
        dup.sampling_factor = self.sampling_factor
        dup.stripped = self.stripped
        return dup


class FakeCodec(Codec):
    name = "fake"

    def __init__(self) -> None:
        self.reencodes: list[int] = []
        self.loads = 0
        self.closed = False

    def is_available(self) -> bool:
        return True

    def load(self, path: Path) -> FakeImage:
        self.loads += 1
        data = Path(path).read_bytes()
        header, _, body = data.partition(b"\n")
        try:
            q, colors, w, h, mode = header.decode().split()
        except ValueError as e:
            raise CodecError(f"not a fake image: {path}") from e
        return FakeImage(int(q), int(colors), int(w), int(h), ColorMode(mode), payload=len(body) * 100 // int(q))

    def reencode(self, image: ImageHandle, quality: int, path: Path) -> ImageHandle:
        self.reencodes.append(quality)
        return super().reencode(image, quality, path)

    def close(self) -> None:
        self.closed = True


class StubEvaluator:
    """Returns the same sample for every candidate."""

    def __init__(self, pixel_error: float = 0.0, density_ratio: float = 0.0) -> None:
        self.sample = DistortionSample(pixel_error=pixel_error, density_ratio=density_ratio)
        self.calls = 0

    def factory(self, source: ImageHandle) -> "StubEvaluator":
        return self

    def evaluate(self, candidate: ImageHandle) -> DistortionSample:
        self.calls += 1
        return self.sample


class ThresholdEvaluator:
    """Accepts candidates at or above a fixed quality."""

    def __init__(self, lowest_ok: int) -> None:
        self.lowest_ok = lowest_ok

    def factory(self, source: ImageHandle) -> "ThresholdEvaluator":
        return self

    def evaluate(self, candidate: ImageHandle) -> DistortionSample:
        if candidate.quality >= self.lowest_ok:
            return DistortionSample(pixel_error=0.5, density_ratio=0.01)
        return DistortionSample(pixel_error=2.0, density_ratio=0.01)


@pytest.fixture
def fake_codec() -> FakeCodec:
    return FakeCodec()


def write_fake(path: Path, image: FakeImage) -> Path:
    image.write(path)
    return path


def make_noise_jpeg(
    path: Path,
    *,
    quality: int = 92,
    size: tuple[int, int] = (96, 96),
    mode: str = "RGB",
    seed: int = 1234,
) -> Path:
    """Photo-like JPEG: smooth gradient plus noise, so it has many colors."""

    rng = random.Random(seed)
    w, h = size
    bands = 3 if mode == "RGB" else 1
    data = bytearray()
    for y in range(h):
        for x in range(w):
            for b in range(bands):
                base = (x * 255 // max(1, w - 1) + y * 128 // max(1, h - 1) + b * 60) % 256
                data.append(max(0, min(255, base + rng.randint(-24, 24))))
    im = Image.frombytes(mode, size, bytes(data))
    im.save(path, format="JPEG", quality=quality)
    return path


def make_flat_jpeg(path: Path, *, quality: int = 92, size: tuple[int, int] = (64, 64)) -> Path:
    Image.new("RGB", size, (200, 120, 80)).save(path, format="JPEG", quality=quality)
    return path
