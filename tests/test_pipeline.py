from __future__ import annotations

import io
from pathlib import Path

import pytest

from conftest import FakeCodec, FakeImage, make_flat_jpeg, make_noise_jpeg, write_fake
from jpeg_minimize.codecs.base import ColorMode
from jpeg_minimize.codecs.pillow_codec import PillowCodec
from jpeg_minimize.config import AppConfig
from jpeg_minimize.pipeline import RunArgs, run_optimize
from jpeg_minimize.search import SearchState


class BloatingCodec(FakeCodec):
    """Everything it loads re-encodes much larger than the original file."""

    def load(self, path: Path) -> FakeImage:
        img = super().load(path)
        img.payload *= 10
        return img


def _run(src, dst, codec, config=None):
    out = io.StringIO()
    report = run_optimize(RunArgs(src=src, dst=dst), config or AppConfig(), codec=codec, out=out)
    return report, out.getvalue()


def test_end_to_end_scenario(fake_codec, tmp_path):
    src = write_fake(tmp_path / "src.jpg", FakeImage(quality=90, colors=50000, width=100, height=100, payload=227556))
    dst = tmp_path / "out" / "dst.jpg"
    src_size = src.stat().st_size

    report, text = _run(src, dst, fake_codec)

    assert report.state == SearchState.CONVERGED
    assert report.encodes <= 5
    assert 70 <= report.after.quality <= 90
    assert dst.stat().st_size <= src_size
    assert not report.fell_back
    assert report.bytes_saved == src_size - dst.stat().st_size
    assert fake_codec.closed

    lines = text.splitlines()
    assert lines[0].startswith("Before quality:90 colors:50000 size:200.0KB type:TrueColor")
    assert lines[0].count("@") == report.encodes
    assert lines[1].startswith("After  quality:%d " % report.after.quality)


def test_final_image_gets_output_settings(tmp_path):
    written = []

    class RecordingImage(FakeImage):
        def write(self, path):
            written.append((self.quality, self.sampling_factor, self.stripped))
            super().write(path)

    class RecordingCodec(FakeCodec):
        def load(self, path):
            img = super().load(path)
            rec = RecordingImage(img.quality, img.unique_colors, img.width, img.height, img.color_mode, img.payload)
            return rec

    src = write_fake(tmp_path / "src.jpg", FakeImage(quality=90))
    report, _ = _run(src, tmp_path / "dst.jpg", RecordingCodec())

    assert written[-1] == (report.after.quality, "2x2", True)
    assert all(sf is None and not stripped for _, sf, stripped in written[:-1])


def test_skipped_image_is_reported_unchanged(fake_codec, tmp_path):
    src = write_fake(tmp_path / "src.jpg", FakeImage(quality=90, colors=100, mode=ColorMode.COLOR))
    report, text = _run(src, tmp_path / "dst.jpg", fake_codec)

    assert report.state == SearchState.SKIP_LOW_COLOR
    assert report.encodes == 0
    assert fake_codec.reencodes == []
    assert report.after.quality == 90
    assert "Color count is too low" in text


def test_already_tuned_notice(fake_codec, tmp_path):
    src = write_fake(tmp_path / "src.jpg", FakeImage(quality=75))
    report, text = _run(src, tmp_path / "dst.jpg", fake_codec)

    assert report.state == SearchState.SKIP_ALREADY_TUNED
    assert "Quality < 82, won't second-guess..." in text


def test_larger_result_falls_back_to_original(tmp_path):
    src = write_fake(tmp_path / "src.jpg", FakeImage(quality=90, payload=4096))
    dst = tmp_path / "dst.jpg"
    report, _ = _run(src, dst, BloatingCodec())

    assert report.fell_back
    assert dst.read_bytes() == src.read_bytes()
    assert report.after.quality == report.before.quality
    assert report.bytes_saved == 0


def test_missing_source(fake_codec, tmp_path):
    with pytest.raises(FileNotFoundError):
        _run(tmp_path / "nope.jpg", tmp_path / "dst.jpg", fake_codec)
    assert fake_codec.loads == 0


def test_destination_must_differ(fake_codec, tmp_path):
    src = write_fake(tmp_path / "src.jpg", FakeImage())
    with pytest.raises(ValueError):
        _run(src, src, fake_codec)


def test_pillow_end_to_end(tmp_path):
    src = make_noise_jpeg(tmp_path / "photo.jpg", quality=95, size=(128, 128))
    dst = tmp_path / "photo.min.jpg"
    report, text = _run(src, dst, PillowCodec())

    assert report.before.quality == 95
    assert report.state != SearchState.SKIP_ALREADY_TUNED
    assert dst.stat().st_size <= src.stat().st_size
    assert report.after.quality <= 95
    assert text.startswith("Before quality:95 ")


def test_pillow_flat_image_is_skipped(tmp_path):
    src = make_flat_jpeg(tmp_path / "flat.jpg", quality=95)
    report, _ = _run(src, tmp_path / "flat.min.jpg", PillowCodec())

    assert report.state == SearchState.SKIP_LOW_COLOR
    assert report.encodes == 0
    assert (tmp_path / "flat.min.jpg").stat().st_size <= src.stat().st_size
