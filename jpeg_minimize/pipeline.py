"""Single-image optimization run (load, search, finalize, gate, report)."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from .codecs import CodecFactory
from .codecs.base import Codec
from .config import AppConfig
from .gate import apply_result_gate
from .report import ImageStats, format_after, format_before, format_skip, format_step, saved
from .search import QualitySearch, SearchState, SearchStep, run_adjusted_bounds
from .utils.files import ensure_parent_dir, file_size

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunArgs:
    src: Path
    dst: Path
    codec: str | None = None  # None => preferred available codec


@dataclass(frozen=True)
class RunReport:
    before: ImageStats
    after: ImageStats
    state: SearchState
    encodes: int
    fell_back: bool
    bytes_saved: int
    percent_saved: float


def _emit(out: TextIO, text: str) -> None:
    out.write(text)
    out.flush()


def run_optimize(
    args: RunArgs,
    config: AppConfig,
    *,
    codec: Codec | None = None,
    out: TextIO | None = None,
) -> RunReport:
    """Optimize args.src into args.dst.

    The destination doubles as scratch space for candidate encodings and ends
    up holding either the chosen re-encode or a verbatim copy of the source.
    """

    out = out if out is not None else sys.stdout
    src = args.src.expanduser()
    dst = args.dst.expanduser()

    if not src.is_file():
        raise FileNotFoundError(f"File {src} does not exist")
    if dst.exists() and dst.resolve() == src.resolve():
        raise ValueError(f"destination must differ from source: {dst}")
    ensure_parent_dir(dst)

    if codec is None:
        codec = CodecFactory().create(args.codec)
    log.debug("Using codec: %s", codec.name)

    thresholds = config.thresholds
    try:
        source = codec.load(src)
        before = ImageStats.of(source, file_size(src))
        _emit(out, format_before(before))

        bounds = run_adjusted_bounds(source.quality, thresholds)

        def progress(step: SearchStep) -> None:
            _emit(out, format_step(step))

        result = QualitySearch(codec, thresholds).run(source, bounds, dst, progress=progress)
        _emit(out, format_skip(result.state, thresholds) + "\n")

        final = result.image.clone()
        final.set_sampling_factor(config.output.sampling_factor)
        if config.output.strip:
            final.strip()
        final.write(dst)

        gate = apply_result_gate(src, dst, source, final)
        effective = gate.image if gate.fell_back else codec.load(dst)
        after = ImageStats.of(effective, gate.output_size)
        _emit(out, format_after(before, after) + "\n")
    finally:
        codec.close()

    bytes_saved, percent_saved = saved(before, after)
    return RunReport(
        before=before,
        after=after,
        state=result.state,
        encodes=result.encodes,
        fell_back=gate.fell_back,
        bytes_saved=bytes_saved,
        percent_saved=percent_saved,
    )
