"""Never produce an output larger than the input."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .codecs.base import ImageHandle
from .utils.files import copy_file, file_size

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class GateResult:
    image: ImageHandle  # the image the output file now represents
    source_size: int
    output_size: int
    fell_back: bool


def apply_result_gate(
    source_path: Path,
    output_path: Path,
    source_image: ImageHandle,
    candidate_image: ImageHandle,
) -> GateResult:
    """Replace output with the source bytes if the re-encode came out larger."""

    source_size = file_size(source_path)
    output_size = file_size(output_path)
    if output_size <= source_size:
        return GateResult(candidate_image, source_size, output_size, fell_back=False)

    log.info(
        "Re-encoded output is larger (%d > %d bytes); keeping the original",
        output_size,
        source_size,
    )
    copy_file(source_path, output_path)
    return GateResult(source_image.clone(), source_size, file_size(output_path), fell_back=True)
