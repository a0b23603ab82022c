"""Command line interface for jpeg_minimize."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import load_config
from .pipeline import RunArgs, run_optimize

EXIT_USAGE = 1
EXIT_FAILURE = 2


class _UsageParser(argparse.ArgumentParser):
    def error(self, message: str):  # type: ignore[override]
        self.print_usage(sys.stdout)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


def _build_parser() -> argparse.ArgumentParser:
    p = _UsageParser(
        prog="jpeg-minimize",
        description=(
            "Re-encode a JPEG at the lowest quality that stays visually\n"
            "indistinguishable from the original. Never produces a larger file."
        ),
    )

    # Exactly 2 required positionals
    p.add_argument("src", type=Path, help="Source image")
    p.add_argument("dst", type=Path, help="Destination path")

    # Optional flags
    p.add_argument("--codec", default=None, help="Codec backend (pillow, imagemagick; default: first available)")
    p.add_argument("--config", type=Path, default=None, help="Optional JSON/YAML threshold override")
    p.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    return p


def main(argv: list[str] | None = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = _build_parser()
    ns = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if ns.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )

    if not ns.src.expanduser().is_file():
        print(f"File {ns.src} does not exist")
        return EXIT_USAGE

    try:
        config = load_config(ns.config)
        run_optimize(RunArgs(src=ns.src, dst=ns.dst, codec=ns.codec), config)
        return 0
    except Exception as e:
        logging.getLogger(__name__).error(str(e))
        return EXIT_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
