"""jpeg_minimize

A CLI tool that finds, for one JPEG, the lowest quality setting that keeps it
visually indistinguishable from the original and re-encodes it at that level.

Primary entrypoints:
- python -m jpeg_minimize.cli
- console script: jpeg-minimize
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
