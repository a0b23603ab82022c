"""Codec registry and factory.

Codecs register via the @register_codec decorator.
The factory auto-discovers modules within jpeg_minimize.codecs.

A run uses exactly one codec instance: handles created by it may keep temp
files that the codec owns until close().
"""

from __future__ import annotations

import importlib
import pkgutil
from dataclasses import dataclass

from .base import Codec, CodecError


_REGISTRY: dict[str, type[Codec]] = {}


def register_codec(cls: type[Codec]) -> type[Codec]:
    name = getattr(cls, "name", None)
    if not isinstance(name, str) or not name:
        raise ValueError("Codec class must define a non-empty 'name' attribute")
    if name in _REGISTRY:
        raise ValueError(f"Duplicate codec registration: {name}")
    _REGISTRY[name] = cls
    return cls


def _auto_import_plugins() -> None:
    # Import all modules in this package except base/__init__.
    pkg_name = __name__
    for m in pkgutil.iter_modules(__path__):  # type: ignore[name-defined]
        if m.ispkg:
            continue
        if m.name in {"base", "__init__"}:
            continue
        importlib.import_module(f"{pkg_name}.{m.name}")


@dataclass(frozen=True)
class AvailableCodec:
    name: str
    cls: type[Codec]
    priority: int


class CodecFactory:
    """Selection of available codec backends."""

    def __init__(self) -> None:
        _auto_import_plugins()
        self._available: list[AvailableCodec] = []
        self._build_available()

    def _build_available(self) -> None:
        available: list[AvailableCodec] = []

        for name, cls in _REGISTRY.items():
            codec = cls()  # instantiate to check availability
            if not codec.is_available():
                continue
            priority = int(getattr(codec, "priority", 100))
            available.append(AvailableCodec(name=name, cls=cls, priority=priority))

        # stable order: lowest priority value first, then by name
        available.sort(key=lambda a: (a.priority, a.name))
        self._available = available

    @property
    def available_names(self) -> list[str]:
        return [a.name for a in self._available]

    def require_any(self) -> None:
        if not self._available:
            raise CodecError("No codecs available. Install Pillow or put ImageMagick on PATH.")

    def create(self, name: str | None = None) -> Codec:
        """Instantiate the named codec, or the preferred available one."""

        self.require_any()
        if name is None:
            return self._available[0].cls()
        for a in self._available:
            if a.name == name:
                return a.cls()
        known = ", ".join(sorted(_REGISTRY)) or "<none>"
        raise CodecError(f"codec not available: {name} (registered: {known})")
