"""Bundler service contract.

A bundler turns one plugin source file into self-contained module text
that the UI-rendering process can evaluate. Bundlers are not assumed to be
thread-safe; callers serialize access.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from taut.kernel.errors import BundleError


class Bundler(Protocol):
    def bundle(self, path: Path) -> str: ...


class SourceBundler:
    """Ships a single-file plugin as-is after checking that it compiles."""

    def bundle(self, path: Path) -> str:
        try:
            source = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise BundleError(f"Failed to read plugin source {path}: {exc}") from exc
        try:
            compile(source, str(path), "exec")
        except SyntaxError as exc:
            raise BundleError(f"Plugin source {path} does not compile: {exc}") from exc
        return source
