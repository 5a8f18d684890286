"""Plugin file discovery.

A plugin is a single source file; its name is the file's base name. Two
directories are scanned in order (system, then user). Inside one directory
the extension priority list picks between files sharing a name; across
directories the later directory always wins.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Sequence

DEFAULT_PLUGIN_EXTENSIONS: tuple[str, ...] = (".py", ".pyw")


def plugin_name(path: str | Path) -> str:
    return Path(path).stem


def is_plugin_file(path: str | Path, extensions: Sequence[str] = DEFAULT_PLUGIN_EXTENSIONS) -> bool:
    return Path(path).suffix in extensions


def scan_dir(directory: Path, extensions: Sequence[str] = DEFAULT_PLUGIN_EXTENSIONS) -> dict[str, Path]:
    """Best file per plugin name inside one directory."""
    best: dict[str, tuple[int, Path]] = {}
    try:
        entries = sorted(os.listdir(directory))
    except OSError:
        return {}
    for entry in entries:
        candidate = Path(directory) / entry
        ext = candidate.suffix
        if ext not in extensions or not candidate.is_file():
            continue
        rank = list(extensions).index(ext)
        name = candidate.stem
        current = best.get(name)
        if current is None or current[0] > rank:
            best[name] = (rank, candidate.absolute())
    return {name: path for name, (_rank, path) in best.items()}


def plugin_map(dirs: Iterable[Path], extensions: Sequence[str] = DEFAULT_PLUGIN_EXTENSIONS) -> dict[str, Path]:
    """Map plugin name to its active file; later directories override earlier ones."""
    active: dict[str, Path] = {}
    for directory in dirs:
        active.update(scan_dir(Path(directory), extensions))
    return active
