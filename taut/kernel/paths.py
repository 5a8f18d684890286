"""Install-root layout and path resolution helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from platformdirs import PlatformDirs

_ROOT_ENV = "TAUT_ROOT"
_APP_NAME = "Taut"


@dataclass(frozen=True)
class TautPaths:
    root: Path
    plugins_dir: Path
    user_plugins_dir: Path
    config_path: Path
    user_css_path: Path
    preload_path: Path
    client_path: Path
    log_dir: Path

    @classmethod
    def from_root(cls, root: str | Path) -> "TautPaths":
        base = Path(root).expanduser().absolute()
        return cls(
            root=base,
            plugins_dir=base / "plugins",
            user_plugins_dir=base / "user-plugins",
            config_path=base / "config.jsonc",
            user_css_path=base / "user.css",
            preload_path=base / "core" / "preload.py",
            client_path=base / "core" / "client.py",
            log_dir=base / "logs",
        )

    def plugin_dirs(self) -> tuple[Path, Path]:
        """System directory first, user directory second (later wins)."""
        return (self.plugins_dir, self.user_plugins_dir)


def default_root() -> Path:
    override = os.getenv(_ROOT_ENV)
    if override:
        return Path(override).expanduser().absolute()
    return Path(PlatformDirs(_APP_NAME, appauthor=False).user_data_dir)


def default_paths() -> TautPaths:
    return TautPaths.from_root(default_root())