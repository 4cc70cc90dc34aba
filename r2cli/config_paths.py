from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Mapping

from .cli_shared import OWN_PROJECT, ConfigUnwritable, UsageError, _warn


def _home_dir(env: Mapping[str, str]) -> str | None:
    home = env.get("HOME") or env.get("USERPROFILE")
    if home:
        return home
    drive = env.get("HOMEDRIVE")
    rest = env.get("HOMEPATH")
    if drive and rest:
        return os.path.join(drive, rest)
    return None


def _touch(path: Path) -> None:
    # Append mode creates the file without truncating existing content.
    with open(path, "a", encoding="utf-8"):
        pass


class CandidatePaths:
    """Ordered locations where a tool keeps its config file.

    The same search order serves our own registry and foreign configs we
    import from (rclone): local file, %APPDATA% (Windows), $XDG_CONFIG_HOME,
    ~/.config/<project>/<name> and finally ~/.<name>.
    """

    def __init__(
        self,
        project: str,
        config_name: str,
        *,
        env: Mapping[str, str] | None = None,
        platform: str | None = None,
    ) -> None:
        env = os.environ if env is None else env
        self.project = project
        self.config_name = config_name
        self.platform = sys.platform if platform is None else platform

        self.local = Path(config_name)
        self.app_data: Path | None = None
        if self.platform == "win32" and env.get("APPDATA"):
            self.app_data = Path(env["APPDATA"]) / project / config_name
        self.xdg: Path | None = None
        if env.get("XDG_CONFIG_HOME"):
            self.xdg = Path(env["XDG_CONFIG_HOME"]) / project / config_name

        home = _home_dir(env)
        self.home_paths: list[Path] = []
        if home is not None:
            self.home_paths = [
                Path(home) / ".config" / project / config_name,
                Path(home) / f".{config_name}",
            ]

    @property
    def candidates(self) -> list[Path]:
        out = [self.local, self.app_data, self.xdg, *self.home_paths]
        return [p for p in out if p is not None]

    def locate(self) -> Path | None:
        for p in self.candidates:
            if p.is_file() and os.access(p, os.R_OK):
                return p
        return None

    def ensure_exists(self) -> Path:
        if self.project != OWN_PROJECT:
            raise UsageError(f"attempt to touch someone else's project: {self.project}")

        first_home = self.home_paths[0] if self.home_paths else None
        if self.platform == "win32":
            attempts = [self.app_data, first_home]
        else:
            attempts = [self.xdg, first_home]

        for p in attempts:
            if p is None:
                continue
            try:
                p.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                _warn(f"trouble creating path {p.parent}: {e}")
                continue
            try:
                _touch(p)
            except OSError as e:
                _warn(f"trouble touching config path {p}: {e}")
                continue
            return p

        if len(self.home_paths) > 1:
            p = self.home_paths[1]
            try:
                _touch(p)
                return p
            except OSError as e:
                _warn(f"trouble touching config path {p}: {e}")

        raise ConfigUnwritable(
            "failed on all possible candidate paths: "
            + ", ".join(str(p) for p in self.candidates)
        )
