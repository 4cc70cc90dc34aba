from __future__ import annotations

from pathlib import Path

import pytest

from r2cli.cli_shared import ConfigUnwritable, UsageError
from r2cli.config_paths import CandidatePaths


def _env(tmp_path: Path, **extra: str) -> dict[str, str]:
    env = {"HOME": str(tmp_path / "home")}
    env.update(extra)
    return env


def test_candidates_follow_search_order_on_windows(tmp_path: Path) -> None:
    env = _env(tmp_path, APPDATA=str(tmp_path / "appdata"), XDG_CONFIG_HOME=str(tmp_path / "xdg"))
    paths = CandidatePaths("rclone", "rclone.conf", env=env, platform="win32")

    assert paths.candidates == [
        Path("rclone.conf"),
        tmp_path / "appdata" / "rclone" / "rclone.conf",
        tmp_path / "xdg" / "rclone" / "rclone.conf",
        tmp_path / "home" / ".config" / "rclone" / "rclone.conf",
        tmp_path / "home" / ".rclone.conf",
    ]


def test_appdata_ignored_off_windows(tmp_path: Path) -> None:
    env = _env(tmp_path, APPDATA=str(tmp_path / "appdata"))
    paths = CandidatePaths("rclone", "rclone.conf", env=env, platform="linux")

    assert paths.app_data is None
    assert paths.candidates == [
        Path("rclone.conf"),
        tmp_path / "home" / ".config" / "rclone" / "rclone.conf",
        tmp_path / "home" / ".rclone.conf",
    ]


def test_home_falls_back_to_homedrive_homepath(tmp_path: Path) -> None:
    env = {"HOMEDRIVE": str(tmp_path), "HOMEPATH": "user"}
    paths = CandidatePaths("cloudflare", "r2.toml", env=env, platform="linux")

    assert paths.home_paths[1] == tmp_path / "user" / ".r2.toml"


def test_no_home_means_no_home_candidates() -> None:
    paths = CandidatePaths("cloudflare", "r2.toml", env={}, platform="linux")
    assert paths.candidates == [Path("r2.toml")]


def test_locate_prefers_local_file(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    home_conf = tmp_path / "home" / ".rclone.conf"
    home_conf.parent.mkdir(parents=True)
    home_conf.write_text("[a]\n", encoding="utf-8")
    paths = CandidatePaths("rclone", "rclone.conf", env=_env(tmp_path), platform="linux")

    assert paths.locate() == home_conf

    (tmp_path / "rclone.conf").write_text("[b]\n", encoding="utf-8")
    assert paths.locate() == Path("rclone.conf")


def test_locate_returns_none_and_writes_nothing(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    paths = CandidatePaths("rclone", "rclone.conf", env=_env(tmp_path), platform="linux")

    assert paths.locate() is None
    assert list(tmp_path.iterdir()) == []


def test_ensure_exists_uses_xdg_then_home_config(tmp_path: Path) -> None:
    env = _env(tmp_path, XDG_CONFIG_HOME=str(tmp_path / "xdg"))
    paths = CandidatePaths("cloudflare", "r2.toml", env=env, platform="linux")

    created = paths.ensure_exists()

    assert created == tmp_path / "xdg" / "cloudflare" / "r2.toml"
    assert created.is_file()

    no_xdg = CandidatePaths("cloudflare", "r2.toml", env=_env(tmp_path), platform="linux")
    assert no_xdg.ensure_exists() == tmp_path / "home" / ".config" / "cloudflare" / "r2.toml"


def test_ensure_exists_is_idempotent_and_never_truncates(tmp_path: Path) -> None:
    paths = CandidatePaths("cloudflare", "r2.toml", env=_env(tmp_path), platform="linux")

    first = paths.ensure_exists()
    first.write_text('[work]\naccount = "abc"\naccess_key_id = "k"\n', encoding="utf-8")
    second = paths.ensure_exists()

    assert first == second
    assert second.read_text(encoding="utf-8") == '[work]\naccount = "abc"\naccess_key_id = "k"\n'


def test_ensure_exists_falls_back_to_home_dot_file(tmp_path: Path) -> None:
    home = tmp_path / "home"
    home.mkdir()
    # A regular file where the .config directory should be blocks the first candidate.
    (home / ".config").write_text("", encoding="utf-8")
    paths = CandidatePaths("cloudflare", "r2.toml", env=_env(tmp_path), platform="linux")

    assert paths.ensure_exists() == home / ".r2.toml"


def test_ensure_exists_fails_when_nothing_is_writable(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    env = {"HOME": str(blocker / "nested")}
    paths = CandidatePaths("cloudflare", "r2.toml", env=env, platform="linux")

    with pytest.raises(ConfigUnwritable, match="failed on all possible candidate paths"):
        paths.ensure_exists()


def test_ensure_exists_refuses_foreign_projects(tmp_path: Path) -> None:
    paths = CandidatePaths("rclone", "rclone.conf", env=_env(tmp_path), platform="linux")
    with pytest.raises(UsageError, match="someone else's project"):
        paths.ensure_exists()
