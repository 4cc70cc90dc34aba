from __future__ import annotations

import ctypes.util
import platform
import subprocess
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from .cli_shared import VaultEntryNotFound, VaultUnavailable, _info

LIBSECRET_FILE = "/usr/lib/libsecret-1.so"

_APT = ("apt-get", "install", "libsecret-1-0")
_INSTALL_COMMANDS: dict[str, tuple[str, ...]] = {
    "arch": ("pacman", "-S", "libsecret"),
    "debian": _APT,
    "ubuntu": _APT,
    "fedora": ("dnf", "install", "libsecret"),
}


class VaultStatus(str, Enum):
    READY = "ready"
    NEEDS_INSTALL = "needs-install"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class VaultReadiness:
    status: VaultStatus
    command: tuple[str, ...] = ()
    detail: str = ""


def _os_release() -> dict[str, str]:
    try:
        return dict(platform.freedesktop_os_release())
    except OSError:
        return {}


def _libsecret_present() -> bool:
    return bool(ctypes.util.find_library("secret-1")) or Path(LIBSECRET_FILE).exists()


def install_command_for(os_release: Mapping[str, str]) -> tuple[str, ...] | None:
    ids = [str(os_release.get("ID") or "").strip().lower()]
    ids.extend(str(os_release.get("ID_LIKE") or "").lower().split())
    for distro_id in ids:
        cmd = _INSTALL_COMMANDS.get(distro_id)
        if cmd is not None:
            return cmd
    return None


def ensure_available(
    *,
    platform_name: str | None = None,
    os_release: Callable[[], Mapping[str, str]] = _os_release,
    libsecret_present: Callable[[], bool] = _libsecret_present,
) -> VaultReadiness:
    """Probe whether the OS secret store can be used on this host.

    Only Linux needs a probe: keyring talks to the Secret Service through
    libsecret, which is not always installed.
    """
    name = sys.platform if platform_name is None else platform_name
    if not name.startswith("linux"):
        return VaultReadiness(VaultStatus.READY)
    if libsecret_present():
        return VaultReadiness(VaultStatus.READY)
    release = os_release()
    cmd = install_command_for(release)
    if cmd is None:
        distro = str(release.get("PRETTY_NAME") or release.get("ID") or "unknown").strip()
        return VaultReadiness(
            VaultStatus.UNSUPPORTED,
            detail=(
                "libsecret doesn't appear to be installed and "
                f"{distro!r} is not a currently supported Linux distribution"
            ),
        )
    return VaultReadiness(VaultStatus.NEEDS_INSTALL, command=cmd)


_platform_checked = False


def platform_ready(
    *,
    probe: Callable[[], VaultReadiness] = ensure_available,
    runner: Callable[..., Any] = subprocess.run,
) -> None:
    global _platform_checked
    if _platform_checked:
        return
    readiness = probe()
    if readiness.status is VaultStatus.UNSUPPORTED:
        raise VaultUnavailable(f"{readiness.detail}; libsecret required and not available")
    if readiness.status is VaultStatus.NEEDS_INSTALL:
        cmd = ["sudo", *readiness.command]
        _info(f"Running {' '.join(cmd)} to install libsecret. You may be prompted for a password.")
        try:
            runner(cmd, check=True)
        except (OSError, subprocess.CalledProcessError) as e:
            raise VaultUnavailable(f"failed to install libsecret with {' '.join(cmd)}: {e}") from e
    _platform_checked = True


def _reset_platform_check() -> None:
    global _platform_checked
    _platform_checked = False


class SecretVault:
    """Secrets keyed by (endpoint, access_key_id) in the OS keychain."""

    def __init__(
        self,
        backend: Any = keyring,
        *,
        ready: Callable[[], None] = platform_ready,
    ) -> None:
        self._backend = backend
        self._ready = ready

    def store(self, endpoint: str, access_key_id: str, secret: str) -> None:
        self._ready()
        _info(
            f"Securely saving R2 token with id {access_key_id} for {endpoint} "
            "in your OS encrypted password storage."
        )
        try:
            self._backend.set_password(endpoint, access_key_id, secret)
        except KeyringError as e:
            raise VaultUnavailable(f"failed to save secret for {access_key_id}: {e}") from e

    def retrieve(self, endpoint: str, access_key_id: str) -> str:
        self._ready()
        _info(
            f"Retrieving R2 token secret with id {access_key_id} for {endpoint} "
            "from your OS encrypted password storage."
        )
        try:
            secret = self._backend.get_password(endpoint, access_key_id)
        except KeyringError as e:
            raise VaultUnavailable(f"failed to read secret for {access_key_id}: {e}") from e
        if secret is None:
            raise VaultEntryNotFound(f"no credentials found for {access_key_id} at {endpoint}")
        return secret

    def delete(self, endpoint: str, access_key_id: str) -> None:
        self._ready()
        try:
            self._backend.delete_password(endpoint, access_key_id)
        except PasswordDeleteError as e:
            raise VaultEntryNotFound(f"no credentials found for {access_key_id} at {endpoint}") from e
        except KeyringError as e:
            raise VaultUnavailable(f"failed to delete secret for {access_key_id}: {e}") from e
