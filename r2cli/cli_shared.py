from __future__ import annotations

import datetime
import json
import os
import sys
from typing import Any

from rich.console import Console
from rich.markup import escape


class R2CliError(Exception):
    pass


class UsageError(R2CliError):
    pass


class OpError(R2CliError):
    pass


class ConfigUnwritable(OpError):
    """No candidate location for the profile registry could be created."""


class VaultUnavailable(OpError):
    """The OS secret store cannot be used on this host."""


class VaultEntryNotFound(OpError):
    """The OS secret store has no secret for the requested key."""


class CredentialInvalid(OpError):
    """A credential failed its validation call against the endpoint."""


class ResolutionFailed(OpError):
    pass


class ProfileNotFound(ResolutionFailed):
    pass


class CredentialsMissing(ResolutionFailed):
    pass


class NoProfilesConfigured(ResolutionFailed):
    pass


class TransportFailed(OpError):
    def __init__(self, status: int | None, message: str) -> None:
        self.status = status
        self.message = message
        prefix = f"{status} " if status is not None else ""
        super().__init__(f"{prefix}{message}")


class ImportSourceMissing(OpError):
    pass


class ImportParseFailed(OpError):
    pass


R2_PROFILE = "R2_PROFILE"
R2_QUIET = "R2_QUIET"

OWN_PROJECT = "cloudflare"
OWN_CONFIG_NAME = "r2.toml"
STORAGE_DOMAIN = "r2.cloudflarestorage.com"


_STDERR = Console(stderr=True, highlight=False)
_quiet = False


def _truthy(raw: str | None) -> bool:
    return str(raw or "").strip().lower() in {"1", "true", "yes", "on"}


def set_quiet(value: bool) -> None:
    global _quiet
    _quiet = bool(value) or _truthy(os.environ.get(R2_QUIET))


def _env_or_none(*names: str) -> str | None:
    for n in names:
        v = (os.environ.get(n) or "").strip()
        if v:
            return v
    return None


def _eprint(msg: str) -> None:
    print(msg, file=sys.stderr)


def _info(msg: str) -> None:
    if _quiet:
        return
    _STDERR.print(msg, markup=False, soft_wrap=True)


def _warn(msg: str) -> None:
    _STDERR.print(f"[yellow]warning:[/yellow] {escape(msg)}", soft_wrap=True)


def _json_default(val: Any) -> Any:
    if isinstance(val, (datetime.datetime, datetime.date)):
        return val.isoformat()
    if isinstance(val, bytes):
        return val.decode("utf-8", errors="replace")
    return str(val)


def _print_json(obj: Any) -> None:
    sys.stdout.write(json.dumps(obj, indent=2, sort_keys=True, default=_json_default) + "\n")
