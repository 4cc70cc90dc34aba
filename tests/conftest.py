from __future__ import annotations

from pathlib import Path

import pytest
from keyring.errors import PasswordDeleteError

from r2cli import cli_shared
from r2cli.profiles import ProfileRegistry
from r2cli.vault import SecretVault


class FakeKeyring:
    def __init__(self) -> None:
        self.secrets: dict[tuple[str, str], str] = {}

    def get_password(self, service: str, username: str) -> str | None:
        return self.secrets.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self.secrets[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        if (service, username) not in self.secrets:
            raise PasswordDeleteError("not found")
        del self.secrets[(service, username)]


@pytest.fixture(autouse=True)
def _quiet_console(monkeypatch):
    monkeypatch.delenv("R2_PROFILE", raising=False)
    monkeypatch.delenv("R2_QUIET", raising=False)
    cli_shared.set_quiet(False)
    yield
    cli_shared.set_quiet(False)


@pytest.fixture
def fake_keyring() -> FakeKeyring:
    return FakeKeyring()


@pytest.fixture
def vault(fake_keyring: FakeKeyring) -> SecretVault:
    return SecretVault(fake_keyring, ready=lambda: None)


@pytest.fixture
def write_registry():
    def _write(path: Path, text: str) -> ProfileRegistry:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return ProfileRegistry.load(path)

    return _write
