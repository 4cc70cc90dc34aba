from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console
from rich.prompt import IntPrompt

from .cli_shared import (
    CredentialInvalid,
    CredentialsMissing,
    NoProfilesConfigured,
    ProfileNotFound,
    VaultEntryNotFound,
    _info,
    _warn,
)
from .profiles import ProfileEntry, ProfileRegistry
from .s3_client import endpoint_for_account, make_client
from .vault import SecretVault

ACCOUNT_ID_RE = re.compile(r"^[0-9A-Fa-f]{32}$")


@dataclass(frozen=True)
class ResolvedCredential:
    profile: str
    account_id: str
    access_key_id: str
    secret_access_key: str

    @property
    def endpoint(self) -> str:
        return endpoint_for_account(self.account_id)

    def __repr__(self) -> str:
        return (
            f"ResolvedCredential(profile={self.profile!r}, account_id={self.account_id!r}, "
            f"access_key_id={self.access_key_id!r}, secret_access_key='***')"
        )


def _prompt_choice(message: str, choices: Sequence[str]) -> int:
    console = Console(stderr=True, highlight=False)
    console.print(message, markup=False)
    for idx, choice in enumerate(choices, start=1):
        console.print(f"  {idx}) {choice}", markup=False)
    picked = IntPrompt.ask(
        "Profile number",
        choices=[str(i) for i in range(1, len(choices) + 1)],
        console=console,
    )
    return picked - 1


class ProfileResolver:
    """Turns a profile name or account id into a usable credential."""

    def __init__(
        self,
        registry: ProfileRegistry,
        vault: SecretVault,
        *,
        choose: Callable[[str, Sequence[str]], int] = _prompt_choice,
        client_factory: Callable[..., Any] = make_client,
    ) -> None:
        self.registry = registry
        self.vault = vault
        self._choose = choose
        self._client_factory = client_factory

    def resolve(self, identifier: str | None) -> ResolvedCredential:
        ident = (identifier or "").strip()
        if ident:
            return self.resolve_explicit(ident)
        return self.resolve_implicit()

    def _secret_for(self, entry: ProfileEntry) -> str:
        return self.vault.retrieve(endpoint_for_account(entry.account_id), entry.access_key_id)

    def _credential(self, name: str, entry: ProfileEntry, secret: str) -> ResolvedCredential:
        return ResolvedCredential(
            profile=name,
            account_id=entry.account_id,
            access_key_id=entry.access_key_id,
            secret_access_key=secret,
        )

    def resolve_explicit(self, identifier: str) -> ResolvedCredential:
        entry = self.registry.get(identifier)
        if entry is not None:
            try:
                secret = self._secret_for(entry)
            except VaultEntryNotFound as e:
                raise CredentialsMissing(
                    f"Profile {identifier} for account {entry.account_id} appears to be missing credentials."
                ) from e
            return self._credential(identifier, entry, secret)

        matched = False
        for name, candidate in self.registry.profiles():
            if candidate.account_id != identifier:
                continue
            matched = True
            try:
                secret = self._secret_for(candidate)
            except VaultEntryNotFound:
                _warn(f"Profile {name} matches account {identifier} but appears to be missing credentials.")
                continue
            return self._credential(name, candidate, secret)

        if matched:
            raise CredentialsMissing(
                f"Every profile for account {identifier} in {self.registry.path} is missing credentials."
            )
        kind = "Account" if ACCOUNT_ID_RE.match(identifier) else "Profile"
        raise ProfileNotFound(f"{kind} '{identifier}' not found in {self.registry.path}")

    def resolve_implicit(self) -> ResolvedCredential:
        profiles = self.registry.profiles()
        if not profiles:
            raise NoProfilesConfigured(f"No profiles found in {self.registry.path}")

        if len(profiles) == 1:
            name, entry = profiles[0]
        else:
            choices = [f"{e.account_id}: {n}" for n, e in profiles]
            idx = self._choose("Found more than one profile. Which would you like to use?", choices)
            name, entry = profiles[idx]

        try:
            secret = self._secret_for(entry)
        except VaultEntryNotFound as e:
            raise CredentialsMissing(
                f"Profile {name} for account {entry.account_id} appears to be missing credentials."
            ) from e
        return self._credential(name, entry, secret)

    def validate_credential(self, *, account_id: str, access_key_id: str, secret_access_key: str) -> None:
        _info(f"Validating credential {access_key_id} for {endpoint_for_account(account_id)}")
        client = self._client_factory(
            account_id=account_id,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
        )
        try:
            client.list_buckets()
        except (ClientError, BotoCoreError) as e:
            raise CredentialInvalid(f"Credentials failed to validate. {e}") from e

    def add_profile(self, name: str, *, account_id: str, access_key_id: str, secret_access_key: str) -> None:
        self.validate_credential(
            account_id=account_id,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
        )
        self.vault.store(endpoint_for_account(account_id), access_key_id, secret_access_key)
        self.registry.set_profile(name, account_id=account_id, access_key_id=access_key_id)
        self.registry.save()

    def remove_profile(self, name: str) -> ProfileEntry:
        entry = self.registry.get(name)
        if entry is None:
            raise ProfileNotFound(f"Profile '{name}' not found in {self.registry.path}")
        try:
            self.vault.delete(endpoint_for_account(entry.account_id), entry.access_key_id)
        except VaultEntryNotFound:
            _warn(f"no stored secret for profile {name}; removing the registry entry only")
        self.registry.remove(name)
        self.registry.save()
        return entry
