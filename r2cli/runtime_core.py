from __future__ import annotations

from .cli_shared import OWN_CONFIG_NAME, OWN_PROJECT
from .config_paths import CandidatePaths
from .engine import RequestEngine
from .profiles import ProfileRegistry
from .resolver import ProfileResolver, ResolvedCredential
from .vault import SecretVault


def registry_paths() -> CandidatePaths:
    return CandidatePaths(OWN_PROJECT, OWN_CONFIG_NAME)


def open_registry() -> ProfileRegistry:
    return ProfileRegistry.load(registry_paths().ensure_exists())


def make_resolver() -> ProfileResolver:
    return ProfileResolver(open_registry(), SecretVault())


def make_engine(credential: ResolvedCredential) -> RequestEngine:
    return RequestEngine(credential)
