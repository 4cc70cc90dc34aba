from __future__ import annotations

import configparser
from dataclasses import dataclass
from pathlib import Path

from .cli_shared import ImportParseFailed, ImportSourceMissing, _info
from .config_paths import CandidatePaths
from .resolver import ACCOUNT_ID_RE, ProfileResolver
from .s3_client import account_for_endpoint, is_storage_endpoint

RCLONE_PROJECT = "rclone"
RCLONE_CONFIG_NAME = "rclone.conf"


@dataclass(frozen=True)
class ImportedProfile:
    name: str
    account_id: str
    access_key_id: str
    secret_access_key: str


@dataclass(frozen=True)
class ImportResult:
    source: str
    count: int
    registry_path: Path

    def summary(self) -> str:
        return f"Imported {self.count} {self.source} configurations into {self.registry_path}"


def read_rclone_profiles(path: Path) -> list[ImportedProfile]:
    parser = configparser.ConfigParser(interpolation=None)
    try:
        with open(path, encoding="utf-8") as f:
            parser.read_file(f)
    except (OSError, configparser.Error, UnicodeDecodeError) as e:
        raise ImportParseFailed(f"Trouble parsing rclone config file {path}: {e}") from e

    out: list[ImportedProfile] = []
    for section in parser.sections():
        values = parser[section]
        endpoint = str(values.get("endpoint") or "").strip()
        if not is_storage_endpoint(endpoint):
            continue
        access_key_id = str(values.get("access_key_id") or "").strip()
        secret_access_key = str(values.get("secret_access_key") or "").strip()
        missing = [
            key
            for key, val in (("access_key_id", access_key_id), ("secret_access_key", secret_access_key))
            if not val
        ]
        if missing:
            raise ImportParseFailed(
                f"rclone section [{section}] in {path} is missing {', '.join(missing)}"
            )
        account_id = account_for_endpoint(endpoint)
        if not ACCOUNT_ID_RE.match(account_id):
            raise ImportParseFailed(
                f"rclone section [{section}] in {path} has no account id in endpoint {endpoint}"
            )
        out.append(
            ImportedProfile(
                name=section,
                account_id=account_id,
                access_key_id=access_key_id,
                secret_access_key=secret_access_key,
            )
        )
    if not out:
        raise ImportParseFailed(f"No Cloudflare R2 profiles found in {path}")
    return out


def import_rclone(resolver: ProfileResolver, *, paths: CandidatePaths | None = None) -> ImportResult:
    """Copy every R2 remote from rclone's config into the profile registry.

    Each profile is validated and committed on its own; a failure stops the
    import but leaves earlier profiles in place.
    """
    rclone_paths = paths or CandidatePaths(RCLONE_PROJECT, RCLONE_CONFIG_NAME)
    source = rclone_paths.locate()
    if source is None:
        searched = ", ".join(str(p) for p in rclone_paths.candidates)
        raise ImportSourceMissing(f"No existing rclone configuration found in {searched}")

    profiles = read_rclone_profiles(source)
    imported = 0
    for profile in profiles:
        _info(f"Importing rclone configuration {profile.name}")
        resolver.add_profile(
            profile.name,
            account_id=profile.account_id,
            access_key_id=profile.access_key_id,
            secret_access_key=profile.secret_access_key,
        )
        imported += 1
    return ImportResult(source="rclone", count=imported, registry_path=resolver.registry.path)
