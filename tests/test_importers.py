from __future__ import annotations

from pathlib import Path

import pytest
from botocore.exceptions import EndpointConnectionError

from r2cli.cli_shared import CredentialInvalid, ImportParseFailed, ImportSourceMissing
from r2cli.config_paths import CandidatePaths
from r2cli.importers import import_rclone, read_rclone_profiles
from r2cli.profiles import ProfileRegistry
from r2cli.resolver import ProfileResolver

ACCOUNT = "0123456789abcdef0123456789abcdef"


class FakeS3:
    def __init__(self, endpoint: str, broken: bool) -> None:
        self.endpoint = endpoint
        self.broken = broken

    def list_buckets(self):
        if self.broken:
            raise EndpointConnectionError(endpoint_url=self.endpoint)
        return {"Buckets": []}


def _resolver(registry: ProfileRegistry, vault, *, bad_keys: frozenset[str] = frozenset()) -> ProfileResolver:
    def _factory(*, account_id, access_key_id, secret_access_key):
        return FakeS3(f"https://{account_id}.r2.cloudflarestorage.com", access_key_id in bad_keys)

    return ProfileResolver(registry, vault, client_factory=_factory)


def _rclone_paths(tmp_path: Path, text: str | None) -> CandidatePaths:
    home = tmp_path / "home"
    conf = home / ".config" / "rclone" / "rclone.conf"
    if text is not None:
        conf.parent.mkdir(parents=True, exist_ok=True)
        conf.write_text(text, encoding="utf-8")
    return CandidatePaths("rclone", "rclone.conf", env={"HOME": str(home)}, platform="linux")


_TWO_SECTIONS = f"""\
[r2]
type = s3
provider = Cloudflare
endpoint = https://{ACCOUNT}.r2.cloudflarestorage.com
access_key_id = key-r2
secret_access_key = secret-r2

[aws]
type = s3
provider = AWS
endpoint = https://s3.us-east-1.amazonaws.com
access_key_id = key-aws
secret_access_key = secret-aws
"""


def test_import_only_r2_sections(tmp_path: Path, monkeypatch, write_registry, vault, fake_keyring) -> None:
    monkeypatch.chdir(tmp_path)
    registry_path = tmp_path / "cloudflare" / "r2.toml"
    registry = write_registry(registry_path, "")

    result = import_rclone(_resolver(registry, vault), paths=_rclone_paths(tmp_path, _TWO_SECTIONS))

    assert result.count == 1
    assert result.summary() == f"Imported 1 rclone configurations into {registry_path}"
    reloaded = ProfileRegistry.load(registry_path)
    assert [name for name, _ in reloaded.profiles()] == ["r2"]
    assert reloaded.get("r2").account_id == ACCOUNT
    assert fake_keyring.secrets == {
        (f"https://{ACCOUNT}.r2.cloudflarestorage.com", "key-r2"): "secret-r2"
    }


def test_import_without_rclone_config(tmp_path: Path, monkeypatch, write_registry, vault) -> None:
    monkeypatch.chdir(tmp_path)
    registry = write_registry(tmp_path / "r2.toml", "")
    with pytest.raises(ImportSourceMissing, match="No existing rclone configuration found in"):
        import_rclone(_resolver(registry, vault), paths=_rclone_paths(tmp_path, None))


def test_import_with_no_r2_sections(tmp_path: Path, monkeypatch, write_registry, vault) -> None:
    monkeypatch.chdir(tmp_path)
    registry = write_registry(tmp_path / "r2.toml", "")
    text = "[aws]\nendpoint = https://s3.amazonaws.com\n\n[local]\ntype = local\n"
    with pytest.raises(ImportParseFailed, match="No Cloudflare R2 profiles found"):
        import_rclone(_resolver(registry, vault), paths=_rclone_paths(tmp_path, text))


def test_unparseable_rclone_config(tmp_path: Path) -> None:
    conf = tmp_path / "rclone.conf"
    conf.write_text("this is not ini\n", encoding="utf-8")
    with pytest.raises(ImportParseFailed, match="Trouble parsing rclone config file"):
        read_rclone_profiles(conf)


def test_r2_section_missing_secret_is_rejected_before_any_write(tmp_path: Path) -> None:
    conf = tmp_path / "rclone.conf"
    conf.write_text(
        f"[r2]\nendpoint = https://{ACCOUNT}.r2.cloudflarestorage.com\naccess_key_id = k\n",
        encoding="utf-8",
    )
    with pytest.raises(ImportParseFailed, match=r"\[r2\].*secret_access_key"):
        read_rclone_profiles(conf)


def test_failed_validation_keeps_earlier_profiles(
    tmp_path: Path, monkeypatch, write_registry, vault, fake_keyring
) -> None:
    monkeypatch.chdir(tmp_path)
    registry_path = tmp_path / "r2.toml"
    registry = write_registry(registry_path, "")
    text = (
        f"[good]\nendpoint = https://{ACCOUNT}.r2.cloudflarestorage.com\n"
        "access_key_id = key-good\nsecret_access_key = s1\n\n"
        f"[bad]\nendpoint = https://{ACCOUNT}.r2.cloudflarestorage.com\n"
        "access_key_id = key-bad\nsecret_access_key = s2\n"
    )

    with pytest.raises(CredentialInvalid):
        import_rclone(
            _resolver(registry, vault, bad_keys=frozenset({"key-bad"})),
            paths=_rclone_paths(tmp_path, text),
        )

    reloaded = ProfileRegistry.load(registry_path)
    assert [name for name, _ in reloaded.profiles()] == ["good"]
    assert list(fake_keyring.secrets.values()) == ["s1"]


def test_endpoint_without_scheme_is_imported(tmp_path: Path) -> None:
    conf = tmp_path / "rclone.conf"
    conf.write_text(
        f"[r2]\nendpoint = {ACCOUNT}.r2.cloudflarestorage.com\naccess_key_id = k\nsecret_access_key = s\n",
        encoding="utf-8",
    )
    [profile] = read_rclone_profiles(conf)
    assert profile.account_id == ACCOUNT


def test_endpoint_without_account_id_is_rejected(tmp_path: Path) -> None:
    conf = tmp_path / "rclone.conf"
    conf.write_text(
        "[r2]\nendpoint = https://my-bucket.r2.cloudflarestorage.com\naccess_key_id = k\nsecret_access_key = s\n",
        encoding="utf-8",
    )
    with pytest.raises(ImportParseFailed, match=r"\[r2\].*no account id"):
        read_rclone_profiles(conf)
