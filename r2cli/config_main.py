from __future__ import annotations

import sys

import typer

from . import runtime_core
from .cli_shared import ImportSourceMissing, UsageError, _info, _print_json
from .importers import import_rclone
from .resolver import ACCOUNT_ID_RE

config_app = typer.Typer(
    name="config",
    help="Work with the profile configuration.",
    no_args_is_help=True,
)

_ADD_HELP = (
    "Add an R2 account profile. Tokens can be generated at "
    "https://dash.cloudflare.com/<account>/r2/api-tokens"
)


def _account_id(value: str) -> str:
    # Checked while parsing, before the key pair is prompted for.
    account = (value or "").strip()
    if not ACCOUNT_ID_RE.match(account):
        raise UsageError(f"invalid --account {value!r} (expected a 32 character hex account id)")
    return account


@config_app.command("add", help=_ADD_HELP)
def config_add(
    name: str = typer.Option(..., "--name", help="The name of the profile"),
    account: str = typer.Option(
        ...,
        "--account",
        "-a",
        callback=_account_id,
        help="The Cloudflare account ID with an R2 subscription",
    ),
    access_key_id: str = typer.Option(
        ...,
        "--access-key-id",
        prompt='What is the "Access Key ID" of your token?',
        help="Access Key ID of the R2 token",
    ),
    secret_access_key: str = typer.Option(
        ...,
        "--secret-access-key",
        prompt='What is the "Secret Access Key" of your token?',
        hide_input=True,
        help="Secret Access Key of the R2 token",
    ),
) -> None:
    resolver = runtime_core.make_resolver()
    resolver.add_profile(
        name.strip(),
        account_id=account.strip(),
        access_key_id=access_key_id.strip(),
        secret_access_key=secret_access_key.strip(),
    )
    sys.stdout.write(f"Added configuration {name} to {resolver.registry.path}\n")


config_app.command("init", help=_ADD_HELP, hidden=True)(config_add)


@config_app.command("import", help="Import your configuration from another tool.")
def config_import(
    rclone: bool = typer.Option(False, "--rclone", "-r", help="Import R2 remotes from rclone.conf"),
) -> None:
    if not rclone:
        raise ImportSourceMissing("No import source provided (pass --rclone)")
    result = import_rclone(runtime_core.make_resolver())
    sys.stdout.write(result.summary() + "\n")


@config_app.command("list", help="Print the profile registry.")
def config_list(
    json_output: bool = typer.Option(False, "--json", help="Print profiles as JSON"),
) -> None:
    registry = runtime_core.open_registry()
    if json_output:
        _print_json(
            {
                "path": str(registry.path),
                "profiles": [
                    {"name": name, "account": entry.account_id, "accessKeyId": entry.access_key_id}
                    for name, entry in registry.profiles()
                ],
            }
        )
        return
    _info(f"# {registry.path}")
    sys.stdout.write(registry.text())


@config_app.command("remove", help="Remove a profile and its stored secret.")
def config_remove(
    name: str = typer.Argument(..., help="The name of the profile"),
) -> None:
    resolver = runtime_core.make_resolver()
    entry = resolver.remove_profile(name)
    sys.stdout.write(
        f"Removed configuration {name} (account {entry.account_id}) from {resolver.registry.path}\n"
    )
