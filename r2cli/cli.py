from __future__ import annotations

import sys

import click
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape

from . import __version__
from .cli_shared import OpError, UsageError, set_quiet
from .config_main import config_app
from .s3_main import s3_app

_ERROR_CONSOLE = Console(stderr=True)


def _rich_error(msg: str) -> None:
    _ERROR_CONSOLE.print(f"[bold red]error:[/bold red] {escape(msg)}", soft_wrap=True)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"r2 {__version__}")
        raise typer.Exit(code=0)


app = typer.Typer(
    name="r2",
    help="Work with Cloudflare R2 profiles and storage from the command line.",
    no_args_is_help=True,
    add_completion=False,
)
app.add_typer(config_app, name="config")
app.add_typer(config_app, name="cfg", hidden=True)
app.add_typer(s3_app, name="s3")


@app.callback()
def app_callback(
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Reduce stderr logging"),
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True),
) -> None:
    del version
    set_quiet(quiet)


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    # Exported environment wins over .env values.
    load_dotenv()
    try:
        result = app(args=argv, prog_name="r2", standalone_mode=False)
        if result is None:
            return 0
        return int(result)
    except typer.Exit as e:
        return int(e.exit_code)
    except click.exceptions.Abort:
        _rich_error("aborted")
        return 1
    except click.ClickException as e:
        _rich_error(e.format_message())
        return int(e.exit_code)
    except UsageError as e:
        _rich_error(str(e))
        return 2
    except OpError as e:
        _rich_error(str(e))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
