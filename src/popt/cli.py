from __future__ import annotations

import json
import logging
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

import typer
from dotenv import load_dotenv

from popt.duration import format_duration
from popt.flags import FlagError, FlagSet, HelpRequested
from popt.option import Option, OptionFileError, load_options
from popt.registrar import OptionError, OptionRegistrar
from popt.store import ConfigStore, ConfigStoreError

app = typer.Typer(help="popt CLI")
LOGGER = logging.getLogger(__name__)

_PROGRAM_ARGS = {"allow_extra_args": True, "ignore_unknown_options": True}


def main() -> None:
    """Allow `python -m popt` execution."""
    app()


@app.command("show", context_settings=_PROGRAM_ARGS)
def show(
    ctx: typer.Context,
    options_file: Path = typer.Argument(..., exists=True, readable=True, help="JSON/TOML/YAML list of options."),
    config: Optional[list[Path]] = typer.Option(
        None,
        "--config",
        "-c",
        exists=True,
        help="Config file to read (json, toml, yaml or env). Repeat to merge; later files win.",
    ),
    dotenv: Optional[Path] = typer.Option(
        None,
        "--dotenv",
        help="Load environment variables from this file instead of ./.env.",
    ),
    pretty: bool = typer.Option(False, "--pretty", help="Pretty-print JSON output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging."),
) -> None:
    """Resolve the options against env, config files and the flags after `--`."""
    _configure_logging(verbose)
    if dotenv is not None:
        load_dotenv(dotenv_path=dotenv)
    else:
        load_dotenv()

    store = ConfigStore()
    try:
        options = load_options(options_file)
        flags = FlagSet(options_file.stem)
        OptionRegistrar(store).add_and_bind_options(options, flags)
        flags.parse(ctx.args)
        for path in config or []:
            store.merge_config_file(path)
    except HelpRequested as exc:
        raise typer.Exit(code=0) from exc
    except (OptionFileError, OptionError, FlagError, ConfigStoreError) as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    if flags.args:
        LOGGER.debug("Ignoring positional arguments: %s", flags.args)
    typer.echo(json.dumps(store.all_settings(), indent=2 if pretty else None, default=_json_default))


@app.command("usage")
def usage(
    options_file: Path = typer.Argument(..., exists=True, readable=True, help="JSON/TOML/YAML list of options."),
) -> None:
    """Print the flag help generated from an options file."""
    try:
        flags = _flag_set(load_options(options_file), options_file.stem)
    except (OptionFileError, OptionError) as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(flags.usage())


def _flag_set(options: list[Option], name: str) -> FlagSet:
    flags = FlagSet(name)
    OptionRegistrar(ConfigStore()).add_options(options, flags)
    return flags


def _json_default(value: Any) -> str:
    if isinstance(value, timedelta):
        return format_duration(value)
    return str(value)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")
