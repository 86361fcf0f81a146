"""Typed command-line flags backed by click.

A ``FlagSet`` collects flag definitions (name, one-character shorthand,
default value and usage text) and turns them into a ``click.Command`` when
the arguments are parsed. Each definition returns a ``Flag`` handle whose
``value`` and ``changed`` attributes are refreshed by ``FlagSet.parse``; the
configuration store reads those handles when a flag is bound to a key.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Iterable, Iterator

import click
from click.core import ParameterSource

from popt.duration import DurationError, format_duration, parse_duration

LOGGER = logging.getLogger(__name__)


class FlagError(RuntimeError):
    """Raised when a flag definition is invalid."""


class FlagRedefinedError(FlagError):
    """Raised when a flag name or shorthand is defined twice in one flag set."""


class FlagParseError(FlagError):
    """Raised when command-line arguments do not match the defined flags."""


class HelpRequested(FlagError):
    """Raised by FlagSet.parse once --help has printed the usage."""


class FlagKind(str, Enum):
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    STRING = "string"
    DURATION = "duration"


class DurationParamType(click.ParamType):
    """click parameter type accepting '1h30m' style durations."""

    name = "duration"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> timedelta:
        if isinstance(value, timedelta):
            return value
        try:
            return parse_duration(str(value))
        except DurationError as exc:
            self.fail(str(exc), param, ctx)


DURATION = DurationParamType()

_CLICK_TYPES: dict[FlagKind, click.ParamType] = {
    FlagKind.BOOL: click.BOOL,
    FlagKind.INT: click.INT,
    FlagKind.FLOAT: click.FLOAT,
    FlagKind.STRING: click.STRING,
    FlagKind.DURATION: DURATION,
}


@dataclass
class Flag:
    name: str
    shorthand: str
    kind: FlagKind
    default: Any
    usage: str
    value: Any = field(init=False)
    changed: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        self.value = self.default


class FlagSet:
    """A named set of flags, parsed in one pass over the program arguments."""

    def __init__(self, name: str = "", *, help: str | None = None) -> None:
        self.name = name
        self.help = help
        self.args: list[str] = []
        self.parsed = False
        self._flags: dict[str, Flag] = {}
        self._shorthands: dict[str, str] = {}

    def __iter__(self) -> Iterator[Flag]:
        return iter(self._flags.values())

    def __len__(self) -> int:
        return len(self._flags)

    def __contains__(self, name: object) -> bool:
        return name in self._flags

    def bool_p(self, name: str, shorthand: str, value: bool, usage: str) -> Flag:
        return self._define(name, shorthand, FlagKind.BOOL, value, usage)

    def int_p(self, name: str, shorthand: str, value: int, usage: str) -> Flag:
        return self._define(name, shorthand, FlagKind.INT, value, usage)

    def float_p(self, name: str, shorthand: str, value: float, usage: str) -> Flag:
        return self._define(name, shorthand, FlagKind.FLOAT, value, usage)

    def string_p(self, name: str, shorthand: str, value: str, usage: str) -> Flag:
        return self._define(name, shorthand, FlagKind.STRING, value, usage)

    def duration_p(self, name: str, shorthand: str, value: timedelta, usage: str) -> Flag:
        return self._define(name, shorthand, FlagKind.DURATION, value, usage)

    def lookup(self, name: str) -> Flag | None:
        return self._flags.get(name)

    def command(self) -> click.Command:
        """Build the click command describing every defined flag."""
        params: list[click.Parameter] = [
            _click_option(param_name, flag) for param_name, flag in self._params()
        ]
        params.append(click.Argument(["args"], nargs=-1))
        help_names = ["--help"] if "h" in self._shorthands else ["-h", "--help"]
        return click.Command(
            self.name or "command",
            params=params,
            help=self.help,
            context_settings={"help_option_names": help_names},
        )

    def parse(self, arguments: Iterable[str]) -> None:
        """Parse arguments, updating each flag's value and changed state."""
        command = self.command()
        arguments = self._expand_bool_values(list(arguments))
        try:
            with command.make_context(command.name, arguments) as ctx:
                for param_name, flag in self._params():
                    flag.value = ctx.params[param_name]
                    flag.changed = ctx.get_parameter_source(param_name) is ParameterSource.COMMANDLINE
                self.args = list(ctx.params["args"])
        except click.exceptions.Exit as exc:
            raise HelpRequested("help requested") from exc
        except click.ClickException as exc:
            raise FlagParseError(exc.format_message()) from exc
        self.parsed = True
        LOGGER.debug(
            "Parsed %s: changed=%s args=%s",
            command.name,
            [flag.name for flag in self if flag.changed],
            self.args,
        )

    def usage(self) -> str:
        command = self.command()
        with click.Context(command, info_name=command.name) as ctx:
            return command.get_help(ctx)

    def _expand_bool_values(self, arguments: list[str]) -> list[str]:
        """Rewrite --flag=false and -f=true into the --flag / --no-flag forms."""
        expanded: list[str] = []
        for index, argument in enumerate(arguments):
            if argument == "--":
                return expanded + arguments[index:]
            expanded.append(self._bool_argument(argument))
        return expanded

    def _bool_argument(self, argument: str) -> str:
        option, separator, text = argument.partition("=")
        if not separator:
            return argument
        if option.startswith("--"):
            flag = self._flags.get(option[2:])
        elif option.startswith("-") and len(option) == 2:
            flag = self._flags.get(self._shorthands.get(option[1:], ""))
        else:
            return argument
        if flag is None or flag.kind is not FlagKind.BOOL:
            return argument
        try:
            enabled = click.BOOL.convert(text, None, None)
        except click.BadParameter as exc:
            raise FlagParseError(f"invalid argument {text!r} for {option} flag: {exc.format_message()}") from exc
        return f"--{flag.name}" if enabled else f"--no-{flag.name}"

    def _params(self) -> list[tuple[str, Flag]]:
        return [(f"flag_{index}", flag) for index, flag in enumerate(self._flags.values())]

    def _define(self, name: str, shorthand: str, kind: FlagKind, value: Any, usage: str) -> Flag:
        label = self.name or "command"
        if not name:
            raise FlagError("flag name must not be empty")
        if len(shorthand) > 1:
            raise FlagError(f"{shorthand!r} shorthand for flag {name} is more than one character")
        if name in self._flags:
            raise FlagRedefinedError(f"{label} flag redefined: {name}")
        if shorthand and shorthand in self._shorthands:
            raise FlagRedefinedError(
                f"unable to redefine {shorthand!r} shorthand in {label} flag set: "
                f"already used for {self._shorthands[shorthand]}"
            )

        flag = Flag(name=name, shorthand=shorthand, kind=kind, default=value, usage=usage)
        self._flags[name] = flag
        if shorthand:
            self._shorthands[shorthand] = name
        LOGGER.debug("Defined %s flag --%s", kind.value, name)
        return flag


def _click_option(param_name: str, flag: Flag) -> click.Option:
    if flag.kind is FlagKind.BOOL:
        decls = [param_name, f"--{flag.name}/--no-{flag.name}"]
    else:
        decls = [param_name, f"--{flag.name}"]
    if flag.shorthand:
        decls.append(f"-{flag.shorthand}")

    if flag.kind is FlagKind.BOOL:
        return click.Option(decls, is_flag=True, default=flag.default, help=flag.usage, show_default=True)
    show_default: bool | str = True
    if flag.kind is FlagKind.DURATION:
        show_default = format_duration(flag.default)
    return click.Option(
        decls,
        type=_CLICK_TYPES[flag.kind],
        default=flag.default,
        help=flag.usage,
        metavar=flag.kind.value,
        show_default=show_default,
    )
