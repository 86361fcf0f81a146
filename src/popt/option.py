from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError


class OptionFileError(RuntimeError):
    """Raised when an options file cannot be read or decoded."""


@dataclass(frozen=True)
class Option:
    """Describes one configuration option of a program.

    ``name`` is the configuration key (nested with dots) and ``default`` is
    mandatory whenever ``flag`` is set, since its type selects the kind of
    flag. An empty ``name`` makes the option flag-only; an empty ``flag``
    makes it config/environment-only.
    """

    name: str = ""
    default: Any = None
    usage: str = ""
    flag: str = ""
    short: str = ""
    env: str = ""

    @property
    def label(self) -> str:
        if self.name:
            return self.name
        if self.flag:
            return f"--{self.flag}"
        return "<unnamed>"


class OptionRecord(BaseModel):
    name: str = ""
    default: Any = None
    usage: str = ""
    flag: str = ""
    short: str = ""
    env: str = ""

    model_config = ConfigDict(extra="forbid")

    def to_option(self) -> Option:
        return Option(
            name=self.name,
            default=self.default,
            usage=self.usage,
            flag=self.flag,
            short=self.short,
            env=self.env,
        )


def parse_options(records: Iterable[Any]) -> list[Option]:
    """Validate decoded option records and convert them into Options."""
    options: list[Option] = []
    for index, record in enumerate(records):
        try:
            options.append(OptionRecord.model_validate(record).to_option())
        except ValidationError as exc:
            raise OptionFileError(f"invalid option record #{index + 1}: {exc}") from exc
    return options


def load_options(path: Path) -> list[Option]:
    """Read option records from a JSON, TOML or YAML file.

    The file holds either a list of records or a mapping with an ``options``
    list (``[[options]]`` tables in TOML). Numbers keep the type the format
    decodes them to: ``8080`` stays an int, ``8080.0`` becomes a float flag.
    """
    path = path.expanduser()
    suffix = path.suffix.lower()
    if suffix not in {".json", ".toml", ".yaml", ".yml"}:
        raise OptionFileError(f"unsupported options file format: {path.name}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise OptionFileError(f"cannot read options file {path}: {exc}") from exc

    try:
        if suffix == ".json":
            data = json.loads(text)
        elif suffix == ".toml":
            data = tomllib.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, tomllib.TOMLDecodeError, yaml.YAMLError) as exc:
        raise OptionFileError(f"cannot parse options file {path}: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("options")
    if not isinstance(data, list):
        raise OptionFileError(f"{path} must contain a list of options")
    return parse_options(data)
