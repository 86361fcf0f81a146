"""Layered configuration store.

Values for a key are resolved from, highest priority first: explicit
overrides, bound flags changed on the command line, bound environment
variables, config files, defaults and finally the default value of a bound
flag. Keys are case-insensitive and nest on ``key_delimiter``.
"""

from __future__ import annotations

import io
import json
import logging
import os
import tomllib
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping

import click
import yaml
from dotenv import dotenv_values

from popt.duration import DurationError, format_duration, parse_duration
from popt.flags import Flag

LOGGER = logging.getLogger(__name__)

CONFIG_TYPES = ("json", "toml", "yaml", "yml", "env", "dotenv")
_MISSING = object()


class ConfigStoreError(RuntimeError):
    """Raised when a key cannot be bound, a config file read or a value cast."""


class ConfigStore:
    """Merges defaults, config files, environment variables and flags per key."""

    def __init__(
        self,
        *,
        key_delimiter: str = ".",
        env_prefix: str = "",
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.key_delimiter = key_delimiter
        self.env_prefix = env_prefix
        self.config_files: list[Path] = []
        self._environ: Mapping[str, str] = os.environ if environ is None else environ
        self._overrides: dict[str, Any] = {}
        self._config: dict[str, Any] = {}
        self._defaults: dict[str, Any] = {}
        self._env: dict[str, list[str]] = {}
        self._flags: dict[str, Flag] = {}

    def set_default(self, key: str, value: Any) -> None:
        _set_nested(self._defaults, self._path(key), value)

    def set(self, key: str, value: Any) -> None:
        _set_nested(self._overrides, self._path(key), value)

    def bind_env(self, key: str, *env_names: str) -> None:
        """Bind environment variables to key, trying names in the given order.

        Without names, the variable is derived from ``env_prefix`` and the
        upper-cased key (``server.port`` -> ``APP_SERVER_PORT``).
        """
        if not key:
            raise ConfigStoreError("missing key to bind to")
        names = list(env_names) or [self.env_name(key)]
        self._env[self._normalize(key)] = names
        LOGGER.debug("Bound %s to environment %s", key, ", ".join(names))

    def bind_flag(self, key: str, flag: Flag | None) -> None:
        if not key:
            raise ConfigStoreError("missing key to bind to")
        if flag is None:
            raise ConfigStoreError(f"flag for {key!r} is None")
        self._flags[self._normalize(key)] = flag
        LOGGER.debug("Bound %s to flag --%s", key, flag.name)

    def env_name(self, key: str) -> str:
        name = self._normalize(key).replace(self.key_delimiter, "_").upper()
        if self.env_prefix:
            return f"{self.env_prefix.upper()}_{name}"
        return name

    def read_config_file(self, path: Path | str, config_type: str | None = None) -> None:
        """Replace the config file layer with the contents of path."""
        self._config = {}
        self.config_files = []
        self.merge_config_file(path, config_type)

    def merge_config_file(self, path: Path | str, config_type: str | None = None) -> None:
        """Merge path into the config file layer; later files win per key."""
        path = Path(path).expanduser()
        kind = (config_type or path.suffix.lstrip(".") or path.name.lstrip(".")).lower()
        if kind not in CONFIG_TYPES:
            raise ConfigStoreError(f"unsupported config type {kind!r} for {path}")
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigStoreError(f"cannot read config file {path}: {exc}") from exc

        data = self._decode(text, kind, path)
        _merge(self._config, data)
        self.config_files.append(path)
        LOGGER.debug("Loaded %s config from %s (%s top-level keys)", kind, path, len(data))

    def get(self, key: str, default: Any = None) -> Any:
        value = self._find(key)
        return default if value is _MISSING else value

    def is_set(self, key: str) -> bool:
        return self._find(key, flag_default=False) is not _MISSING

    def get_string(self, key: str) -> str:
        value = self.get(key)
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, timedelta):
            return format_duration(value)
        return str(value)

    def get_int(self, key: str) -> int:
        value = self.get(key)
        if value is None:
            return 0
        if isinstance(value, (bool, int, float)):
            return int(value)
        try:
            return int(str(value).strip())
        except ValueError as exc:
            raise ConfigStoreError(f"cannot read {key!r} value {value!r} as int") from exc

    def get_float(self, key: str) -> float:
        value = self.get(key)
        if value is None:
            return 0.0
        if isinstance(value, (bool, int, float)):
            return float(value)
        try:
            return float(str(value).strip())
        except ValueError as exc:
            raise ConfigStoreError(f"cannot read {key!r} value {value!r} as float") from exc

    def get_bool(self, key: str) -> bool:
        value = self.get(key)
        if value is None:
            return False
        if isinstance(value, (bool, int, float)):
            return bool(value)
        try:
            return bool(click.BOOL.convert(str(value), None, None))
        except click.BadParameter as exc:
            raise ConfigStoreError(f"cannot read {key!r} value {value!r} as bool") from exc

    def get_duration(self, key: str) -> timedelta:
        """Return key as a timedelta; bare numbers are seconds."""
        value = self.get(key)
        if value is None:
            return timedelta(0)
        if isinstance(value, timedelta):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return timedelta(seconds=value)
        try:
            return parse_duration(str(value))
        except DurationError as exc:
            raise ConfigStoreError(f"cannot read {key!r} value {value!r} as duration") from exc

    def all_keys(self) -> list[str]:
        keys: set[str] = set()
        for layer in (self._overrides, self._config, self._defaults):
            keys.update(_flatten(layer, self.key_delimiter))
        keys.update(self._env)
        keys.update(self._flags)
        return sorted(keys)

    def all_settings(self) -> dict[str, Any]:
        """Resolve every known key into a nested mapping."""
        settings: dict[str, Any] = {}
        for key in self.all_keys():
            value = self._find(key)
            if value is not _MISSING:
                _set_nested(settings, self._path(key), value)
        return settings

    def _find(self, key: str, *, flag_default: bool = True) -> Any:
        path = self._path(key)
        normalized = self.key_delimiter.join(path)

        value = _search(self._overrides, path)
        if value is not _MISSING:
            return value

        flag = self._flags.get(normalized)
        if flag is not None and flag.changed:
            return flag.value

        for env_name in self._env.get(normalized, ()):
            env_value = self._environ.get(env_name)
            if env_value:
                return env_value

        for layer in (self._config, self._defaults):
            value = _search(layer, path)
            if value is not _MISSING:
                return value

        if flag is not None and flag_default:
            return flag.value
        return _MISSING

    def _decode(self, text: str, kind: str, path: Path) -> dict[str, Any]:
        try:
            if kind == "json":
                data = json.loads(text)
            elif kind == "toml":
                data = tomllib.loads(text)
            elif kind in {"yaml", "yml"}:
                data = yaml.safe_load(text) or {}
            else:
                data = {}
                for name, value in dotenv_values(stream=io.StringIO(text)).items():
                    _set_nested(data, self._path(name), "" if value is None else value)
        except (json.JSONDecodeError, tomllib.TOMLDecodeError, yaml.YAMLError) as exc:
            raise ConfigStoreError(f"cannot parse {kind} config file {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigStoreError(f"config file {path} must contain a mapping at the top level")
        return _lower_keys(data)

    def _path(self, key: str) -> list[str]:
        return key.lower().split(self.key_delimiter)

    def _normalize(self, key: str) -> str:
        return self.key_delimiter.join(self._path(key))


def _search(tree: Mapping[str, Any], path: list[str]) -> Any:
    node: Any = tree
    for part in path:
        if not isinstance(node, Mapping) or part not in node:
            return _MISSING
        node = node[part]
    return node


def _set_nested(tree: dict[str, Any], path: list[str], value: Any) -> None:
    node = tree
    for part in path[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[path[-1]] = value


def _merge(target: dict[str, Any], source: Mapping[str, Any]) -> None:
    for key, value in source.items():
        existing = target.get(key)
        if isinstance(existing, dict) and isinstance(value, Mapping):
            _merge(existing, value)
        else:
            target[key] = value


def _lower_keys(data: Mapping[str, Any]) -> dict[str, Any]:
    return {
        str(key).lower(): _lower_keys(value) if isinstance(value, Mapping) else value
        for key, value in data.items()
    }


def _flatten(tree: Mapping[str, Any], delimiter: str, prefix: str = "") -> list[str]:
    keys: list[str] = []
    for key, value in tree.items():
        full = f"{prefix}{delimiter}{key}" if prefix else key
        if isinstance(value, Mapping) and value:
            keys.extend(_flatten(value, delimiter, full))
        else:
            keys.append(full)
    return keys
