"""Registers Options into a flag set and a configuration store.

Typical use is to add options when the program sets up its flags and to bind
them right before parsing::

    store = ConfigStore()
    flags = FlagSet("hello")
    registrar = OptionRegistrar(store)
    registrar.add_and_bind_option(
        Option(name="name", default="World", usage="who to greet", flag="name", short="n", env="HELLO_NAME"),
        flags,
    )
    flags.parse(sys.argv[1:])
    print("Hello", store.get_string("name"))
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Callable, Iterable

from popt.flags import Flag, FlagError, FlagSet
from popt.option import Option
from popt.store import ConfigStore, ConfigStoreError

LOGGER = logging.getLogger(__name__)

# Exact types only: bool, IntEnum and StrEnum defaults never fall through to int or str flags.
_FLAG_CONSTRUCTORS: tuple[tuple[type, Callable[..., Flag]], ...] = (
    (bool, FlagSet.bool_p),
    (int, FlagSet.int_p),
    (float, FlagSet.float_p),
    (str, FlagSet.string_p),
    (timedelta, FlagSet.duration_p),
)


class OptionError(RuntimeError):
    """Raised when an option cannot be added or bound."""

    def __init__(self, message: str, option: Option | None = None):
        super().__init__(message)
        self.option = option


class UnsupportedOptionTypeError(OptionError):
    """Raised when an option default has no matching flag type."""

    def __init__(self, option: Option):
        self.value_type = type(option.default)
        super().__init__(f"unsupported option type: {self.value_type.__name__}", option)


class FlagNotFoundError(OptionError):
    """Raised when binding an option whose flag was never added to the flag set."""

    def __init__(self, option: Option):
        self.flag = option.flag
        super().__init__(f"flag {option.flag} not found", option)


class OptionRegistrar:
    """Adds option defaults and flags, then binds env vars and flags to the store."""

    def __init__(self, store: ConfigStore):
        self.store = store

    def add_option(self, option: Option, flags: FlagSet | None = None) -> None:
        """Set the option default in the store and define its flag.

        Without a flag set, or when the option has no flag, only the default
        is registered. The default stays in the store when the flag cannot
        be created.
        """
        if option.name and option.default is not None:
            self.store.set_default(option.name, option.default)

        if flags is None or not option.flag:
            return
        constructor = _flag_constructor(option.default)
        if constructor is None:
            raise UnsupportedOptionTypeError(option)
        constructor(flags, option.flag, option.short, option.default, option.usage)
        LOGGER.debug("Added option %s as flag --%s", option.label, option.flag)

    def add_options(self, options: Iterable[Option], flags: FlagSet | None = None) -> None:
        """Add options in order, stopping at the first failure."""
        for option in options:
            try:
                self.add_option(option, flags)
            except (OptionError, FlagError) as exc:
                raise OptionError(f"failed to add option {option.label!r}: {exc}", option) from exc

    def bind_option(self, option: Option, flags: FlagSet | None = None) -> None:
        """Bind the option's environment variable and flag to its key."""
        if option.name and option.env:
            self.store.bind_env(option.name, option.env)

        if flags is None or not option.flag:
            return
        flag = flags.lookup(option.flag)
        if flag is None:
            raise FlagNotFoundError(option)
        if option.name:
            self.store.bind_flag(option.name, flag)

    def bind_options(self, options: Iterable[Option], flags: FlagSet | None = None) -> None:
        """Bind options in order, stopping at the first failure."""
        for option in options:
            try:
                self.bind_option(option, flags)
            except (OptionError, ConfigStoreError) as exc:
                raise OptionError(f"failed to bind option {option.label!r}: {exc}", option) from exc

    def add_and_bind_option(self, option: Option, flags: FlagSet | None = None) -> None:
        try:
            self.add_option(option, flags)
        except (OptionError, FlagError) as exc:
            raise OptionError(f"failed to add option {option.label!r}: {exc}", option) from exc
        try:
            self.bind_option(option, flags)
        except (OptionError, ConfigStoreError) as exc:
            raise OptionError(f"failed to bind option {option.label!r}: {exc}", option) from exc

    def add_and_bind_options(self, options: Iterable[Option], flags: FlagSet | None = None) -> None:
        for option in options:
            self.add_and_bind_option(option, flags)


def _flag_constructor(value: object) -> Callable[..., Flag] | None:
    for value_type, constructor in _FLAG_CONSTRUCTORS:
        if type(value) is value_type:
            return constructor
    return None
