"""Define configuration options once and bind them to flags, environment variables and config files."""

from popt.duration import DurationError, format_duration, parse_duration
from popt.flags import Flag, FlagError, FlagKind, FlagParseError, FlagRedefinedError, FlagSet, HelpRequested
from popt.option import Option, OptionFileError, OptionRecord, load_options, parse_options
from popt.registrar import FlagNotFoundError, OptionError, OptionRegistrar, UnsupportedOptionTypeError
from popt.store import ConfigStore, ConfigStoreError

__all__ = [
    "ConfigStore",
    "ConfigStoreError",
    "DurationError",
    "Flag",
    "FlagError",
    "FlagKind",
    "FlagNotFoundError",
    "FlagParseError",
    "FlagRedefinedError",
    "FlagSet",
    "HelpRequested",
    "Option",
    "OptionError",
    "OptionFileError",
    "OptionRecord",
    "OptionRegistrar",
    "UnsupportedOptionTypeError",
    "format_duration",
    "load_options",
    "parse_duration",
    "parse_options",
]
