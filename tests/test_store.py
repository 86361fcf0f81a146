from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from popt.flags import FlagSet
from popt.store import ConfigStore, ConfigStoreError


def test_precedence_layers(tmp_path: Path) -> None:
    environ = {"APP_PORT": "9090"}
    store = ConfigStore(environ=environ)
    flags = FlagSet("app")
    port = flags.int_p("port", "p", 8080, "")

    store.set_default("port", 8080)
    store.bind_env("port", "APP_PORT")
    store.bind_flag("port", port)
    config = tmp_path / "app.json"
    config.write_text('{"port": 6060}', encoding="utf-8")
    store.read_config_file(config)

    assert store.get_int("port") == 9090
    environ.pop("APP_PORT")
    assert store.get_int("port") == 6060

    flags.parse(["--port", "7070"])
    assert store.get_int("port") == 7070

    store.set("port", 1)
    assert store.get_int("port") == 1


def test_flag_default_is_lowest_priority() -> None:
    store = ConfigStore(environ={})
    flags = FlagSet("app")
    flags.string_p("mode", "", "flag-default", "")
    store.bind_flag("mode", flags.lookup("mode"))

    assert store.get("mode") == "flag-default"
    assert not store.is_set("mode")
    store.set_default("mode", "store-default")
    assert store.get("mode") == "store-default"
    assert store.is_set("mode")


def test_empty_env_value_is_ignored() -> None:
    store = ConfigStore(environ={"NAME": ""})
    store.set_default("name", "World")
    store.bind_env("name", "NAME")
    assert store.get_string("name") == "World"


def test_bind_env_derives_name_from_prefix() -> None:
    store = ConfigStore(env_prefix="hello", environ={"HELLO_SERVER_HOST": "example.org"})
    store.bind_env("server.host")
    assert store.env_name("server.host") == "HELLO_SERVER_HOST"
    assert store.get("Server.Host") == "example.org"


def test_bind_env_requires_key() -> None:
    with pytest.raises(ConfigStoreError, match="missing key"):
        ConfigStore().bind_env("", "NAME")


def test_bind_flag_requires_flag() -> None:
    with pytest.raises(ConfigStoreError):
        ConfigStore().bind_flag("name", None)


def test_nested_keys_and_all_settings(tmp_path: Path) -> None:
    store = ConfigStore(environ={})
    store.set_default("server.port", 8080)
    store.set_default("server.host", "localhost")
    config = tmp_path / "app.yaml"
    config.write_text("Server:\n  Host: example.org\nDebug: true\n", encoding="utf-8")
    store.read_config_file(config)

    assert store.get("server.host") == "example.org"
    assert store.get_bool("debug") is True
    assert store.all_keys() == ["debug", "server.host", "server.port"]
    assert store.all_settings() == {"debug": True, "server": {"host": "example.org", "port": 8080}}


def test_config_file_formats(tmp_path: Path) -> None:
    toml_file = tmp_path / "app.toml"
    toml_file.write_text('[db]\nurl = "postgres://db"\npool = 5\n', encoding="utf-8")
    env_file = tmp_path / "settings"
    env_file.write_text("DB.POOL=10\nLOG_LEVEL=debug\n", encoding="utf-8")

    store = ConfigStore(environ={})
    store.read_config_file(toml_file)
    assert store.get_string("db.url") == "postgres://db"
    store.merge_config_file(env_file, config_type="env")
    assert store.get_int("db.pool") == 10
    assert store.get("db.url") == "postgres://db"
    assert store.get("log_level") == "debug"
    assert store.config_files == [toml_file, env_file]

    store.read_config_file(toml_file)
    assert store.get_int("db.pool") == 5
    assert store.get("log_level") is None


def test_config_file_errors(tmp_path: Path) -> None:
    store = ConfigStore()
    broken = tmp_path / "broken.json"
    broken.write_text("{", encoding="utf-8")
    listing = tmp_path / "list.yaml"
    listing.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ConfigStoreError, match="cannot parse"):
        store.read_config_file(broken)
    with pytest.raises(ConfigStoreError, match="mapping"):
        store.read_config_file(listing)
    with pytest.raises(ConfigStoreError, match="unsupported config type"):
        store.read_config_file(tmp_path / "app.ini")
    with pytest.raises(ConfigStoreError, match="cannot read"):
        store.read_config_file(tmp_path / "missing.json")


def test_typed_getters_cast_strings() -> None:
    store = ConfigStore(environ={})
    store.set("ratio", "0.25")
    store.set("enabled", "yes")
    store.set("timeout", "1m")
    store.set("grace", 5)
    store.set("port", "not-a-number")

    assert store.get_float("ratio") == 0.25
    assert store.get_bool("enabled") is True
    assert store.get_duration("timeout") == timedelta(minutes=1)
    assert store.get_duration("grace") == timedelta(seconds=5)
    assert store.get_string("timeout") == "1m"
    assert store.get_int("missing") == 0
    assert store.get_string("missing") == ""
    with pytest.raises(ConfigStoreError):
        store.get_int("port")
    with pytest.raises(ConfigStoreError):
        store.get_duration("port")


def test_bare_dotenv_file_is_env_type(tmp_path: Path) -> None:
    dotenv_file = tmp_path / ".env"
    dotenv_file.write_text("NAME=Brooklyn\n", encoding="utf-8")
    prod_file = tmp_path / "prod.env"
    prod_file.write_text("PORT=9090\n", encoding="utf-8")

    store = ConfigStore(environ={})
    store.read_config_file(dotenv_file)
    store.merge_config_file(prod_file)

    assert store.get("name") == "Brooklyn"
    assert store.get_int("port") == 9090
