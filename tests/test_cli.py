from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path

from typer.testing import CliRunner

from popt.cli import _json_default, app

runner = CliRunner()
CLEAN_ENV = {"PORT": None, "HELLO_NAME": None}


def _options_file(tmp_path: Path) -> Path:
    path = tmp_path / "hello.json"
    path.write_text(
        json.dumps(
            [
                {"name": "name", "default": "World", "usage": "who to greet", "flag": "name", "short": "n", "env": "HELLO_NAME"},
                {"name": "server.port", "default": 8080, "usage": "listen port", "flag": "port", "short": "p", "env": "PORT"},
                {"default": False, "usage": "chatty output", "flag": "loud"},
            ]
        ),
        encoding="utf-8",
    )
    return path


def test_show_resolves_defaults(tmp_path: Path) -> None:
    result = runner.invoke(app, ["show", str(_options_file(tmp_path))], env=CLEAN_ENV)

    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"name": "World", "server": {"port": 8080}}


def test_show_env_config_and_flags(tmp_path: Path) -> None:
    options = _options_file(tmp_path)
    config = tmp_path / "hello.yaml"
    config.write_text('name: "Sunshine"\nserver:\n  port: 6060\n', encoding="utf-8")

    result = runner.invoke(
        app,
        ["show", str(options), "--config", str(config), "--", "--name", "Steve"],
        env={**CLEAN_ENV, "PORT": "9090"},
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"name": "Steve", "server": {"port": "9090"}}

    result = runner.invoke(
        app,
        ["show", str(options), "--config", str(config), "--", "-p", "7070"],
        env={**CLEAN_ENV, "PORT": "9090"},
    )
    assert json.loads(result.output) == {"name": "Sunshine", "server": {"port": 7070}}


def test_show_reads_dotenv_file(tmp_path: Path) -> None:
    dotenv_file = tmp_path / "hello.env"
    dotenv_file.write_text("HELLO_NAME=Brooklyn\n", encoding="utf-8")

    result = runner.invoke(
        app,
        ["show", str(_options_file(tmp_path)), "--dotenv", str(dotenv_file)],
        env=CLEAN_ENV,
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["name"] == "Brooklyn"


def test_show_reports_bad_flag(tmp_path: Path) -> None:
    result = runner.invoke(app, ["show", str(_options_file(tmp_path)), "--", "--port", "eighty"])

    assert result.exit_code == 1
    assert "eighty" in result.output


def test_show_reports_unsupported_option(tmp_path: Path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("- name: limits\n  default: {cpu: 2}\n  flag: limits\n", encoding="utf-8")

    result = runner.invoke(app, ["show", str(path)])

    assert result.exit_code == 1
    assert "unsupported option type: dict" in result.output


def test_usage_prints_flags(tmp_path: Path) -> None:
    result = runner.invoke(app, ["usage", str(_options_file(tmp_path))])

    assert result.exit_code == 0, result.output
    assert "-n, --name" in result.output
    assert "--loud / --no-loud" in result.output
    assert "listen port" in result.output


def test_json_output_formats_durations() -> None:
    payload = {"timeout": timedelta(seconds=30)}
    assert json.dumps(payload, default=_json_default) == '{"timeout": "30s"}'
