from __future__ import annotations

from pathlib import Path

import pytest

from aiomumble.__main__ import (
    _build_parser,
    build_config,
    load_connection_factory,
    main,
    prompt_value,
)


def _answers(*values: str):
    remaining = list(values)
    prompts: list[str] = []

    def _read(prompt: str) -> str:
        prompts.append(prompt)
        if not remaining:
            raise EOFError
        return remaining.pop(0)

    return _read, prompts


def test_prompt_keeps_default_on_blank_line() -> None:
    read, prompts = _answers("   ")

    assert prompt_value("server name", "127.0.0.1", read) == "127.0.0.1"
    assert "keep the default value '127.0.0.1'" in prompts[0]


def test_prompt_keeps_default_on_eof() -> None:
    read, _prompts = _answers()

    assert prompt_value("user name", "SuperUser", read) == "SuperUser"


def test_build_config_prompts_for_each_value() -> None:
    args = _build_parser().parse_args([])
    read, prompts = _answers("voice.example.org", "", "alice", "secret")

    config = build_config(args, read)

    assert len(prompts) == 4
    assert config.host == "voice.example.org"
    assert config.port == 64738
    assert config.username == "alice"
    assert config.password == "secret"


def test_build_config_from_flags_without_prompting() -> None:
    args = _build_parser().parse_args(
        ["--host", "h", "--port", "1234", "--token", "a", "--token", "b", "--no-prompt"]
    )

    def _read(_prompt: str) -> str:
        raise AssertionError("should not prompt")

    config = build_config(args, _read)

    assert config.host == "h"
    assert config.port == 1234
    assert config.tokens == ["a", "b"]


def test_build_config_reads_config_file(tmp_path: Path) -> None:
    path = tmp_path / "session.json"
    path.write_text('{"host": "from-file", "username": "bob"}', encoding="utf-8")
    args = _build_parser().parse_args(["--config", str(path), "--no-prompt"])

    config = build_config(args)

    assert config.host == "from-file"
    assert config.username == "bob"


def test_build_config_rejects_invalid_port() -> None:
    args = _build_parser().parse_args([])
    read, _prompts = _answers("", "not-a-port")

    with pytest.raises(ValueError, match="Invalid port 'not-a-port'"):
        build_config(args, read)


def test_load_connection_factory() -> None:
    assert load_connection_factory("aiomumble.models.core:Channel") is not None

    with pytest.raises(ValueError):
        load_connection_factory("no-colon")
    with pytest.raises(ValueError):
        load_connection_factory("aiomumble.missing_module:factory")
    with pytest.raises(ValueError):
        load_connection_factory("aiomumble.models.config:DEFAULT_PORT")


def test_main_requires_connection_factory() -> None:
    assert main(["--no-prompt"]) == 2


def test_main_reports_invalid_port(capsys: pytest.CaptureFixture[str]) -> None:
    code = main(
        ["--connection", "aiomumble.models.core:Channel", "--port", "99999", "--no-prompt"]
    )

    assert code == 2
    assert "Invalid port '99999'" in capsys.readouterr().err
