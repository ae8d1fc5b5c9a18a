from __future__ import annotations

from pathlib import Path

import pytest

from script_bridge import BridgeConfig, execute
from script_bridge.config import resolve_config


def test_defaults() -> None:
    config = BridgeConfig()
    assert config.interpreter_path == "python"
    assert config.timeout_ms == 10_000
    assert config.temp_dir is None


def test_from_env_reads_interpreter_and_timeout() -> None:
    config = BridgeConfig.from_env({"TOOL_PYTHON_PATH": "/usr/bin/python3", "TOOL_PYTHON_TIMEOUT": "2500"})
    assert config.interpreter_path == "/usr/bin/python3"
    assert config.timeout_ms == 2500


def test_from_env_ignores_empty_values() -> None:
    config = BridgeConfig.from_env({"TOOL_PYTHON_PATH": "  ", "TOOL_PYTHON_TIMEOUT": ""})
    assert config == BridgeConfig()


@pytest.mark.parametrize("raw", ["abc", "0", "-5", "1.5"])
def test_from_env_rejects_bad_timeouts(raw: str) -> None:
    with pytest.raises(ValueError, match="TOOL_PYTHON_TIMEOUT"):
        BridgeConfig.from_env({"TOOL_PYTHON_TIMEOUT": raw})


def test_constructor_validation() -> None:
    with pytest.raises(ValueError, match="interpreter_path"):
        BridgeConfig(interpreter_path="")
    with pytest.raises(ValueError, match="timeout_ms"):
        BridgeConfig(timeout_ms=0)
    with pytest.raises(ValueError, match="timeout_ms"):
        BridgeConfig(timeout_ms=True)


def test_from_file_reads_bridge_table(tmp_path: Path) -> None:
    config_file = tmp_path / "bridge.toml"
    config_file.write_text(
        '[bridge]\ninterpreter_path = "python3"\ntimeout_ms = 1500\ntemp_dir = "/tmp/scripts"\n',
        encoding="utf-8",
    )
    config = BridgeConfig.from_file(str(config_file))
    assert config == BridgeConfig(interpreter_path="python3", timeout_ms=1500, temp_dir="/tmp/scripts")


def test_from_file_accepts_top_level_keys(tmp_path: Path) -> None:
    config_file = tmp_path / "bridge.toml"
    config_file.write_text("timeout_ms = 700\n", encoding="utf-8")
    assert BridgeConfig.from_file(str(config_file)).timeout_ms == 700


def test_from_file_missing(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="does not exist"):
        BridgeConfig.from_file(str(tmp_path / "nope.toml"))


def test_from_file_rejects_bad_temp_dir(tmp_path: Path) -> None:
    config_file = tmp_path / "bridge.toml"
    config_file.write_text("[bridge]\ntemp_dir = 5\n", encoding="utf-8")
    with pytest.raises(ValueError, match="temp_dir"):
        BridgeConfig.from_file(str(config_file))


def test_with_overrides() -> None:
    base = BridgeConfig(interpreter_path="python3", timeout_ms=500, temp_dir="/tmp/x")
    assert base.with_overrides() == base
    assert base.with_overrides(interpreter_path="pypy3").interpreter_path == "pypy3"
    assert base.with_overrides(timeout_ms=900).timeout_ms == 900
    assert base.with_overrides(timeout_ms=900).temp_dir == "/tmp/x"


def test_resolve_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TOOL_PYTHON_TIMEOUT", "1234")
    monkeypatch.delenv("TOOL_PYTHON_PATH", raising=False)
    assert resolve_config(None, None).timeout_ms == 1234

    explicit = BridgeConfig(timeout_ms=50)
    assert resolve_config(explicit, None) is explicit

    config_file = tmp_path / "bridge.toml"
    config_file.write_text("[bridge]\ntimeout_ms = 99\n", encoding="utf-8")
    assert resolve_config(None, str(config_file)).timeout_ms == 99

    with pytest.raises(ValueError, match="either 'config' or 'config_file'"):
        resolve_config(explicit, str(config_file))


def test_env_config_is_used_per_call(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    monkeypatch.setenv("TOOL_PYTHON_PATH", str(tmp_path / "absent-python"))
    monkeypatch.delenv("TOOL_PYTHON_TIMEOUT", raising=False)
    outcome = execute("result = 1")
    assert outcome.failure == "SpawnError"
    assert "absent-python" in (outcome.error or "")
