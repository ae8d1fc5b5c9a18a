from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

INTERPRETER_ENV_VAR = "TOOL_PYTHON_PATH"
TIMEOUT_ENV_VAR = "TOOL_PYTHON_TIMEOUT"
DEFAULT_INTERPRETER_PATH = "python"
DEFAULT_TIMEOUT_MS = 10_000


def _parse_timeout_ms(value: Any, source: str) -> int:
    """Validate a millisecond timeout coming from env, TOML, or code.

    Example:
        ```python
        timeout_ms = _parse_timeout_ms("2500", "TOOL_PYTHON_TIMEOUT")
        ```
    """
    if isinstance(value, bool):
        raise ValueError(f"'{source}' must be a positive integer number of milliseconds")
    try:
        timeout_ms = int(value)
    except (TypeError, ValueError):
        raise ValueError(
            f"'{source}' must be a positive integer number of milliseconds, got {value!r}"
        ) from None
    if timeout_ms <= 0:
        raise ValueError(f"'{source}' must be a positive integer number of milliseconds")
    return timeout_ms


def _read_config_toml(path: Path) -> dict[str, Any]:
    """Read a bridge TOML file and return its settings table.

    Example:
        ```python
        raw = _read_config_toml(Path("/tmp/bridge.toml"))
        ```
    """
    if not path.exists():
        raise ValueError(f"Config file does not exist: {path}")
    raw = tomllib.loads(path.read_text(encoding="utf-8"))
    bridge_obj = raw.get("bridge", raw)
    if not isinstance(bridge_obj, dict):
        raise ValueError("Bridge config must be a TOML table")
    return bridge_obj


@dataclass(frozen=True, slots=True)
class BridgeConfig:
    """Process-wide settings resolved once per call and passed to the engine.

    Example:
        ```python
        config = BridgeConfig(interpreter_path="python3", timeout_ms=5000)
        ```
    """

    interpreter_path: str = DEFAULT_INTERPRETER_PATH
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    temp_dir: str | None = None

    def __post_init__(self) -> None:
        """Validate interpreter path and timeout after initialization.

        Example:
            ```python
            BridgeConfig(timeout_ms=1000)
            ```
        """
        if not self.interpreter_path or not self.interpreter_path.strip():
            raise ValueError("interpreter_path must be a non-empty string")
        _parse_timeout_ms(self.timeout_ms, "timeout_ms")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "BridgeConfig":
        """Build a config from `TOOL_PYTHON_PATH` and `TOOL_PYTHON_TIMEOUT`.

        Unset or empty variables fall back to the defaults.

        Example:
            ```python
            config = BridgeConfig.from_env({"TOOL_PYTHON_TIMEOUT": "2000"})
            ```
        """
        env = os.environ if environ is None else environ
        interpreter = env.get(INTERPRETER_ENV_VAR, "").strip() or DEFAULT_INTERPRETER_PATH
        raw_timeout = env.get(TIMEOUT_ENV_VAR, "").strip()
        timeout_ms = (
            _parse_timeout_ms(raw_timeout, TIMEOUT_ENV_VAR) if raw_timeout else DEFAULT_TIMEOUT_MS
        )
        return cls(interpreter_path=interpreter, timeout_ms=timeout_ms)

    @classmethod
    def from_file(cls, config_path: str) -> "BridgeConfig":
        """Create a config from a TOML file with an optional `[bridge]` table.

        Example:
            ```python
            config = BridgeConfig.from_file("/tmp/bridge.toml")
            ```
        """
        raw = _read_config_toml(Path(config_path))
        temp_dir = raw.get("temp_dir")
        if temp_dir is not None and not isinstance(temp_dir, str):
            raise ValueError("'temp_dir' must be a string")
        return cls(
            interpreter_path=str(raw.get("interpreter_path", DEFAULT_INTERPRETER_PATH)),
            timeout_ms=_parse_timeout_ms(raw.get("timeout_ms", DEFAULT_TIMEOUT_MS), "timeout_ms"),
            temp_dir=temp_dir,
        )

    def with_overrides(
        self,
        *,
        interpreter_path: str | None = None,
        timeout_ms: int | None = None,
    ) -> "BridgeConfig":
        """Return a copy with per-call overrides applied.

        Example:
            ```python
            config = BridgeConfig().with_overrides(interpreter_path="python3")
            ```
        """
        return BridgeConfig(
            interpreter_path=interpreter_path or self.interpreter_path,
            timeout_ms=self.timeout_ms if timeout_ms is None else timeout_ms,
            temp_dir=self.temp_dir,
        )


def resolve_config(config: BridgeConfig | None, config_file: str | None) -> BridgeConfig:
    """Resolve the effective config object for a call.

    Example:
        ```python
        config = resolve_config(None, None)  # read from the environment
        ```
    """
    if config is not None and config_file is not None:
        raise ValueError("Provide either 'config' or 'config_file', not both")
    if config_file is not None:
        return BridgeConfig.from_file(config_file)
    if config is None:
        return BridgeConfig.from_env()
    return config
