from __future__ import annotations

import sys
from pathlib import Path

import pytest

from script_bridge import BridgeConfig


@pytest.fixture
def script_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "scripts"
    directory.mkdir()
    return directory


@pytest.fixture
def config(script_dir: Path) -> BridgeConfig:
    return BridgeConfig(interpreter_path=sys.executable, timeout_ms=20_000, temp_dir=str(script_dir))
