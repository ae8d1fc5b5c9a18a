from __future__ import annotations

import logging
import os
import re
import subprocess
import sys
import time
from pathlib import Path

import pytest

from script_bridge.errors import RUNTIME_ERROR, SCRIPT_WRITE_ERROR, SPAWN_ERROR, TIMEOUT_ERROR
from script_bridge.execution import ScriptJob, SubprocessEngine
from script_bridge.execution import subprocess_engine
from script_bridge.execution.subprocess_engine import _Deadline, script_file_name


def _job(script: str, *, timeout_ms: int = 20_000, stdin_payload: str | None = None) -> ScriptJob:
    return ScriptJob(
        script=script,
        interpreter_path=sys.executable,
        timeout_ms=timeout_ms,
        stdin_payload=stdin_payload,
    )


def test_script_names_are_unique_and_timestamped() -> None:
    names = {script_file_name() for _ in range(200)}
    assert len(names) == 200
    assert all(re.fullmatch(r"script_bridge_\d+_[0-9a-f]{12}\.py", name) for name in names)


def test_success_returns_trimmed_stdout(script_dir: Path) -> None:
    outcome = SubprocessEngine(temp_dir=str(script_dir)).execute(_job("print('  42  ')"))
    assert outcome.ok
    assert outcome.stdout == "42"
    assert outcome.returncode == 0
    assert list(script_dir.iterdir()) == []


def test_stdin_payload_is_delivered_and_closed(script_dir: Path) -> None:
    engine = SubprocessEngine(temp_dir=str(script_dir))
    outcome = engine.execute(_job("import sys\nprint(sys.stdin.read().upper())", stdin_payload="hi"))
    assert outcome.stdout == "HI"

    no_payload = engine.execute(_job("import sys\nprint(repr(sys.stdin.read()))"))
    assert no_payload.stdout == "''"


def test_non_zero_exit_reports_stderr(script_dir: Path) -> None:
    script = "import sys\nsys.stderr.write('bad things')\nsys.exit(3)"
    outcome = SubprocessEngine(temp_dir=str(script_dir)).execute(_job(script))
    assert outcome.failure == RUNTIME_ERROR
    assert outcome.returncode == 3
    assert "code 3" in (outcome.error or "")
    assert "bad things" in (outcome.error or "")
    assert list(script_dir.iterdir()) == []


def test_non_zero_exit_falls_back_to_stdout(script_dir: Path) -> None:
    outcome = SubprocessEngine(temp_dir=str(script_dir)).execute(_job("print('only stdout')\nraise SystemExit(4)"))
    assert outcome.failure == RUNTIME_ERROR
    assert "only stdout" in (outcome.error or "")


@pytest.mark.skipif(sys.platform == "win32", reason="pid liveness check uses POSIX signals")
def test_timeout_kills_child_and_removes_script(script_dir: Path, tmp_path: Path) -> None:
    pid_file = tmp_path / "child.pid"
    script = (
        "import os, time\n"
        f"open({str(pid_file)!r}, 'w').write(str(os.getpid()))\n"
        "time.sleep(30)\n"
    )
    outcome = SubprocessEngine(temp_dir=str(script_dir)).execute(_job(script, timeout_ms=3000))

    assert outcome.timed_out is True
    assert outcome.failure == TIMEOUT_ERROR
    assert "3000 ms" in (outcome.error or "")
    assert list(script_dir.iterdir()) == []
    pid = int(pid_file.read_text())
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)


def test_timeout_takes_precedence_over_exit_code(script_dir: Path) -> None:
    script = "import sys, time\nsys.stderr.write('partial')\nsys.stderr.flush()\ntime.sleep(30)"
    outcome = SubprocessEngine(temp_dir=str(script_dir)).execute(_job(script, timeout_ms=1000))
    assert outcome.failure == TIMEOUT_ERROR
    assert outcome.returncode != 0


def test_missing_interpreter_is_spawn_error(script_dir: Path) -> None:
    job = ScriptJob(script="print(1)", interpreter_path=str(script_dir / "no-such-python"), timeout_ms=1000)
    outcome = SubprocessEngine(temp_dir=str(script_dir)).execute(job)
    assert outcome.failure == SPAWN_ERROR
    assert "Failed to start interpreter" in (outcome.error or "")
    assert list(script_dir.iterdir()) == []


def test_unwritable_location_is_script_write_error(tmp_path: Path) -> None:
    engine = SubprocessEngine(temp_dir=str(tmp_path / "missing" / "dir"))
    outcome = engine.execute(_job("print(1)"))
    assert outcome.failure == SCRIPT_WRITE_ERROR
    assert "Failed to write temporary script" in (outcome.error or "")


def test_large_streams_do_not_deadlock(script_dir: Path) -> None:
    script = (
        "import sys\n"
        "sys.stderr.write('e' * 1_000_000)\n"
        "sys.stderr.flush()\n"
        "data = sys.stdin.read()\n"
        "sys.stdout.write('o' * 1_000_000)\n"
        "print(len(data))\n"
    )
    payload = "x" * 2_000_000
    outcome = SubprocessEngine(temp_dir=str(script_dir)).execute(_job(script, stdin_payload=payload))
    assert outcome.ok, outcome.error
    assert outcome.stdout.endswith("2000000")
    assert len(outcome.stderr) == 1_000_000


def test_child_that_ignores_stdin_is_not_an_error(script_dir: Path) -> None:
    outcome = SubprocessEngine(temp_dir=str(script_dir)).execute(
        _job("print('done')", stdin_payload="x" * 2_000_000)
    )
    assert outcome.ok
    assert outcome.stdout == "done"


def test_cleanup_failure_is_only_logged(
    script_dir: Path,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    def _refuse(self: Path, missing_ok: bool = False) -> None:
        raise PermissionError("read-only")

    monkeypatch.setattr(Path, "unlink", _refuse)
    with caplog.at_level(logging.WARNING, logger="script_bridge.execution.subprocess_engine"):
        outcome = SubprocessEngine(temp_dir=str(script_dir)).execute(_job("print(7)"))
    assert outcome.ok
    assert outcome.stdout == "7"
    assert "Failed to remove temporary script" in caplog.text


def _finished_process() -> subprocess.Popen[bytes]:
    process = subprocess.Popen([sys.executable, "-c", "pass"])
    process.wait()
    return process


def test_deadline_ignores_expiry_after_child_exit() -> None:
    deadline = _Deadline(_finished_process(), 60_000, started=time.monotonic())
    deadline._expire()
    assert deadline.fired is False


def test_deadline_budget_counts_from_call_start() -> None:
    process = _finished_process()
    late = _Deadline(process, 1000, started=time.monotonic() - 5)
    assert late._timer.interval == 0.0

    fresh = _Deadline(process, 1000, started=time.monotonic())
    assert 0.5 < fresh._timer.interval <= 1.0


def test_slow_script_write_uses_up_the_budget(script_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _slow_dir(self: SubprocessEngine) -> Path:
        time.sleep(1.5)
        return script_dir

    monkeypatch.setattr(SubprocessEngine, "_script_dir", _slow_dir)
    outcome = SubprocessEngine().execute(_job("import time\ntime.sleep(1.0)\nprint('done')", timeout_ms=2000))
    assert outcome.failure == TIMEOUT_ERROR
    assert list(script_dir.iterdir()) == []


@pytest.mark.skipif(sys.platform == "win32", reason="relies on POSIX pipe inheritance")
def test_grandchild_holding_pipes_does_not_block_the_call(
    script_dir: Path,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    monkeypatch.setattr(subprocess_engine, "_READER_GRACE_SECONDS", 0.5)
    script = (
        "import subprocess, sys\n"
        "subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(3)'])\n"
        "print('parent done')\n"
    )
    with caplog.at_level(logging.WARNING, logger="script_bridge.execution.subprocess_engine"):
        started = time.monotonic()
        outcome = SubprocessEngine(temp_dir=str(script_dir)).execute(_job(script))
        elapsed = time.monotonic() - started

    assert outcome.ok, outcome.error
    assert outcome.stdout == "parent done"
    assert elapsed < 2.5
    assert "output pipes are still open" in caplog.text
