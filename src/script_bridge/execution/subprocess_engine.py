from __future__ import annotations

import contextlib
import logging
import secrets
import subprocess
import tempfile
import threading
import time
from pathlib import Path
from typing import IO

from ..errors import RUNTIME_ERROR, SCRIPT_WRITE_ERROR, SPAWN_ERROR, TIMEOUT_ERROR
from .types import ProcessOutcome, ScriptJob

logger = logging.getLogger(__name__)

SCRIPT_PREFIX = "script_bridge_"
_READ_CHUNK_BYTES = 64 * 1024
# Upper bound on waiting for pipe EOF once the child is gone; a grandchild
# that inherited the pipes can keep them open indefinitely.
_READER_GRACE_SECONDS = 5.0


def script_file_name() -> str:
    """Return a unique temporary script name from a timestamp and a random suffix.

    Example:
        ```python
        name = script_file_name()  # "script_bridge_1718000000000_3fa9c1d2e4b5.py"
        ```
    """
    return f"{SCRIPT_PREFIX}{int(time.time() * 1000)}_{secrets.token_hex(6)}.py"


def _drain(stream: IO[bytes], chunks: list[bytes]) -> None:
    """Read a child stream to EOF, appending chunks as they arrive.

    Example:
        ```python
        threading.Thread(target=_drain, args=(process.stdout, chunks)).start()
        ```
    """
    try:
        for chunk in iter(lambda: stream.read1(_READ_CHUNK_BYTES), b""):
            chunks.append(chunk)
    finally:
        stream.close()


def _decode(chunks: list[bytes]) -> str:
    """Join captured chunks into text.

    Example:
        ```python
        text = _decode([b"hello ", b"world"])
        ```
    """
    return b"".join(chunks).decode("utf-8", errors="replace")


def _remove_script(path: Path) -> None:
    """Delete the temporary script; failures are logged and never raised.

    Example:
        ```python
        _remove_script(Path("/tmp/script_bridge_1_ab.py"))
        ```
    """
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Failed to remove temporary script %s: %s", path, exc)


class _Deadline:
    """Wall-clock budget for one child; settles the exit/deadline race exactly once.

    The budget runs from `started` (a `time.monotonic()` reading taken when the
    call began), so time spent writing the script counts against it.

    Example:
        ```python
        deadline = _Deadline(process, timeout_ms=5000, started=time.monotonic())
        deadline.start()
        ```
    """

    def __init__(self, process: subprocess.Popen[bytes], timeout_ms: int, *, started: float) -> None:
        """Prepare the timer for whatever budget remains, without starting it.

        Example:
            ```python
            deadline = _Deadline(process, 1000, started=time.monotonic())
            ```
        """
        self._process = process
        self._timeout_ms = timeout_ms
        self._lock = threading.Lock()
        self._settled = False
        self.fired = False
        remaining = timeout_ms / 1000 - (time.monotonic() - started)
        self._timer = threading.Timer(max(remaining, 0.0), self._expire)
        self._timer.daemon = True

    def start(self) -> None:
        """Arm the timer.

        Example:
            ```python
            deadline.start()
            ```
        """
        self._timer.start()

    def settle(self) -> None:
        """Record that the child exited; a later expiry is ignored.

        Example:
            ```python
            process.wait()
            deadline.settle()
            ```
        """
        with self._lock:
            self._settled = True
        self._timer.cancel()

    def _expire(self) -> None:
        """Kill the child if it has not exited yet.

        Example:
            ```python
            deadline._expire()
            ```
        """
        with self._lock:
            # An exit that beat the timer counts even if `settle` has not run yet.
            if self._settled or self._process.poll() is not None:
                return
            self._settled = True
            self.fired = True
        logger.info(
            "Killing script process %s after %s ms deadline", self._process.pid, self._timeout_ms
        )
        # Popen.kill sends SIGKILL on POSIX and TerminateProcess on Windows.
        self._process.kill()


class SubprocessEngine:
    """Run synthesized scripts in a child interpreter with a deadline and guaranteed cleanup.

    The engine holds no per-call state, so one instance can serve concurrent
    callers on different threads.

    Example:
        ```python
        engine = SubprocessEngine(temp_dir="/tmp")
        outcome = engine.execute(ScriptJob(script="print(1)", interpreter_path="python3", timeout_ms=5000))
        ```
    """

    def __init__(self, *, temp_dir: str | None = None) -> None:
        """Initialize the engine with an optional directory for temporary scripts.

        Example:
            ```python
            engine = SubprocessEngine()
            ```
        """
        self._temp_dir = Path(temp_dir).expanduser() if temp_dir else None

    def execute(self, job: ScriptJob) -> ProcessOutcome:
        """Persist, run, and classify one script; the temp file is gone on return.

        Example:
            ```python
            outcome = engine.execute(ScriptJob(script="print(42)", interpreter_path="python3", timeout_ms=2000))
            ```
        """
        started = time.monotonic()
        script_path = self._script_dir() / script_file_name()
        created = False
        try:
            with open(script_path, "x", encoding="utf-8") as handle:
                created = True
                handle.write(job.script)
        except (OSError, UnicodeError) as exc:
            if created:
                _remove_script(script_path)
            return ProcessOutcome(
                stdout="",
                stderr="",
                returncode=None,
                timed_out=False,
                failure=SCRIPT_WRITE_ERROR,
                error=f"Failed to write temporary script {script_path}: {exc}",
            )
        try:
            return self._run(job, script_path, started)
        finally:
            _remove_script(script_path)

    def _run(self, job: ScriptJob, script_path: Path, started: float) -> ProcessOutcome:
        """Spawn the interpreter against a written script and collect its outcome.

        Example:
            ```python
            outcome = engine._run(job, Path("/tmp/script_bridge_1_ab.py"), time.monotonic())
            ```
        """
        cmd = [job.interpreter_path, str(script_path)]
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as exc:
            return ProcessOutcome(
                stdout="",
                stderr="",
                returncode=None,
                timed_out=False,
                failure=SPAWN_ERROR,
                error=f"Failed to start interpreter '{job.interpreter_path}': {exc}",
            )
        logger.debug("Started script process %s: %s", process.pid, cmd)

        deadline = _Deadline(process, job.timeout_ms, started=started)
        deadline.start()
        stdout_chunks: list[bytes] = []
        stderr_chunks: list[bytes] = []
        readers = [
            threading.Thread(target=_drain, args=(process.stdout, stdout_chunks), daemon=True),
            threading.Thread(target=_drain, args=(process.stderr, stderr_chunks), daemon=True),
        ]
        try:
            for reader in readers:
                reader.start()
            self._send_payload(process, job.stdin_payload)
            returncode = process.wait()
        finally:
            deadline.settle()
            if process.poll() is None:
                process.kill()
                process.wait()
        for reader in readers:
            reader.join(timeout=_READER_GRACE_SECONDS)
        if any(reader.is_alive() for reader in readers):
            logger.warning(
                "Script process %s exited but its output pipes are still open after %s s; "
                "returning the output captured so far",
                process.pid,
                _READER_GRACE_SECONDS,
            )

        # Copies, since a reader that outlived the grace period may still append.
        stdout = _decode(list(stdout_chunks))
        stderr = _decode(list(stderr_chunks))
        logger.debug("Script process %s exited with code %s", process.pid, returncode)

        if deadline.fired:
            return ProcessOutcome(
                stdout=stdout,
                stderr=stderr,
                returncode=returncode,
                timed_out=True,
                failure=TIMEOUT_ERROR,
                error=f"Script timed out after {job.timeout_ms} ms",
            )
        if returncode != 0:
            detail = stderr.strip() or stdout.strip()
            return ProcessOutcome(
                stdout=stdout,
                stderr=stderr,
                returncode=returncode,
                timed_out=False,
                failure=RUNTIME_ERROR,
                error=f"Script exited with code {returncode}: {detail}",
            )
        return ProcessOutcome(
            stdout=stdout.strip(),
            stderr=stderr,
            returncode=returncode,
            timed_out=False,
        )

    @staticmethod
    def _send_payload(process: subprocess.Popen[bytes], payload: str | None) -> None:
        """Write the payload (if any) to the child's stdin and close it.

        Example:
            ```python
            SubprocessEngine._send_payload(process, '{"input": {}}')
            ```
        """
        stdin = process.stdin
        if stdin is None:
            return
        try:
            if payload is not None:
                stdin.write(payload.encode("utf-8"))
            stdin.close()
        except OSError as exc:
            # The child exited (or was killed) before reading all of its input;
            # its exit status decides the outcome.
            logger.debug("Script process %s closed stdin early: %s", process.pid, exc)
            with contextlib.suppress(OSError):
                stdin.close()

    def _script_dir(self) -> Path:
        """Return the directory that receives temporary scripts.

        Example:
            ```python
            directory = engine._script_dir()
            ```
        """
        return self._temp_dir or Path(tempfile.gettempdir())
