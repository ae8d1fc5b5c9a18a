from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ScriptJob:
    """One synthesized script ready to run under a deadline.

    `stdin_payload` is written to the child and then stdin is closed;
    `None` means the payload was inlined and nothing is written.

    Example:
        ```python
        job = ScriptJob(script="print(1)", interpreter_path="python", timeout_ms=5000)
        ```
    """

    script: str
    interpreter_path: str
    timeout_ms: int
    stdin_payload: str | None = None


@dataclass(slots=True)
class ProcessOutcome:
    """Normalized response returned by an execution engine.

    Example:
        ```python
        out = ProcessOutcome(stdout="42", stderr="", returncode=0, timed_out=False)
        ```
    """

    stdout: str
    stderr: str
    returncode: int | None
    timed_out: bool
    failure: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Return True when the script exited cleanly.

        Example:
            ```python
            ProcessOutcome("42", "", 0, False).ok  # True
            ```
        """
        return self.failure is None
