from __future__ import annotations

from typing import Protocol

from .types import ProcessOutcome, ScriptJob


class ExecutionEngine(Protocol):
    def execute(self, job: ScriptJob) -> ProcessOutcome:
        """Run one synthesized script and return the classified process outcome.

        Example:
            ```python
            outcome = engine.execute(ScriptJob(script="print(1)", interpreter_path="python", timeout_ms=5000))
            ```
        """
        ...
