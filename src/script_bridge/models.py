from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from .config import DEFAULT_INTERPRETER_PATH, DEFAULT_TIMEOUT_MS
from .errors import FAILURE_KINDS, INPUT_SCHEMA_ERROR, InputSchemaError, error_for_kind
from .synthesis.rewrite import DEFAULT_DIALECT, rules_for_dialect

TOOL_STRATEGY = "tool"
FUNCTION_STRATEGY = "function"
STRATEGIES = frozenset({TOOL_STRATEGY, FUNCTION_STRATEGY})


@dataclass(frozen=True, slots=True)
class ExecutionRequest:
    """Everything one call needs; built once per call and never mutated.

    `dialect` picks the rewrite rules for tool code; function-node bodies are
    not rewritten.

    Example:
        ```python
        req = ExecutionRequest(code="result = a + b", named_variables={"a": 1, "b": 2})
        ```
    """

    code: str
    named_variables: Mapping[str, Any] = field(default_factory=dict)
    sandbox_variables: Mapping[str, Any] = field(default_factory=dict)
    flow_context: Mapping[str, Any] = field(default_factory=dict)
    interpreter_path: str = DEFAULT_INTERPRETER_PATH
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    strategy: str = FUNCTION_STRATEGY
    input_text: str = ""
    flatten_input: bool = True
    dialect: str = DEFAULT_DIALECT

    def __post_init__(self) -> None:
        """Validate the strategy and dialect names.

        Example:
            ```python
            ExecutionRequest(code="return 1", strategy="tool")
            ```
        """
        if self.strategy not in STRATEGIES:
            raise ValueError("strategy must be 'tool' or 'function'")
        rules_for_dialect(self.dialect)


@dataclass(slots=True)
class ScriptOutcome:
    """Tagged result of one call: a decoded value or a classified failure.

    Example:
        ```python
        outcome = ScriptOutcome(ok=True, value=42)
        ```
    """

    ok: bool
    value: Any = None
    failure: str | None = None
    error: str | None = None
    stderr: str = ""
    exit_code: int | None = None
    timed_out: bool = False
    raw_input: str | None = None

    def __post_init__(self) -> None:
        """Check that failures carry a known kind and successes carry none.

        Example:
            ```python
            ScriptOutcome(ok=False, failure="SpawnError", error="not found")
            ```
        """
        if self.ok and self.failure is not None:
            raise ValueError("A successful outcome cannot carry a failure kind")
        if not self.ok and self.failure not in FAILURE_KINDS:
            raise ValueError(f"Unknown failure kind: {self.failure}")

    def raise_for_failure(self) -> None:
        """Raise the exception matching this outcome's failure kind, if any.

        Example:
            ```python
            outcome.raise_for_failure()
            value = outcome.value
            ```
        """
        if self.ok:
            return
        message = self.error or str(self.failure)
        if self.failure == INPUT_SCHEMA_ERROR:
            raise InputSchemaError(message, raw_input=self.raw_input or "", stderr=self.stderr)
        raise error_for_kind(str(self.failure))(message, stderr=self.stderr)
