from __future__ import annotations

import contextlib
import json
import logging
from typing import Any, Iterable, Mapping

from .bridge import run_function
from .config import BridgeConfig
from .execution.engine import ExecutionEngine
from .models import ScriptOutcome
from .variables import SandboxVariable, prepare_sandbox_vars

logger = logging.getLogger(__name__)

UNNAMED_FUNCTION = "<unnamed function>"


def coerce_input_variables(raw: Mapping[str, Any] | str | None) -> dict[str, Any]:
    """Normalize function-node input variables given as a mapping or JSON text.

    String values shaped like a JSON object are decoded when they parse;
    otherwise they stay strings.

    Example:
        ```python
        coerce_input_variables('{"a": 1, "cfg": "{\\"x\\": 2}"}')  # {"a": 1, "cfg": {"x": 2}}
        ```
    """
    if raw is None or raw == "":
        return {}
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except (ValueError, RecursionError) as exc:
            raise ValueError(f"Invalid JSON in the input variables: {exc}") from exc
    else:
        parsed = dict(raw)
    if not isinstance(parsed, dict):
        raise ValueError("Input variables must be a JSON object")

    for key, value in parsed.items():
        if isinstance(value, str) and value.startswith("{") and value.endswith("}"):
            with contextlib.suppress(ValueError, RecursionError):
                parsed[key] = json.loads(value)
    return parsed


def build_flow_context(
    *,
    input_text: str = "",
    chatflow_id: str | None = None,
    session_id: str | None = None,
    chat_id: str | None = None,
) -> dict[str, Any]:
    """Build the `flow` mapping a function node exposes to its body.

    Example:
        ```python
        flow = build_flow_context(input_text="hi", session_id="s1")
        ```
    """
    return {
        "chatflow_id": chatflow_id,
        "session_id": session_id,
        "chat_id": chat_id,
        "input": input_text,
    }


class PythonFunctionNode:
    """Pipeline node that runs a Python body and passes its return value on.

    The body sees `input_text`, `vars`, `flow`, and each input variable by name.
    `function_name` labels the node in failure logs.

    Example:
        ```python
        node = PythonFunctionNode(code="return a + b", input_variables={"a": 1, "b": 2})
        node.run()  # 3
        ```
    """

    def __init__(
        self,
        *,
        code: str,
        input_variables: Mapping[str, Any] | str | None = None,
        function_name: str | None = None,
        interpreter_path: str | None = None,
        variables: Iterable[SandboxVariable | Mapping[str, Any]] = (),
        engine: ExecutionEngine | None = None,
        config: BridgeConfig | None = None,
    ) -> None:
        """Validate and store the node definition.

        Example:
            ```python
            node = PythonFunctionNode(code="return input_text.upper()", interpreter_path="python3")
            ```
        """
        if not code or not code.strip():
            raise ValueError("PythonFunctionNode requires non-empty 'code'")
        self.code = code
        self.input_variables = coerce_input_variables(input_variables)
        self.function_name = function_name
        self.interpreter_path = interpreter_path.strip() if interpreter_path else None
        self._variables = list(variables)
        self._engine = engine
        self._config = config

    def execute(
        self,
        input_text: str = "",
        *,
        chatflow_id: str | None = None,
        session_id: str | None = None,
        chat_id: str | None = None,
    ) -> ScriptOutcome:
        """Run the node body and return the outcome without raising.

        Example:
            ```python
            outcome = node.execute("hello", session_id="s1")
            ```
        """
        outcome = run_function(
            self.code,
            self.input_variables,
            input_text=input_text,
            sandbox_variables=prepare_sandbox_vars(self._variables),
            flow=build_flow_context(
                input_text=input_text,
                chatflow_id=chatflow_id,
                session_id=session_id,
                chat_id=chat_id,
            ),
            interpreter_path=self.interpreter_path,
            engine=self._engine,
            config=self._config,
        )
        if not outcome.ok:
            logger.info(
                "Function node %s failed with %s: %s",
                self.function_name or UNNAMED_FUNCTION,
                outcome.failure,
                outcome.error,
            )
        return outcome

    def run(
        self,
        input_text: str = "",
        *,
        chatflow_id: str | None = None,
        session_id: str | None = None,
        chat_id: str | None = None,
    ) -> Any:
        """Run the node body and return its value, raising on failure.

        Example:
            ```python
            value = node.run("hello")
            ```
        """
        outcome = self.execute(
            input_text,
            chatflow_id=chatflow_id,
            session_id=session_id,
            chat_id=chat_id,
        )
        outcome.raise_for_failure()
        return outcome.value
