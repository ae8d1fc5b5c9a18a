from __future__ import annotations

import json
from typing import Any, Iterable, Mapping

from pydantic import BaseModel

from .bridge import run_tool
from .config import BridgeConfig
from .synthesis.rewrite import DEFAULT_DIALECT
from .execution.engine import ExecutionEngine
from .models import ScriptOutcome
from .variables import SandboxVariable, prepare_sandbox_vars


class PythonTool:
    """A named, schema-validated tool whose body is user-authored Python.

    The body sees `input`, `vars`, and `flow`, can reference input fields as
    `$field` or `field`, and may end with a top-level `return`.

    Example:
        ```python
        tool = PythonTool(
            name="shout",
            description="Upper-case the query",
            code="return $query.upper()",
            schema=schema_from_fields([{"property": "query", "type": "string", "required": True}]),
        )
        tool.call({"query": "books"})  # "BOOKS"
        ```
    """

    def __init__(
        self,
        *,
        name: str,
        description: str,
        code: str,
        schema: type[BaseModel] | None = None,
        return_direct: bool = False,
        dialect: str = DEFAULT_DIALECT,
        engine: ExecutionEngine | None = None,
        config: BridgeConfig | None = None,
    ) -> None:
        """Store the tool definition; nothing runs until `call`.

        Example:
            ```python
            tool = PythonTool(name="echo", description="Echo input", code="return input")
            ```
        """
        if not name.strip():
            raise ValueError("PythonTool requires a non-empty 'name'")
        self.name = name
        self.description = description
        self.code = code
        self.schema = schema
        self.return_direct = return_direct
        self.dialect = dialect
        self._engine = engine
        self._config = config
        self._variables: list[SandboxVariable | Mapping[str, Any]] = []
        self._flow: dict[str, Any] = {}

    def set_variables(self, variables: Iterable[SandboxVariable | Mapping[str, Any]]) -> None:
        """Replace the sandbox variables exposed as `vars`.

        Example:
            ```python
            tool.set_variables([{"name": "API_KEY", "type": "runtime"}])
            ```
        """
        self._variables = list(variables)

    def set_flow_object(self, flow: Mapping[str, Any]) -> None:
        """Set the base flow object that per-call overrides are merged onto.

        Example:
            ```python
            tool.set_flow_object({"chatflow_id": "cf-1"})
            ```
        """
        self._flow = dict(flow)

    def run(self, arguments: Any, *, flow_overrides: Mapping[str, Any] | None = None) -> ScriptOutcome:
        """Execute the tool and return the outcome without raising.

        Example:
            ```python
            outcome = tool.run({"query": "books"}, flow_overrides={"session_id": "s1"})
            ```
        """
        return run_tool(
            self.code,
            arguments,
            schema=self.schema,
            sandbox_variables=prepare_sandbox_vars(self._variables),
            flow={**self._flow, **(flow_overrides or {})},
            dialect=self.dialect,
            engine=self._engine,
            config=self._config,
        )

    def call(self, arguments: Any, *, flow_overrides: Mapping[str, Any] | None = None) -> Any:
        """Execute the tool, raising on failure; truthy non-string results become JSON text.

        Example:
            ```python
            text = tool.call({"query": "books"})
            ```
        """
        outcome = self.run(arguments, flow_overrides=flow_overrides)
        outcome.raise_for_failure()
        value = outcome.value
        if value and not isinstance(value, str):
            return json.dumps(value)
        return value
