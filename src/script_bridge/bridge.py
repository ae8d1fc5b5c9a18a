from __future__ import annotations

import logging
from typing import Any, Mapping

from pydantic import BaseModel

from .config import BridgeConfig, resolve_config
from .decoder import to_outcome
from .errors import InputSchemaError
from .execution.engine import ExecutionEngine
from .execution.subprocess_engine import SubprocessEngine
from .execution.types import ScriptJob
from .models import FUNCTION_STRATEGY, TOOL_STRATEGY, ExecutionRequest, ScriptOutcome
from .schema import validate_arguments
from .synthesis.rewrite import DEFAULT_DIALECT
from .synthesis.synthesizer import (
    build_function_payload,
    build_tool_payload,
    encode_payload,
    synthesize_function_script,
    synthesize_tool_script,
)

logger = logging.getLogger(__name__)


def _build_job(request: ExecutionRequest) -> ScriptJob:
    """Synthesize the script for a request and package it for an engine.

    Example:
        ```python
        job = _build_job(ExecutionRequest(code="return 1", strategy="tool"))
        ```
    """
    if request.strategy == TOOL_STRATEGY:
        payload = build_tool_payload(
            request.named_variables, request.sandbox_variables, request.flow_context
        )
        return ScriptJob(
            script=synthesize_tool_script(
                request.code,
                dialect=request.dialect,
                flatten_input=request.flatten_input,
            ),
            interpreter_path=request.interpreter_path,
            timeout_ms=request.timeout_ms,
            stdin_payload=encode_payload(payload),
        )
    payload = build_function_payload(
        request.input_text,
        request.sandbox_variables,
        request.flow_context,
        request.named_variables,
    )
    return ScriptJob(
        script=synthesize_function_script(request.code, payload, list(request.named_variables)),
        interpreter_path=request.interpreter_path,
        timeout_ms=request.timeout_ms,
    )


def run_request(request: ExecutionRequest, engine: ExecutionEngine) -> ScriptOutcome:
    """Synthesize, execute, and decode one request.

    Example:
        ```python
        outcome = run_request(ExecutionRequest(code="result = 1"), SubprocessEngine())
        ```
    """
    outcome = to_outcome(engine.execute(_build_job(request)))
    if not outcome.ok:
        logger.debug("Script call failed with %s: %s", outcome.failure, outcome.error)
    return outcome


def execute(
    code: str,
    named_variables: Mapping[str, Any] | None = None,
    sandbox_variables: Mapping[str, Any] | None = None,
    flow_context: Mapping[str, Any] | None = None,
    *,
    strategy: str = FUNCTION_STRATEGY,
    input_text: str = "",
    dialect: str = DEFAULT_DIALECT,
    engine: ExecutionEngine | None = None,
    config: BridgeConfig | None = None,
    config_file: str | None = None,
) -> ScriptOutcome:
    """Run user code in a child interpreter and return its outcome.

    `strategy` is chosen by the caller: `"function"` inlines the payload and
    binds each named variable; `"tool"` streams the payload on stdin. Use
    `run_tool` when the arguments should be schema-validated first. `dialect`
    selects the rewrite rules applied to tool code.

    Example:
        ```python
        from script_bridge import execute
        outcome = execute("result = a + b", {"a": 1, "b": 2})
        ```
    """
    resolved = resolve_config(config, config_file)
    request = ExecutionRequest(
        code=code,
        named_variables=dict(named_variables or {}),
        sandbox_variables=dict(sandbox_variables or {}),
        flow_context=dict(flow_context or {}),
        interpreter_path=resolved.interpreter_path,
        timeout_ms=resolved.timeout_ms,
        strategy=strategy,
        input_text=input_text,
        dialect=dialect,
    )
    return run_request(request, engine or SubprocessEngine(temp_dir=resolved.temp_dir))


def run_tool(
    code: str,
    arguments: Any,
    *,
    schema: type[BaseModel] | None = None,
    sandbox_variables: Mapping[str, Any] | None = None,
    flow: Mapping[str, Any] | None = None,
    flatten_input: bool = True,
    dialect: str = DEFAULT_DIALECT,
    engine: ExecutionEngine | None = None,
    config: BridgeConfig | None = None,
    config_file: str | None = None,
) -> ScriptOutcome:
    """Validate tool arguments, then run the tool script with them on stdin.

    A schema mismatch returns an `InputSchemaError` outcome without spawning.

    Example:
        ```python
        outcome = run_tool("return $query.upper()", {"query": "books"}, schema=Schema)
        ```
    """
    resolved = resolve_config(config, config_file)
    try:
        validated = validate_arguments(schema, arguments)
    except InputSchemaError as exc:
        logger.debug("Rejected tool input: %s", exc)
        return ScriptOutcome(
            ok=False,
            failure=exc.kind,
            error=str(exc),
            raw_input=exc.raw_input,
        )
    request = ExecutionRequest(
        code=code,
        named_variables=validated,
        sandbox_variables=dict(sandbox_variables or {}),
        flow_context=dict(flow or {}),
        interpreter_path=resolved.interpreter_path,
        timeout_ms=resolved.timeout_ms,
        strategy=TOOL_STRATEGY,
        flatten_input=flatten_input,
        dialect=dialect,
    )
    return run_request(request, engine or SubprocessEngine(temp_dir=resolved.temp_dir))


def run_function(
    code: str,
    input_variables: Mapping[str, Any] | None = None,
    *,
    input_text: str = "",
    sandbox_variables: Mapping[str, Any] | None = None,
    flow: Mapping[str, Any] | None = None,
    interpreter_path: str | None = None,
    engine: ExecutionEngine | None = None,
    config: BridgeConfig | None = None,
    config_file: str | None = None,
) -> ScriptOutcome:
    """Run a function-node body with its input variables bound by name.

    `interpreter_path` overrides the configured interpreter for this call.

    Example:
        ```python
        outcome = run_function("return a * 2", {"a": 21})
        ```
    """
    resolved = resolve_config(config, config_file).with_overrides(interpreter_path=interpreter_path)
    return execute(
        code,
        input_variables,
        sandbox_variables,
        flow,
        strategy=FUNCTION_STRATEGY,
        input_text=input_text,
        engine=engine,
        config=resolved,
    )
