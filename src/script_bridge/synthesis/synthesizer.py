from __future__ import annotations

import functools
import json
import keyword
import logging
from pathlib import Path
from typing import Any, Mapping, Sequence

from .rewrite import DEFAULT_DIALECT, rewrite_tool_code

logger = logging.getLogger(__name__)

FUNCTION_NAME = "_bridge_custom_function"
_INDENT = "    "


def _prelude_path() -> Path:
    """Return the absolute path to the prelude module file.

    Example:
        ```python
        path = _prelude_path()
        ```
    """
    return Path(__file__).resolve().with_name("prelude.py")


@functools.lru_cache(maxsize=1)
def prelude_source() -> str:
    """Return the prelude source text embedded at the top of every script.

    Example:
        ```python
        header = prelude_source()
        ```
    """
    return _prelude_path().read_text(encoding="utf-8").rstrip() + "\n"


def escape_payload_literal(text: str) -> str:
    """Escape text for embedding between `'''` delimiters in generated source.

    Backslashes are doubled and single quotes escaped, so the literal cannot be
    terminated early. Carriage returns and NUL bytes are escaped because the
    interpreter would otherwise normalize or reject them in source text.

    Example:
        ```python
        literal = "'''" + escape_payload_literal('{"a": "it\\'s"}') + "'''"
        ```
    """
    return (
        text.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace("\r", "\\r")
        .replace("\x00", "\\x00")
    )


def is_bindable_name(name: str) -> bool:
    """Return True if `name` can be assigned as a plain Python variable.

    Example:
        ```python
        is_bindable_name("query")  # True
        is_bindable_name("class")  # False
        ```
    """
    return name.isidentifier() and not keyword.iskeyword(name)


def _indent(code: str) -> str:
    """Indent every line of user code one level for embedding in a function body.

    Whitespace-only lines are indented like any other line, never blanked.

    Example:
        ```python
        body = _indent("x = 1\\nreturn x")
        ```
    """
    lines = code.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    return "\n".join(f"{_INDENT}{line}" for line in lines)


def build_tool_payload(
    arguments: Mapping[str, Any],
    sandbox_variables: Mapping[str, Any] | None = None,
    flow: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the stdin payload for the tool strategy.

    Example:
        ```python
        payload = build_tool_payload({"query": "books"}, {"api_key": "k"}, {"session_id": "s1"})
        ```
    """
    return {
        "input": dict(arguments),
        "vars": dict(sandbox_variables or {}),
        "flow": dict(flow or {}),
    }


def build_function_payload(
    input_text: str = "",
    sandbox_variables: Mapping[str, Any] | None = None,
    flow: Mapping[str, Any] | None = None,
    input_variables: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the inlined payload for the function-node strategy.

    Input variables are spread last, so one named `vars` replaces the sandbox
    variables in the payload.

    Example:
        ```python
        payload = build_function_payload("hi", {}, {"chat_id": "c1"}, {"a": 1})
        ```
    """
    return {
        "input_text": input_text,
        "vars": dict(sandbox_variables or {}),
        "flow": dict(flow or {}),
        **dict(input_variables or {}),
    }


def encode_payload(payload: Mapping[str, Any]) -> str:
    """Serialize a payload to JSON, coercing unknown values to text.

    Example:
        ```python
        text = encode_payload({"input": {"when": datetime.date.today()}})
        ```
    """
    return json.dumps(payload, default=str)


def synthesize_tool_script(
    code: str,
    *,
    dialect: str = DEFAULT_DIALECT,
    flatten_input: bool = True,
) -> str:
    """Build the tool-strategy script; its payload arrives on stdin.

    Binding order is `input`, `vars`, `flow`, then (when `flatten_input`) each
    identifier-shaped input field, so a field named `vars` shadows the sandbox
    variables.

    Example:
        ```python
        script = synthesize_tool_script("return $a + $b")
        ```
    """
    user_code = rewrite_tool_code(code, dialect)
    lines = [
        prelude_source(),
        "_bridge_payload = _bridge_read_payload(_bridge_sys.stdin)",
        "input = _bridge_payload.get('input') or {}",
        "vars = _bridge_payload.get('vars') or {}",
        "flow = _bridge_payload.get('flow') or {}",
    ]
    if flatten_input:
        lines.append("_bridge_bind_fields(globals(), input)")
    lines.extend(
        [
            "",
            f"_bridge_exec({user_code!r}, globals())",
            "_bridge_emit(_bridge_resolve(globals(), _bridge_payload))",
            "",
        ]
    )
    return "\n".join(lines)


def synthesize_function_script(
    code: str,
    payload: Mapping[str, Any],
    input_variable_names: Sequence[str] = (),
) -> str:
    """Build the function-node script with the payload inlined as a literal.

    The user body runs inside a generated zero-argument function. When the body
    falls off its end the function returns its local `result`, if any.

    Example:
        ```python
        payload = build_function_payload(input_variables={"a": 1, "b": 2})
        script = synthesize_function_script("result = a + b", payload, ["a", "b"])
        ```
    """
    literal = escape_payload_literal(encode_payload(payload))
    lines = [
        prelude_source(),
        f"_bridge_payload = _bridge_load_payload('''{literal}''')",
        "input_text = _bridge_payload.get('input_text', '')",
        "vars = _bridge_payload.get('vars') or {}",
        "flow = _bridge_payload.get('flow') or {}",
    ]
    for name in input_variable_names:
        if not is_bindable_name(name):
            logger.warning("Skipping input variable %r: not a valid Python identifier", name)
            continue
        lines.append(f"{name} = _bridge_payload.get({name!r})")
    lines.extend(
        [
            "",
            "",
            f"def {FUNCTION_NAME}():",
            _indent(code),
            f"{_INDENT}return locals().get('result')",
            "",
            "",
            "try:",
            f"{_INDENT}_bridge_result = {FUNCTION_NAME}()",
            "except Exception as _bridge_exc:",
            f"{_INDENT}_bridge_report_error(_bridge_exc)",
            f"{_INDENT}_bridge_sys.exit(1)",
            "_bridge_emit(_bridge_result)",
            "",
        ]
    )
    return "\n".join(lines)
