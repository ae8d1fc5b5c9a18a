from __future__ import annotations

import json
from typing import Any

from .execution.types import ProcessOutcome
from .models import ScriptOutcome


def decode_output(text: str) -> Any:
    """Decode script output as JSON, falling back to the raw text.

    Plain-text output is a valid result, and so is output nested too deeply
    for the JSON parser; neither raises.

    Example:
        ```python
        decode_output('{"a": 1}')  # {"a": 1}
        decode_output("hello world")  # "hello world"
        ```
    """
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        return text


def to_outcome(outcome: ProcessOutcome) -> ScriptOutcome:
    """Turn an engine outcome into the caller-facing outcome.

    Example:
        ```python
        result = to_outcome(ProcessOutcome(stdout="42", stderr="", returncode=0, timed_out=False))
        ```
    """
    if not outcome.ok:
        return ScriptOutcome(
            ok=False,
            failure=outcome.failure,
            error=outcome.error,
            stderr=outcome.stderr,
            exit_code=outcome.returncode,
            timed_out=outcome.timed_out,
        )
    return ScriptOutcome(
        ok=True,
        value=decode_output(outcome.stdout.strip()),
        stderr=outcome.stderr,
        exit_code=outcome.returncode,
    )
