from __future__ import annotations

INPUT_SCHEMA_ERROR = "InputSchemaError"
SCRIPT_WRITE_ERROR = "ScriptWriteError"
SPAWN_ERROR = "SpawnError"
TIMEOUT_ERROR = "TimeoutError"
RUNTIME_ERROR = "RuntimeError"

FAILURE_KINDS = frozenset(
    {
        INPUT_SCHEMA_ERROR,
        SCRIPT_WRITE_ERROR,
        SPAWN_ERROR,
        TIMEOUT_ERROR,
        RUNTIME_ERROR,
    }
)


class ScriptBridgeError(Exception):
    """Base class for failures raised from a script outcome.

    Example:
        ```python
        raise ScriptBridgeError("Script exited with code 1", stderr="boom")
        ```
    """

    kind = "ScriptBridgeError"

    def __init__(self, message: str, *, stderr: str = "") -> None:
        """Store the message and any captured error-stream text.

        Example:
            ```python
            err = ScriptBridgeError("failed", stderr="Traceback ...")
            ```
        """
        super().__init__(message)
        self.stderr = stderr


class InputSchemaError(ScriptBridgeError):
    """Tool arguments did not match the declared schema; nothing was spawned."""

    kind = INPUT_SCHEMA_ERROR

    def __init__(self, message: str, *, raw_input: str = "", stderr: str = "") -> None:
        """Keep the offending input for diagnostics.

        Example:
            ```python
            err = InputSchemaError("Received tool input did not match expected schema", raw_input="{}")
            ```
        """
        super().__init__(message, stderr=stderr)
        self.raw_input = raw_input


class ScriptWriteError(ScriptBridgeError):
    kind = SCRIPT_WRITE_ERROR


class SpawnError(ScriptBridgeError):
    kind = SPAWN_ERROR


class ScriptTimeoutError(ScriptBridgeError):
    kind = TIMEOUT_ERROR


class ScriptRuntimeError(ScriptBridgeError):
    kind = RUNTIME_ERROR


_ERRORS_BY_KIND: dict[str, type[ScriptBridgeError]] = {
    INPUT_SCHEMA_ERROR: InputSchemaError,
    SCRIPT_WRITE_ERROR: ScriptWriteError,
    SPAWN_ERROR: SpawnError,
    TIMEOUT_ERROR: ScriptTimeoutError,
    RUNTIME_ERROR: ScriptRuntimeError,
}


def error_for_kind(kind: str) -> type[ScriptBridgeError]:
    """Return the exception class registered for a failure kind.

    Example:
        ```python
        cls = error_for_kind("TimeoutError")  # ScriptTimeoutError
        ```
    """
    try:
        return _ERRORS_BY_KIND[kind]
    except KeyError:
        raise ValueError(f"Unknown failure kind: {kind}") from None
