"""Helpers copied verbatim to the top of every synthesized script.

Only the standard library may be used here: the source text of this module
runs inside the child interpreter, where the package is not installed.
Every module-level name carries a `_bridge_`/`BRIDGE_` prefix so user code
can use ordinary names freely.
"""
import json as _bridge_json
import linecache as _bridge_linecache
import sys as _bridge_sys
import traceback as _bridge_traceback

BRIDGE_RETURN_NAME = "__bridge_return"
BRIDGE_FUNC_NAME = "__bridge_func"
BRIDGE_RESULT_NAME = "result"
BRIDGE_USER_CODE_FILENAME = "<user_code>"
BRIDGE_PAYLOAD_EXIT_CODE = 2


def _bridge_fail(message, exit_code=1):
    """Write a diagnostic line to stderr and exit non-zero.

    Example:
        ```python
        _bridge_fail("Failed to decode script payload", 2)
        ```
    """
    _bridge_sys.stderr.write(str(message).rstrip("\n") + "\n")
    _bridge_sys.stderr.flush()
    _bridge_sys.exit(exit_code)


def _bridge_load_payload(text):
    """Decode the payload JSON object; any decoding problem is fatal.

    Example:
        ```python
        payload = _bridge_load_payload('{"input": {"x": 1}}')
        ```
    """
    try:
        payload = _bridge_json.loads(text)
    except (ValueError, RecursionError) as exc:
        _bridge_fail(f"Failed to decode script payload: {exc}", BRIDGE_PAYLOAD_EXIT_CODE)
    if not isinstance(payload, dict):
        _bridge_fail("Script payload must be a JSON object", BRIDGE_PAYLOAD_EXIT_CODE)
    return payload


def _bridge_read_payload(stream):
    """Read the whole payload from a stream; empty input means `{}`.

    Example:
        ```python
        payload = _bridge_read_payload(sys.stdin)
        ```
    """
    return _bridge_load_payload(stream.read() or "{}")


def _bridge_bind_fields(namespace, fields):
    """Bind identifier-shaped keys of a mapping as names in `namespace`.

    Example:
        ```python
        _bridge_bind_fields(globals(), {"query": "books", "not-a-name": 1})
        ```
    """
    if not isinstance(fields, dict):
        return
    for key, value in fields.items():
        if isinstance(key, str) and key.isidentifier():
            namespace[key] = value


def _bridge_text(value):
    """Return `str(value)`, or the default object repr if `__str__` itself fails.

    Example:
        ```python
        _bridge_text(object())  # "<object object at 0x...>"
        ```
    """
    try:
        return str(value)
    except Exception:
        return object.__repr__(value)


def _bridge_to_jsonable(value, _path=()):
    """Coerce a value tree into JSON types, turning unknown leaves into text.

    Containers already on the current path (cycles) are rendered as text.

    Example:
        ```python
        _bridge_to_jsonable({"when": datetime.date(2024, 1, 2), (1, 2): {1, 2}})
        ```
    """
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (dict, list, tuple)):
        if id(value) in _path:
            return _bridge_text(value)
        path = _path + (id(value),)
        if isinstance(value, dict):
            return {
                key if isinstance(key, str) else _bridge_text(key): _bridge_to_jsonable(item, path)
                for key, item in value.items()
            }
        return [_bridge_to_jsonable(item, path) for item in value]
    return _bridge_text(value)


def _bridge_encode_result(value):
    """Encode the chosen result as one JSON line; this never raises.

    Example:
        ```python
        _bridge_encode_result({"n": 1, "obj": object()})
        ```
    """
    try:
        return _bridge_json.dumps(value, default=_bridge_text)
    except (TypeError, ValueError, RecursionError):
        pass
    try:
        return _bridge_json.dumps(_bridge_to_jsonable(value), default=_bridge_text)
    except (TypeError, ValueError, RecursionError):
        return _bridge_json.dumps(_bridge_text(value))


def _bridge_from_user_func(bindings, payload):
    """Result source 1: a callable bound to `__bridge_func`, called with the payload.

    Example:
        ```python
        found, value = _bridge_from_user_func({"__bridge_func": len}, {"a": 1})  # (True, 1)
        ```
    """
    func = bindings.get(BRIDGE_FUNC_NAME)
    if callable(func):
        return True, func(payload)
    return False, None


def _bridge_from_return_capture(bindings, payload):
    """Result source 2: the capture variable written by `return` rewriting.

    Example:
        ```python
        found, value = _bridge_from_return_capture({"__bridge_return": 42}, {})  # (True, 42)
        ```
    """
    if BRIDGE_RETURN_NAME in bindings:
        return True, bindings[BRIDGE_RETURN_NAME]
    return False, None


def _bridge_from_result_variable(bindings, payload):
    """Result source 3: a variable literally named `result`.

    Example:
        ```python
        found, value = _bridge_from_result_variable({"result": "ok"}, {})  # (True, "ok")
        ```
    """
    if BRIDGE_RESULT_NAME in bindings:
        return True, bindings[BRIDGE_RESULT_NAME]
    return False, None


BRIDGE_RESULT_SOURCES = (
    _bridge_from_user_func,
    _bridge_from_return_capture,
    _bridge_from_result_variable,
)


def _bridge_select_result(bindings, payload):
    """Pick the script result from the first source that has one, else None.

    Example:
        ```python
        value = _bridge_select_result({"__bridge_return": 1, "result": 2}, {})  # 1
        ```
    """
    for source in BRIDGE_RESULT_SOURCES:
        found, value = source(bindings, payload)
        if found:
            return value
    return None


def _bridge_emit(value, stream=None):
    """Write the encoded result as the sole output line.

    Example:
        ```python
        _bridge_emit({"answer": 42})
        ```
    """
    stream = stream if stream is not None else _bridge_sys.stdout
    stream.write(_bridge_encode_result(value) + "\n")
    stream.flush()


def _bridge_report_error(exc, stream=None):
    """Write a structured error value for an uncaught exception.

    Example:
        ```python
        _bridge_report_error(ValueError("bad input"))
        ```
    """
    stream = stream if stream is not None else _bridge_sys.stderr
    error = {"error": _bridge_text(exc), "type": type(exc).__name__}
    stream.write(_bridge_json.dumps(error) + "\n")
    stream.flush()


def _bridge_exec(source, namespace):
    """Compile and run user code in `namespace`; errors print a traceback and exit 1.

    Example:
        ```python
        _bridge_exec("result = 1 + 1", globals())
        ```
    """
    _bridge_linecache.cache[BRIDGE_USER_CODE_FILENAME] = (
        len(source),
        None,
        source.splitlines(True),
        BRIDGE_USER_CODE_FILENAME,
    )
    try:
        exec(compile(source, BRIDGE_USER_CODE_FILENAME, "exec"), namespace)
    except Exception:
        _bridge_traceback.print_exc(file=_bridge_sys.stderr)
        _bridge_sys.exit(1)


def _bridge_resolve(bindings, payload):
    """Select the result; an error raised by the user callable is fatal.

    Example:
        ```python
        value = _bridge_resolve(globals(), payload)
        ```
    """
    try:
        return _bridge_select_result(bindings, payload)
    except Exception:
        _bridge_traceback.print_exc(file=_bridge_sys.stderr)
        _bridge_sys.exit(1)
