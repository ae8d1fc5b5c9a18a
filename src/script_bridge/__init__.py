from .bridge import execute, run_function, run_tool
from .config import BridgeConfig
from .errors import (
    InputSchemaError,
    ScriptBridgeError,
    ScriptRuntimeError,
    ScriptTimeoutError,
    ScriptWriteError,
    SpawnError,
)
from .execution.subprocess_engine import SubprocessEngine
from .function_node import PythonFunctionNode
from .models import ExecutionRequest, ScriptOutcome
from .schema import schema_from_fields
from .tool import PythonTool
from .variables import SandboxVariable

__all__ = [
    "BridgeConfig",
    "ExecutionRequest",
    "InputSchemaError",
    "PythonFunctionNode",
    "PythonTool",
    "SandboxVariable",
    "ScriptBridgeError",
    "ScriptOutcome",
    "ScriptRuntimeError",
    "ScriptTimeoutError",
    "ScriptWriteError",
    "SpawnError",
    "SubprocessEngine",
    "execute",
    "run_function",
    "run_tool",
    "schema_from_fields",
]
