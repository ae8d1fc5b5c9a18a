from .engine import ExecutionEngine
from .subprocess_engine import SubprocessEngine
from .types import ProcessOutcome, ScriptJob

__all__ = [
    "ExecutionEngine",
    "ProcessOutcome",
    "ScriptJob",
    "SubprocessEngine",
]
