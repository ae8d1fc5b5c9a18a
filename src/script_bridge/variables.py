from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

RUNTIME_VARIABLE = "runtime"
STATIC_VARIABLE = "static"


@dataclass(frozen=True, slots=True)
class SandboxVariable:
    """A host-declared variable exposed to scripts under `vars`.

    `runtime` variables take their value from the host environment at call time.

    Example:
        ```python
        var = SandboxVariable(name="API_BASE", value="https://example.com")
        ```
    """

    name: str
    value: Any = None
    type: str = STATIC_VARIABLE

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "SandboxVariable":
        """Build a variable from a stored `{name, value, type}` record.

        Example:
            ```python
            var = SandboxVariable.from_record({"name": "TOKEN", "type": "runtime"})
            ```
        """
        name = record.get("name")
        if not isinstance(name, str) or not name:
            raise ValueError("Sandbox variable records need a non-empty 'name'")
        return cls(
            name=name,
            value=record.get("value"),
            type=str(record.get("type") or STATIC_VARIABLE),
        )


def prepare_sandbox_vars(
    variables: Iterable[SandboxVariable | Mapping[str, Any]] | None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Resolve sandbox variables into the mapping scripts see as `vars`.

    Later variables with the same name replace earlier ones.

    Example:
        ```python
        vars_map = prepare_sandbox_vars([{"name": "HOME", "type": "runtime"}], environ={"HOME": "/root"})
        ```
    """
    env = os.environ if environ is None else environ
    resolved: dict[str, Any] = {}
    for item in variables or ():
        variable = item if isinstance(item, SandboxVariable) else SandboxVariable.from_record(item)
        if variable.type == RUNTIME_VARIABLE:
            resolved[variable.name] = env.get(variable.name, "")
        else:
            resolved[variable.name] = variable.value
    return resolved
