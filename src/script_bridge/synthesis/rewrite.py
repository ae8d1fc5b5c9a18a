from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence

from .prelude import BRIDGE_RETURN_NAME

DEFAULT_DIALECT = "python"


@dataclass(frozen=True, slots=True)
class RewriteRule:
    """One regex substitution applied to user code before it is embedded.

    Example:
        ```python
        rule = RewriteRule("strip-sigil", re.compile(r"\\$(\\w+)"), r"\\1")
        ```
    """

    name: str
    pattern: re.Pattern[str]
    replacement: str

    def apply(self, code: str) -> str:
        """Return `code` with every match of this rule replaced.

        Example:
            ```python
            SIGIL_RULE.apply("result = $query")  # "result = query"
            ```
        """
        return self.pattern.sub(self.replacement, code)


# `$query` -> `query`
SIGIL_RULE = RewriteRule(
    "strip-sigil",
    re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)"),
    r"\1",
)

# `return` alone on a column-0 line (optionally followed by a comment).
BARE_RETURN_RULE = RewriteRule(
    "bare-return",
    re.compile(r"^return[ \t]*(?=#|$)", re.MULTILINE),
    f"{BRIDGE_RETURN_NAME} = None ",
)

# Column-0 `return <expr>`; indented returns belong to user functions and stay.
TOP_LEVEL_RETURN_RULE = RewriteRule(
    "top-level-return",
    re.compile(r"^return\b[ \t]*", re.MULTILINE),
    f"{BRIDGE_RETURN_NAME} = ",
)

PYTHON_TOOL_RULES: tuple[RewriteRule, ...] = (
    SIGIL_RULE,
    BARE_RETURN_RULE,
    TOP_LEVEL_RETURN_RULE,
)

REWRITE_RULES_BY_DIALECT: dict[str, tuple[RewriteRule, ...]] = {
    DEFAULT_DIALECT: PYTHON_TOOL_RULES,
}


def rules_for_dialect(dialect: str) -> tuple[RewriteRule, ...]:
    """Return the ordered rewrite rules registered for a source dialect.

    Example:
        ```python
        rules = rules_for_dialect("python")
        ```
    """
    try:
        return REWRITE_RULES_BY_DIALECT[dialect]
    except KeyError:
        known = ", ".join(sorted(REWRITE_RULES_BY_DIALECT))
        raise ValueError(f"Unknown source dialect '{dialect}'. Known dialects: {known}") from None


def apply_rules(code: str, rules: Sequence[RewriteRule]) -> str:
    """Apply rules in order after normalizing line endings to `\\n`.

    Example:
        ```python
        apply_rules("return $x\\r\\n", PYTHON_TOOL_RULES)  # "__bridge_return = x\\n"
        ```
    """
    rewritten = code.replace("\r\n", "\n").replace("\r", "\n")
    for rule in rules:
        rewritten = rule.apply(rewritten)
    return rewritten


def rewrite_tool_code(code: str, dialect: str = DEFAULT_DIALECT) -> str:
    """Rewrite tool user code: strip `$` sigils and capture top-level returns.

    Example:
        ```python
        rewrite_tool_code("return $a + $b")  # "__bridge_return = a + b"
        ```
    """
    return apply_rules(code, rules_for_dialect(dialect))
