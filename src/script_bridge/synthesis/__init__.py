from .rewrite import RewriteRule, rewrite_tool_code, rules_for_dialect
from .synthesizer import (
    build_function_payload,
    build_tool_payload,
    encode_payload,
    escape_payload_literal,
    synthesize_function_script,
    synthesize_tool_script,
)

__all__ = [
    "RewriteRule",
    "build_function_payload",
    "build_tool_payload",
    "encode_payload",
    "escape_payload_literal",
    "rewrite_tool_code",
    "rules_for_dialect",
    "synthesize_function_script",
    "synthesize_tool_script",
]
