from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import fields, is_dataclass
from functools import partial
from pathlib import Path
from typing import Any, Never, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.pretty import Pretty
from rich_argparse import RawTextRichHelpFormatter
from script_bridge import BridgeConfig, SubprocessEngine, execute, run_tool
from script_bridge.config import resolve_config

_CONSOLE = Console(no_color=False)


class _CLIHelpFormatter(RawTextRichHelpFormatter):
    """Rich formatter with explicit high-contrast CLI styles.

    Example:
        ```python
        parser = argparse.ArgumentParser(formatter_class=_CLIHelpFormatter)
        ```
    """

    styles = {
        "argparse.args": "bold cyan",
        "argparse.groups": "bold magenta",
        "argparse.help": "white",
        "argparse.metavar": "bold yellow",
        "argparse.prog": "bold bright_blue",
        "argparse.syntax": "bold bright_white",
        "argparse.text": "bright_white",
    }


_HELP_FORMATTER = partial(
    _CLIHelpFormatter,
    max_help_position=34,
    width=120,
)


class _RichArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that renders errors via Rich.

    Example:
        ```python
        parser = _RichArgumentParser(prog="python -m sbr")
        ```
    """

    def error(self, message: str) -> Never:
        """Render parse errors with Rich and exit.

        Example:
            ```python
            # parser.error("invalid usage")
            ```
        """
        _CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {escape(message)}", border_style="red"))
        self.print_help()
        raise SystemExit(2)


def _to_jsonable(value: object) -> Any:
    """Convert CLI return values into printable payloads.

    Example:
        ```python
        payload = _to_jsonable(BridgeConfig())
        ```
    """
    if not isinstance(value, type) and is_dataclass(value):
        return {field.name: getattr(value, field.name) for field in fields(value)}
    if hasattr(value, "__dict__"):
        return vars(value)
    return value


def _parse_assignment(raw: str) -> tuple[str, Any]:
    """Parse `NAME=VALUE`, decoding VALUE as JSON when it parses.

    Example:
        ```python
        _parse_assignment("limit=10")  # ("limit", 10)
        _parse_assignment("query=books")  # ("query", "books")
        ```
    """
    name, sep, value = raw.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {raw!r}")
    try:
        return name.strip(), json.loads(value)
    except ValueError:
        return name.strip(), value


def _read_code(source: str) -> str:
    """Read user code from a file path, or from stdin when the path is `-`.

    Example:
        ```python
        code = _read_code("snippet.py")
        ```
    """
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser for running scripts through the bridge.

    Example:
        ```python
        parser = build_parser()
        ```
    """
    parser = _RichArgumentParser(
        prog="python -m sbr",
        description=(
            "script-bridge CLI\n"
            "Run a Python snippet in a separate interpreter process and print its result."
        ),
        epilog=(
            "Quick Examples:\n"
            "  python -m sbr run snippet.py --var a=1 --var b=2\n"
            "  python -m sbr run tool.py --strategy tool --var query=books\n"
            "  echo 'return 42' | python -m sbr run - --strategy tool\n"
            "  python -m sbr config\n\n"
            "Environment:\n"
            "  TOOL_PYTHON_PATH     interpreter used for scripts (default: python)\n"
            "  TOOL_PYTHON_TIMEOUT  timeout in milliseconds (default: 10000)"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    parser.add_argument(
        "--config",
        dest="config_file",
        help=(
            "Read settings from a TOML file with a [bridge] table.\n"
            "Keys: interpreter_path, timeout_ms, temp_dir."
        ),
    )
    parser.add_argument(
        "--python",
        dest="interpreter_path",
        help="Interpreter for this run (overrides config and TOOL_PYTHON_PATH).",
    )
    parser.add_argument(
        "--timeout-ms",
        type=int,
        help="Timeout for this run in milliseconds (overrides config and TOOL_PYTHON_TIMEOUT).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show debug logs from the bridge.",
    )

    sub = parser.add_subparsers(
        dest="command",
        required=True,
        parser_class=_RichArgumentParser,
    )

    run_cmd = sub.add_parser(
        "run",
        help="Run a snippet and print its result.",
        description=(
            "Run a Python snippet in a child interpreter.\n"
            "The function strategy binds each --var by name; the tool strategy exposes\n"
            "them under `input` and accepts `$name` references and a top-level return."
        ),
        epilog=(
            "Examples:\n"
            "  python -m sbr run snippet.py --var a=1 --var b=2\n"
            "  python -m sbr run snippet.py --sandbox-var API_BASE=https://example.com\n"
            "  python -m sbr run tool.py --strategy tool --flow session_id=s1"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    run_cmd.add_argument("source", help="Path to the snippet, or - to read it from stdin.")
    run_cmd.add_argument(
        "--strategy",
        choices=["function", "tool"],
        default="function",
        help="Synthesis strategy (default: function).",
    )
    run_cmd.add_argument(
        "--var",
        dest="variables",
        action="append",
        type=_parse_assignment,
        default=[],
        metavar="NAME=VALUE",
        help="Input variable (function) or tool argument (tool). VALUE is JSON when it parses.",
    )
    run_cmd.add_argument(
        "--sandbox-var",
        dest="sandbox_variables",
        action="append",
        type=_parse_assignment,
        default=[],
        metavar="NAME=VALUE",
        help="Sandbox variable exposed as `vars`.",
    )
    run_cmd.add_argument(
        "--flow",
        dest="flow",
        action="append",
        type=_parse_assignment,
        default=[],
        metavar="NAME=VALUE",
        help="Flow context entry exposed as `flow`.",
    )
    run_cmd.add_argument(
        "--input-text",
        default="",
        help="Pipeline input exposed as `input_text` (function strategy).",
    )

    sub.add_parser(
        "config",
        help="Show the resolved configuration.",
        description="Show interpreter, timeout, and temp directory after applying env, file, and flags.",
        formatter_class=_HELP_FORMATTER,
    )

    return parser


def build_config(args: argparse.Namespace) -> BridgeConfig:
    """Resolve config from file or environment, then apply CLI overrides.

    Example:
        ```python
        config = build_config(args)
        ```
    """
    return resolve_config(None, args.config_file).with_overrides(
        interpreter_path=args.interpreter_path,
        timeout_ms=args.timeout_ms,
    )


def _print_outcome(outcome: Any) -> int:
    """Render an outcome and return the process exit code.

    Example:
        ```python
        code = _print_outcome(ScriptOutcome(ok=True, value=3))
        ```
    """
    if outcome.ok:
        _CONSOLE.print(Panel.fit(Pretty(outcome.value), title="Result", border_style="green"))
        return 0
    message = f"[bold red]{escape(str(outcome.failure))}:[/bold red] {escape(outcome.error or '')}"
    _CONSOLE.print(Panel.fit(message, title="Failed", border_style="red"))
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    """Run the `sbr` CLI command handler.

    Example:
        ```python
        code = main(["run", "snippet.py", "--var", "a=1"])
        ```
    """
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=_CONSOLE, show_path=False)],
    )
    try:
        config = build_config(args)
    except ValueError as exc:
        parser.error(str(exc))

    if args.command == "config":
        _CONSOLE.print(Panel.fit(Pretty(_to_jsonable(config)), title="Configuration", border_style="cyan"))
        return 0
    if args.command == "run":
        try:
            code = _read_code(args.source)
        except OSError as exc:
            parser.error(f"cannot read {args.source}: {exc}")
        engine = SubprocessEngine(temp_dir=config.temp_dir)
        variables = dict(args.variables)
        sandbox_variables = dict(args.sandbox_variables)
        flow = dict(args.flow)
        if args.strategy == "tool":
            outcome = run_tool(
                code,
                variables,
                sandbox_variables=sandbox_variables,
                flow=flow,
                engine=engine,
                config=config,
            )
        else:
            outcome = execute(
                code,
                variables,
                sandbox_variables,
                flow,
                input_text=args.input_text,
                engine=engine,
                config=config,
            )
        return _print_outcome(outcome)

    parser.error("Unhandled command")
    return 2
