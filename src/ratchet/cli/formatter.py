#!/usr/bin/env python3
"""
RATCHET LINT FORMATTERS
-----------------------
Renders lint violations for humans, CI annotations and editors.

    actions   GitHub Actions workflow commands (::error file=...)
    human     one line per violation plus a summary
    json      list of {filename, contents, line, column}
    lsp       Language Server Protocol diagnostics
    null      nothing

Author: Ratchet Team
Date: 2026-10-18
"""

import json
import os
from typing import Callable, Dict, List, Mapping, Optional, TextIO

from rich.console import Console
from rich.text import Text

from ratchet.core.errors import UnknownFormatterError
from ratchet.core.models import Violation

Formatter = Callable[[TextIO, List[Violation]], None]


def format_actions(stream: TextIO, violations: List[Violation]):
    for v in violations:
        message = (
            f"{v.filename}:{v.line}:{v.column}: The reference `{v.contents}` is unpinned. "
            "Either pin the reference to a SHA or mark the line with `ratchet:exclude`."
        )
        stream.write(
            f"::error file={v.filename},line={v.line},col={v.column},"
            f"title=Ratchet - Unpinned Reference::{message}\n"
        )


def format_human(stream: TextIO, violations: List[Violation]):
    console = Console(file=stream, soft_wrap=True, highlight=False)
    for v in violations:
        line = Text(f"{v.filename}:{v.line}:{v.column}: ", style="bold")
        line.append("Unpinned reference ")
        line.append(json.dumps(v.contents), style="yellow")
        console.print(line)

    if violations:
        console.print()
        console.print(Text(f"❌ found {len(violations)} violation(s)", style="bold red"))


def format_json(stream: TextIO, violations: List[Violation]):
    items = []
    for v in violations:
        item = {"filename": v.filename, "contents": v.contents, "line": v.line, "column": v.column}
        items.append({k: val for k, val in item.items() if val})
    stream.write(json.dumps(items, separators=(",", ":")) + "\n")


def format_lsp(stream: TextIO, violations: List[Violation]):
    items = []
    for v in violations:
        items.append({
            "message": "Reference is unpinned",
            "code": "unpinned",
            "severity": "Error",
            "range": {
                "start": _position(v.line, v.column),
                "end": _position(v.line, v.column + len(v.contents)),
            },
        })
    stream.write(json.dumps(items, separators=(",", ":")) + "\n")


def format_null(stream: TextIO, violations: List[Violation]):
    return None


def _position(line: int, character: int) -> Dict[str, int]:
    return {k: val for k, val in (("line", line), ("character", character)) if val}


FORMATTERS: Dict[str, Formatter] = {
    "actions": format_actions,
    "human": format_human,
    "json": format_json,
    "lsp": format_lsp,
    "null": format_null,
}


def list_formatters() -> List[str]:
    return sorted(FORMATTERS)


def for_name(name: str) -> Formatter:
    key = (name or "").strip().lower()
    if key not in FORMATTERS:
        raise UnknownFormatterError(key, list_formatters())
    return FORMATTERS[key]


def default_formatter(environ: Optional[Mapping[str, str]] = None) -> str:
    """GitHub Actions annotations inside a workflow run, human output elsewhere."""
    environ = os.environ if environ is None else environ
    return "actions" if environ.get("GITHUB_ACTIONS") else "human"
