#!/usr/bin/env python3
"""
RATCHET EXPORTER - Round-Trip Renderer
--------------------------------------
Renders mutated documents back to text with the same round-trip settings
they were loaded with. ruamel.yaml keeps comments and quoting; blank lines
it loses are restored from a snapshot taken before any mutation.

Author: Ratchet Team
Date: 2026-10-18
"""

import io
import logging
from typing import List

from ratchet.core.document import YamlDocument, make_yaml

logger = logging.getLogger("ratchet.exporter")


class DocumentExporter:
    """
    Turns a loaded (and possibly mutated) YamlDocument back into text.
    """

    def __init__(self, debug: bool = False):
        self.debug = debug

    def render(self, doc: YamlDocument) -> str:
        """Raw dump of every document in the stream, no newline repair."""
        yaml = make_yaml()
        yaml.indent(mapping=doc.indent.mapping, sequence=doc.indent.sequence,
                    offset=doc.indent.offset)
        yaml.explicit_start = doc.explicit_start

        stream = io.StringIO()
        documents = [d for d in doc.documents if d is not None]
        if documents:
            yaml.dump_all(documents, stream)
        return stream.getvalue()

    def snapshot(self, doc: YamlDocument) -> YamlDocument:
        """
        Records where the untouched document loses blank lines when rendered.
        Must be called before the document is mutated.
        """
        doc.newlines = compute_newline_targets(doc.text, self.render(doc), debug=self.debug)
        return doc

    def export(self, doc: YamlDocument) -> str:
        lines = self.render(doc).split("\n")
        for idx in doc.newlines:
            lines.insert(idx, "")
        return "\n".join(lines)


def compute_newline_targets(before: str, after: str, debug: bool = False) -> List[int]:
    """
    Walks the original lines against the rendered ones and returns the
    indices at which a blank line has to be re-inserted into the rendered
    output. Trailing original lines beyond the rendered text count as blank.
    """
    before_lines = before.split("\n")
    after_lines = after.split("\n")

    if debug:
        logger.debug("original content:\n%s", _numbered(before_lines))
        logger.debug("rendered content:\n%s", _numbered(after_lines))

    result: List[int] = []
    after_idx = 0
    for before_idx, raw in enumerate(before_lines):
        if after_idx >= len(after_lines):
            result.append(before_idx)
            continue

        before_line = raw.strip()
        after_line = after_lines[after_idx].strip()
        if before_line != after_line and before_line == "":
            result.append(before_idx)
        else:
            after_idx += 1

    if debug:
        logger.debug("newline indices: %s", result)
    return result


def _numbered(lines: List[str]) -> str:
    return "\n".join(f"{i:3d}:  {line}" for i, line in enumerate(lines))
