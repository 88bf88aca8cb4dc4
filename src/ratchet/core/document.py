#!/usr/bin/env python3
"""
RATCHET DOCUMENT LOADER
-----------------------
Parses CI configuration text with the ruamel.yaml round-trip loader and
wraps the result in the Node tree the parsers and the engine work on.

One file becomes one DOCUMENT node; every YAML document of a multi-document
stream becomes one child of it. The ruamel data is kept next to the tree
so the exporter can render the mutated file back to text.

Author: Ratchet Team
Date: 2026-10-18
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Set, Tuple

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap, CommentedSeq
from ruamel.yaml.error import YAMLError

from ratchet.core.errors import ParseError
from ratchet.core.models import Node, NodeKind


@dataclass
class IndentStyle:
    """Indentation used when the document is emitted again."""
    mapping: int = 2
    sequence: int = 4
    offset: int = 2


@dataclass
class YamlDocument:
    path: str
    text: str
    documents: List[Any] = field(default_factory=list)  # ruamel round-trip data
    root: Optional[Node] = None
    indent: IndentStyle = field(default_factory=IndentStyle)
    explicit_start: bool = False
    newlines: List[int] = field(default_factory=list)  # blank lines the emitter drops


def make_yaml() -> YAML:
    """Round-trip YAML instance shared by the loader and the exporter."""
    yaml = YAML(typ="rt")
    yaml.preserve_quotes = True
    yaml.width = 4096
    return yaml


def load_document(text: str, path: str = "<string>") -> YamlDocument:
    """
    Parses the given text. Raises ParseError when it is not valid YAML.
    """
    text = text.lstrip("\ufeff")
    try:
        documents = list(make_yaml().load_all(text))
    except YAMLError as e:
        raise ParseError(f"failed to parse yaml for {path}: {e}") from e

    doc = YamlDocument(
        path=path,
        text=text,
        documents=documents,
        indent=guess_indent(text),
        explicit_start=text.lstrip().startswith("---"),
    )
    doc.root = build_tree(documents)
    return doc


def build_tree(documents: List[Any]) -> Node:
    """Wraps ruamel data in a DOCUMENT node."""
    visited: Set[int] = set()
    root = Node(NodeKind.DOCUMENT, line=1, column=1)
    for data in documents:
        if data is None:
            continue
        line, column = 0, 0
        lc = getattr(data, "lc", None)
        if lc is not None and lc.line is not None:
            line, column = lc.line + 1, lc.col + 1
        root.content.append(_build(data, None, None, line, column, visited))
    return root


def _build(data: Any, container: Any, slot: Any, line: int, column: int,
           visited: Set[int]) -> Node:
    if isinstance(data, CommentedMap):
        node = Node(NodeKind.MAPPING, line=line, column=column)
        # Aliased collections are walked once so a scalar is never wrapped twice
        if id(data) in visited:
            return node
        visited.add(id(data))

        for key, value in data.non_merged_items():
            k_line, k_col = _position(data.lc.key, key)
            v_line, v_col = _position(data.lc.value, key)
            node.content.append(Node(NodeKind.SCALAR, line=k_line, column=k_col, literal=str(key)))
            node.content.append(_build(value, data, key, v_line, v_col, visited))
        return node

    if isinstance(data, CommentedSeq):
        node = Node(NodeKind.SEQUENCE, line=line, column=column)
        if id(data) in visited:
            return node
        visited.add(id(data))

        for idx, item in enumerate(data):
            i_line, i_col = _position(data.lc.item, idx)
            node.content.append(_build(item, data, idx, i_line, i_col, visited))
        return node

    if container is None:
        return Node(NodeKind.SCALAR, line=line, column=column,
                    literal="" if data is None else str(data))
    return Node(NodeKind.SCALAR, line=line, column=column, container=container, slot=slot)


def _position(lookup, slot) -> Tuple[int, int]:
    try:
        pos = lookup(slot)
    except (KeyError, IndexError, TypeError):
        return 0, 0
    if not pos:
        return 0, 0
    return pos[0] + 1, pos[1] + 1


def guess_indent(text: str) -> IndentStyle:
    """
    Guesses mapping indent, block sequence indent and dash offset from the
    source, following ruamel.yaml.util.load_yaml_guess_indent but without
    loading the stream (which may hold several documents).
    """
    def leading_spaces(line: str) -> int:
        return len(line) - len(line.lstrip(" "))

    map_indent = None
    seq_indent = None
    offset = None
    prev_key_only = None
    key_indent = 0

    for line in text.splitlines():
        rline = line.rstrip()
        lline = rline.lstrip()
        if lline.startswith("#"):
            continue

        if seq_indent is None and lline.startswith("- "):
            spaces = leading_spaces(line)
            idx = spaces + 1
            while idx < len(rline) and rline[idx] == " ":
                idx += 1
            if idx < len(rline) and rline[idx] != "#":
                offset = spaces - key_indent
                seq_indent = idx - key_indent

        if map_indent is None and prev_key_only is not None and rline:
            idx = 0
            while idx < len(rline) and rline[idx] in " -":
                idx += 1
            if idx > prev_key_only and not lline.startswith("-"):
                map_indent = idx - prev_key_only

        if rline.endswith(":") and not lline.startswith("- "):
            key_indent = leading_spaces(line)
            prev_key_only = key_indent
            continue
        prev_key_only = None

        if map_indent is not None and seq_indent is not None:
            break

    style = IndentStyle()
    if map_indent is not None:
        style.mapping = map_indent
    if seq_indent is not None:
        style.offset = max(offset or 0, 0)
        style.sequence = seq_indent
    elif map_indent is not None:
        style.sequence = map_indent + 2
        style.offset = map_indent
    # ruamel requires room for the dash and its trailing space
    if style.sequence < style.offset + 2:
        style.sequence = style.offset + 2
    return style
