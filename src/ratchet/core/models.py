#!/usr/bin/env python3
"""
RATCHET CORE MODELS
-------------------
Defines the fundamental data structures used across the Ratchet engine.
A Node is a thin, position-aware handle over a ruamel.yaml round-trip tree:
reading a scalar's value or trailing comment always reflects the live
document, and writing one mutates the document in place so it can be
rendered back to text.

Author: Ratchet Team
Date: 2026-10-18
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, List, Optional, Tuple

from ruamel.yaml.comments import CommentedMap
from ruamel.yaml.error import CommentMark
from ruamel.yaml.tokens import CommentToken


class NodeKind(Enum):
    DOCUMENT = "document"
    MAPPING = "mapping"
    SEQUENCE = "sequence"
    SCALAR = "scalar"


class Node:
    """
    One node of a parsed YAML document.

    Mapping nodes store keys and values as alternating children, sequence
    nodes store their items in source order. Scalars that live inside a
    mapping value or sequence slot are writable; mapping keys and bare
    document roots are read-only.
    """

    def __init__(self, kind: NodeKind, content: Optional[List["Node"]] = None,
                 line: int = 0, column: int = 0, container: Any = None,
                 slot: Any = None, literal: str = ""):
        self.kind = kind
        self.content: List[Node] = content if content is not None else []
        self.line = line          # 1-based, 0 when unknown
        self.column = column      # 1-based, 0 when unknown
        self._container = container
        self._slot = slot
        self._literal = literal

    def __repr__(self) -> str:
        if self.kind is NodeKind.SCALAR:
            return f"Node(scalar {self.value!r} @ {self.line}:{self.column})"
        return f"Node({self.kind.value}, {len(self.content)} children)"

    # --- value -----------------------------------------------------------

    @property
    def writable(self) -> bool:
        return self.kind is NodeKind.SCALAR and self._container is not None

    @property
    def value(self) -> str:
        if self.kind is not NodeKind.SCALAR:
            return ""
        if self._container is None:
            return self._literal
        raw = self._container[self._slot]
        return "" if raw is None else str(raw)

    @value.setter
    def value(self, new_value: str):
        if not self.writable:
            raise AttributeError(f"cannot assign a value to {self!r}")
        # ruamel keeps the quoting style of the existing ScalarString
        self._container[self._slot] = new_value

    # --- trailing comment --------------------------------------------------

    def _comment_index(self) -> int:
        # CommentedMap keeps the value's end-of-line comment in position 2,
        # CommentedSeq keeps the item's one in position 0.
        return 2 if isinstance(self._container, CommentedMap) else 0

    def _comment_token(self) -> Optional[CommentToken]:
        if not self.writable:
            return None
        entry = self._container.ca.items.get(self._slot)
        if not entry:
            return None
        return entry[self._comment_index()]

    @property
    def comment(self) -> str:
        """The trailing line comment, without the leading '#'."""
        token = self._comment_token()
        if token is None:
            return ""
        text, _ = _split_comment_token(token.value)
        if text is None:
            return ""
        return text.lstrip("#").strip()

    @comment.setter
    def comment(self, text: str):
        if not self.writable:
            if text:
                raise AttributeError(f"cannot attach a comment to {self!r}")
            return

        text = (text or "").strip()
        token = self._comment_token()
        tail = ""
        if token is not None:
            _, tail = _split_comment_token(token.value)

        entry = self._container.ca.items.setdefault(self._slot, [None, None, None, None])
        index = self._comment_index()

        # Inside a flow collection the emitter has to break the line to place
        # an end-of-line comment, so the rendered line count can grow.
        if text:
            entry[index] = CommentToken("# " + text + tail, CommentMark(0))
        elif tail.strip("\n") or len(tail) > 1:
            # Blank lines or full-line comments that followed the old comment
            entry[index] = CommentToken(tail, CommentMark(0))
        else:
            entry[index] = None

    # --- navigation --------------------------------------------------------

    def pairs(self) -> Iterator[Tuple["Node", "Node"]]:
        """Yields (key, value) children of a mapping node."""
        if self.kind is not NodeKind.MAPPING:
            return
        for i in range(0, len(self.content) - 1, 2):
            yield self.content[i], self.content[i + 1]

    def get(self, key: str) -> Optional["Node"]:
        """Returns the value node for the first matching key of a mapping."""
        for k, v in self.pairs():
            if k.value == key:
                return v
        return None

    def walk(self) -> Iterator["Node"]:
        """Depth-first traversal, self included."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.content))


def _split_comment_token(value: str) -> Tuple[Optional[str], str]:
    """
    Splits a ruamel comment token into (eol comment, tail).

    ruamel folds blank lines and following full-line comments into the
    same token as the end-of-line comment, so only the first line belongs
    to the scalar. The tail keeps its leading newline.
    """
    if not value.startswith("#"):
        return None, value
    newline = value.find("\n")
    if newline < 0:
        return value, ""
    return value[:newline], value[newline:]


@dataclass
class Violation:
    """
    A single unpinned reference occurrence reported by the linter.
    """
    filename: str
    contents: str       # The raw scalar text as written in the file
    line: int
    column: int
