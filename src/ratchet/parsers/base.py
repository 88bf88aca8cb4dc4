#!/usr/bin/env python3
"""
RATCHET PARSERS - Contract & Registry
-------------------------------------
Every CI dialect is a Parser: it walks the document tree of one or more
files and collects a RefsList, the de-duplicated map from a normalized
reference to every scalar node that currently spells it.

Parsers are looked up by name at runtime through for_name().

Author: Ratchet Team
Date: 2026-10-18
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterator, List, Optional, Type

from ratchet.core.errors import ParseError, UnknownParserError
from ratchet.core.models import Node, NodeKind
from ratchet.core.refs import denormalize_ref


class RefsList:
    """
    Reference -> nodes, in insertion order. A node is stored at most once
    per reference.
    """

    def __init__(self):
        self._refs: Dict[str, List[Node]] = {}

    def add(self, ref: str, node: Node):
        nodes = self._refs.setdefault(ref, [])
        if not any(n is node for n in nodes):
            nodes.append(node)

    def refs(self) -> List[str]:
        """Sorted list of distinct references."""
        return sorted(self._refs)

    def all(self) -> Dict[str, List[Node]]:
        """Shallow copy of the reference map."""
        return {ref: list(nodes) for ref, nodes in self._refs.items()}

    def merge(self, other: "RefsList"):
        for ref, nodes in other._refs.items():
            for node in nodes:
                self.add(ref, node)

    def __len__(self) -> int:
        return len(self._refs)

    def __contains__(self, ref: str) -> bool:
        return ref in self._refs

    def __iter__(self) -> Iterator[str]:
        return iter(self.refs())


class Parser(ABC):
    """Walks one CI dialect."""

    name: str = ""

    def denormalize_ref(self, ref: str) -> str:
        """Turns a normalized reference back into the dialect's own syntax."""
        return denormalize_ref(ref)

    def parse(self, documents: Dict[str, Node]) -> RefsList:
        refs = RefsList()
        for path in sorted(documents):
            try:
                self._parse_one(refs, documents[path])
            except ParseError as e:
                raise ParseError(f"failed to parse {path}: {e}") from e
        return refs

    def _parse_one(self, refs: RefsList, document: Optional[Node]):
        if document is None:
            return
        if document.kind is not NodeKind.DOCUMENT:
            raise ParseError(f"expected document node, got {document.kind.value}")

        for root in document.content:
            if root.kind is NodeKind.MAPPING:
                self.parse_mapping(refs, root)

    @abstractmethod
    def parse_mapping(self, refs: RefsList, root: Node):
        """Collects the references of one top-level document mapping."""


def scalar(node: Optional[Node]) -> Optional[Node]:
    """Returns the node when it is a non-empty, writable scalar."""
    if node is None or node.kind is not NodeKind.SCALAR:
        return None
    if not node.writable or not node.value.strip():
        return None
    return node


def mapping_values(node: Optional[Node]) -> Iterator[Node]:
    """Values of a mapping node, nothing for anything else."""
    if node is None:
        return
    for _, value in node.pairs():
        yield value


def sequence_items(node: Optional[Node]) -> Iterator[Node]:
    if node is None or node.kind is not NodeKind.SEQUENCE:
        return
    yield from node.content


# --- registry ---------------------------------------------------------------

_REGISTRY: Dict[str, Type[Parser]] = {}


def register(cls: Type[Parser]) -> Type[Parser]:
    _REGISTRY[cls.name] = cls
    return cls


def for_name(name: str) -> Parser:
    """Returns a fresh parser for the given name, case-insensitively."""
    _load_builtin()
    key = (name or "").strip().lower()
    cls = _REGISTRY.get(key)
    if cls is None:
        raise UnknownParserError(key, list_parsers())
    return cls()


def list_parsers() -> List[str]:
    _load_builtin()
    return sorted(_REGISTRY)


def _load_builtin():
    # Dialect modules register themselves on import
    from ratchet.parsers import actions, circleci, cloudbuild, drone, gitlabci, tekton  # noqa: F401
