#!/usr/bin/env python3
"""
RATCHET ERRORS
--------------
Exception taxonomy shared by the parsers, the resolution engine and the
command line. Everything the engine raises derives from RatchetError so
the CLI has a single place to turn failures into an exit status.

Author: Ratchet Team
Date: 2026-10-18
"""

import json
from typing import Iterable, List, Optional


class RatchetError(Exception):
    """Base class for every error raised by Ratchet."""


class ParseError(RatchetError):
    """A document could not be read or has an unexpected shape."""


class UnknownParserError(RatchetError):
    def __init__(self, name: str, valid: Iterable[str]):
        self.name = name
        self.valid = list(valid)
        super().__init__(f"unknown parser {json.dumps(name)}, valid parsers are {_quoted(self.valid)}")


class UnknownFormatterError(RatchetError):
    def __init__(self, name: str, valid: Iterable[str]):
        self.name = name
        self.valid = list(valid)
        super().__init__(f"unknown formatter {json.dumps(name)}, valid formatters are {_quoted(self.valid)}")


class ResolutionError(RatchetError):
    """A single reference failed to resolve upstream."""

    def __init__(self, ref: str, cause: object):
        self.ref = ref
        self.cause = cause
        super().__init__(f"failed to resolve {json.dumps(ref)}: {cause}")


class UnexpectedCallError(ResolutionError):
    """Raised by test resolvers asked about a reference they were not given."""

    def __init__(self, ref: str, operation: str = "resolve"):
        self.operation = operation
        super().__init__(ref, f"unexpected {operation} call, no test value for {json.dumps(ref)}")


class ResolutionErrors(RatchetError):
    """
    Aggregate of every ResolutionError collected during one fan-out.
    Raised only after all in-flight resolutions have settled.
    """

    def __init__(self, errors: List[ResolutionError]):
        self.errors = sorted(errors, key=lambda e: e.ref)
        super().__init__("\n".join(str(e) for e in self.errors))

    @property
    def refs(self) -> List[str]:
        return [e.ref for e in self.errors]


class ViolationError(RatchetError):
    """Check found references that break the pinning policy."""

    def __init__(self, refs: Iterable[str], kind: str = "unpinned"):
        self.refs = sorted(set(refs))
        self.kind = kind
        super().__init__(f"found {len(self.refs)} {kind} refs: {_quoted(self.refs)}")


class ConcurrencyError(RatchetError):
    """Admission to the resolver pool was aborted, usually by cancellation."""


class WorkspaceError(RatchetError):
    """Reading or writing files on disk failed."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


def _quoted(items: Iterable[str]) -> str:
    # ["a" "b"] rendering, matching the historical error text
    return "[" + " ".join(json.dumps(i) for i in items) + "]"
