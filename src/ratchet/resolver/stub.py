#!/usr/bin/env python3
"""
RATCHET RESOLVER - Test Double
------------------------------
A Resolver primed with canned answers. Asking for anything it was not
primed with fails with UnexpectedCallError instead of touching a network.

    stub = StubResolver(resolved={"actions://a/b@v1": "a/b@" + "f" * 40})

Values may also be exceptions, which are raised on lookup.

Author: Ratchet Team
Date: 2026-10-18
"""

import threading
from collections import Counter
from typing import Dict, List, Optional, Union

from ratchet.core.errors import UnexpectedCallError
from ratchet.resolver.base import Resolver

Answer = Union[str, Exception]


class StubResolver(Resolver):

    def __init__(self, resolved: Optional[Dict[str, Answer]] = None,
                 latest: Optional[Dict[str, Answer]] = None):
        self.resolved = dict(resolved or {})
        self.latest = dict(latest or {})
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def resolve(self, ref: str) -> str:
        return self._answer("resolve", self.resolved, ref)

    def latest_version(self, ref: str) -> str:
        return self._answer("latest_version", self.latest, ref)

    def call_counts(self) -> Counter:
        with self._lock:
            return Counter(self.calls)

    def _answer(self, operation: str, answers: Dict[str, Answer], ref: str) -> str:
        with self._lock:
            self.calls.append(f"{operation}:{ref}")

        if ref not in answers:
            raise UnexpectedCallError(ref, operation)
        answer = answers[ref]
        if isinstance(answer, Exception):
            raise answer
        return answer
