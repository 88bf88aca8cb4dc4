#!/usr/bin/env python3
"""
RATCHET RESOLVER - Contract
---------------------------
A Resolver turns a normalized reference into an immutable one.

    resolve("actions://actions/checkout@v4")
        -> "actions/checkout@692973e3d937129bcbf40652eb9f2f61becf3332"

    latest_version("actions://actions/checkout@v3")
        -> "actions://actions/checkout@v4"

resolve() returns the denormalized, pinned reference; latest_version()
returns a normalized reference with the newest constraint. Both must be
safe to call concurrently for different references. Implementations may
raise any exception; the engine wraps it into a ResolutionError.

Author: Ratchet Team
Date: 2026-10-18
"""

from abc import ABC, abstractmethod


class Resolver(ABC):

    @abstractmethod
    def resolve(self, ref: str) -> str:
        """Returns the pinned form of a normalized reference."""

    @abstractmethod
    def latest_version(self, ref: str) -> str:
        """
        Returns the normalized reference with its newest constraint.
        Branches and already absolute references come back unchanged.
        """
