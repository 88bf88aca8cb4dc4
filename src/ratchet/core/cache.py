#!/usr/bin/env python3
"""
RATCHET RESOLUTION CACHE
------------------------
Maps a denormalized reference to its resolved value (or to the error that
resolving it produced) for the lifetime of one command invocation. The
cache is created by the caller and handed to every operation that should
share it; nothing here is process-wide.

Author: Ratchet Team
Date: 2026-10-18
"""

import threading
from typing import Dict, Optional, Union

from ratchet.core.errors import ResolutionError
from ratchet.core.refs import denormalize_ref


class ResolutionCache:
    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[str, Union[str, ResolutionError]] = {}

    @staticmethod
    def _key(ref: str) -> str:
        return denormalize_ref(ref)

    def lookup(self, ref: str) -> Optional[str]:
        """
        Returns the cached value, None on a miss. A cached failure is
        raised again so callers see the same error as the first attempt.
        """
        with self._lock:
            entry = self._entries.get(self._key(ref))
        if isinstance(entry, ResolutionError):
            raise entry
        return entry

    def put(self, ref: str, resolved: str):
        with self._lock:
            self._entries[self._key(ref)] = resolved

    def fail(self, ref: str, error: ResolutionError):
        with self._lock:
            self._entries[self._key(ref)] = error

    def invalidate(self):
        """Drops every entry. Required between independent runs."""
        with self._lock:
            self._entries.clear()

    def __contains__(self, ref: str) -> bool:
        with self._lock:
            return self._key(ref) in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
