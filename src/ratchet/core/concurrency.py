#!/usr/bin/env python3
"""
RATCHET CONCURRENCY - Pool sizing
---------------------------------
Author: Ratchet Team
Date: 2026-10-18
"""

import os


def default_concurrency(minimum: int = 1) -> int:
    """Number of CPU cores minus one, never below the given minimum."""
    cpus = (os.cpu_count() or 1) - 1
    return max(cpus, minimum)
