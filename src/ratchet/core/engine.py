#!/usr/bin/env python3
"""
RATCHET ENGINE - The Orchestrator
---------------------------------
Composes parsers, the comment codec and a Resolver into the operations
exposed to the command line:

    check            policy gate, no network unless asked for consistency
    lint             per-file violations with positions
    pin              constraint -> immutable reference
    unpin            immutable reference -> recorded constraint
    upgrade          constraint -> newest constraint (and pin it)
    fetch_and_cache  resolve every distinct reference once, up front

Each distinct reference is resolved by one task of a bounded thread pool.
A task owns every node of its reference group, so the document tree is
mutated without per-node locking. Failures are collected and raised
together after every task has settled; cancellation during admission
aborts at once.

Author: Ratchet Team
Date: 2026-10-18
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from ratchet.core.cache import ResolutionCache
from ratchet.core.comments import append_original, extract_original, should_exclude
from ratchet.core.concurrency import default_concurrency
from ratchet.core.errors import (
    ConcurrencyError,
    ResolutionError,
    ResolutionErrors,
    ViolationError,
)
from ratchet.core.models import Node, Violation
from ratchet.core.refs import denormalize_ref, is_absolute, ref_protocol, renormalize
from ratchet.parsers.base import Parser
from ratchet.resolver.base import Resolver

logger = logging.getLogger("ratchet.engine")

# How often a task waiting for admission looks at the cancel event
_ADMISSION_POLL = 0.05


class PinningEngine:
    """
    One engine per command invocation. The cache lives as long as the
    engine, so a pre-warm with fetch_and_cache() is reused by every later
    pin() or upgrade() call on the same instance.
    """

    def __init__(self, resolver: Optional[Resolver] = None, concurrency: Optional[int] = None,
                 cache: Optional[ResolutionCache] = None,
                 cancel: Optional[threading.Event] = None,
                 progress_callback: Optional[Callable[[str], None]] = None):
        self.resolver = resolver
        self.concurrency = max(concurrency or default_concurrency(1), 1)
        self.cache = cache if cache is not None else ResolutionCache()
        self.cancel = cancel
        self.progress_callback = progress_callback

    # --- read-only operations ------------------------------------------------

    def check(self, parser: Parser, documents: Dict[str, Node], consistent: bool = False):
        """
        Raises ViolationError when any non-excluded reference is unpinned.
        With consistent=True every pinned node carrying a ratchet comment is
        also resolved again and compared against its current value.
        """
        refs = parser.parse(documents).all()

        unpinned: Set[str] = set()
        for ref, nodes in refs.items():
            if is_absolute(ref):
                continue
            if _eligible(nodes):
                unpinned.add(parser.denormalize_ref(ref))

        if unpinned:
            raise ViolationError(unpinned)

        if consistent:
            self._check_consistency(parser, refs)

    def lint(self, parser: Parser, documents: Dict[str, Node]) -> List[Violation]:
        violations: List[Violation] = []

        for filename in sorted(documents):
            refs = parser.parse({filename: documents[filename]})
            for nodes in refs.all().values():
                for node in nodes:
                    if should_exclude(node.comment) or is_absolute(node.value):
                        continue
                    violations.append(Violation(
                        filename=filename,
                        contents=node.value,
                        line=node.line,
                        column=node.column,
                    ))

        violations.sort(key=lambda v: (v.filename, v.line, v.column))
        return violations

    # --- rewriting operations ------------------------------------------------

    def pin(self, parser: Parser, documents: Dict[str, Node]):
        refs = parser.parse(documents).all()
        work: Dict[str, Callable[[], None]] = {}

        for ref, nodes in refs.items():
            if is_absolute(ref):
                continue
            nodes = _eligible(nodes)
            if not nodes:
                continue
            work[ref] = _bind(self._pin_group, ref, nodes)

        self._fan_out(work)

    def _pin_group(self, ref: str, nodes: List[Node]):
        resolved = self._resolve(ref)
        old = denormalize_ref(ref)

        for node in nodes:
            node.comment = append_original(node.comment, node.value)
            node.value = node.value.replace(old, resolved, 1)
        logger.debug("pinned %s -> %s (%d nodes)", old, resolved, len(nodes))

    def upgrade(self, parser: Parser, documents: Dict[str, Node], pin: bool = True):
        """
        Moves every reference to the newest constraint reported by the
        resolver and records that constraint as the round-trip token. With
        pin=True the new constraint is resolved and written as the value.
        """
        refs = parser.parse(documents).all()
        work: Dict[str, Callable[[], None]] = {}

        for ref, nodes in refs.items():
            if is_absolute(ref):
                continue
            nodes = _eligible(nodes)
            if not nodes:
                continue
            work[ref] = _bind(self._upgrade_group, ref, nodes, pin)

        self._fan_out(work)

    def _upgrade_group(self, ref: str, nodes: List[Node], pin: bool):
        try:
            latest = self.resolver.latest_version(ref)
        except Exception as e:
            raise _as_resolution_error(ref, e) from e

        old = denormalize_ref(ref)
        new = denormalize_ref(latest)

        target = new
        if pin:
            try:
                target = self._resolve(latest)
            except ResolutionError as e:
                # Reported against the reference that is actually in the file
                raise ResolutionError(ref, e) from e

        for node in nodes:
            constraint = node.value.replace(old, new, 1)
            node.comment = append_original(node.comment, constraint)
            node.value = node.value.replace(old, target, 1)
        logger.debug("upgraded %s -> %s (%d nodes)", old, target, len(nodes))

    def unpin(self, documents: Dict[str, Node]):
        """Restores every recorded constraint. Purely local."""
        for filename in sorted(documents):
            for node in documents[filename].walk():
                if self._cancelled():
                    raise ConcurrencyError("unpin cancelled")
                if not node.writable:
                    continue

                comment = node.comment
                if not comment or should_exclude(comment):
                    continue
                token, rest = extract_original(comment)
                if token:
                    node.value = token
                    node.comment = rest

    def fetch_and_cache(self, parser: Parser, documents: Dict[str, Node]):
        """
        Resolves every distinct, pinnable reference across all documents into
        the cache so later per-file operations never hit the resolver twice.
        """
        refs = parser.parse(documents).all()
        work = {
            ref: _bind(self._resolve, ref)
            for ref, nodes in refs.items()
            if not is_absolute(ref) and _eligible(nodes)
        }
        logger.info("pre-warming %d references", len(work))
        self._fan_out(work)

    # --- helpers ---------------------------------------------------------------

    def affected_files(self, parser: Parser, documents: Dict[str, Node],
                       failed_refs: Iterable[str]) -> List[str]:
        """Files that still contain any of the given references."""
        failed = set(failed_refs)
        affected = []
        for filename in sorted(documents):
            refs = parser.parse({filename: documents[filename]})
            if any(ref in failed for ref in refs.refs()):
                affected.append(filename)
        return affected

    def _check_consistency(self, parser: Parser, refs: Dict[str, List[Node]]):
        # recorded constraint (normalized) -> [(pinned ref, node)]
        groups: Dict[str, List[Tuple[str, Node]]] = {}
        for ref, nodes in refs.items():
            if not is_absolute(ref):
                continue
            for node in _eligible(nodes):
                token, _ = extract_original(node.comment)
                if token:
                    constraint = renormalize(ref_protocol(ref), token)
                    groups.setdefault(constraint, []).append((ref, node))

        inconsistent: Set[str] = set()
        lock = threading.Lock()

        def verify(constraint: str, pinned: List[Tuple[str, Node]]):
            resolved = self._resolve(constraint)
            for ref, _ in pinned:
                if resolved != denormalize_ref(ref):
                    with lock:
                        inconsistent.add(parser.denormalize_ref(ref))

        self._fan_out({c: _bind(verify, c, pinned) for c, pinned in groups.items()})
        if inconsistent:
            raise ViolationError(inconsistent, kind="inconsistent")

    def _resolve(self, ref: str) -> str:
        cached = self.cache.lookup(ref)
        if cached is not None:
            return cached

        if self.resolver is None:
            raise ResolutionError(ref, "no resolver configured")

        logger.debug("resolving %s", ref)
        try:
            resolved = self.resolver.resolve(ref)
        except Exception as e:
            err = _as_resolution_error(ref, e)
            self.cache.fail(ref, err)
            raise err from e

        self.cache.put(ref, resolved)
        return resolved

    def _cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()

    def _admit(self, semaphore: threading.BoundedSemaphore):
        while True:
            if self._cancelled():
                raise ConcurrencyError("failed to acquire semaphore: operation cancelled")
            if semaphore.acquire(timeout=_ADMISSION_POLL):
                # A finishing task may have cancelled while this one waited
                if self._cancelled():
                    semaphore.release()
                    raise ConcurrencyError("failed to acquire semaphore: operation cancelled")
                return

    def _fan_out(self, work: Dict[str, Callable[[], None]]):
        """
        Runs one task per reference. Task failures are gathered and raised
        as ResolutionErrors once all tasks are done.
        """
        if not work:
            return

        semaphore = threading.BoundedSemaphore(self.concurrency)
        lock = threading.Lock()
        errors: List[ResolutionError] = []

        def run(ref: str, task: Callable[[], None]):
            try:
                task()
            except Exception as e:
                err = _as_resolution_error(ref, e)
                logger.warning("%s", err)
                with lock:
                    errors.append(err)
            else:
                if self.progress_callback:
                    self.progress_callback(ref)
            finally:
                semaphore.release()

        pool = ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix="ratchet")
        try:
            for ref in sorted(work):
                self._admit(semaphore)
                pool.submit(run, ref, work[ref])
        except ConcurrencyError:
            pool.shutdown(wait=False, cancel_futures=True)
            raise
        pool.shutdown(wait=True)

        if errors:
            raise ResolutionErrors(errors)


def _eligible(nodes: List[Node]) -> List[Node]:
    return [n for n in nodes if not should_exclude(n.comment)]


def _bind(fn, *args) -> Callable[[], None]:
    return lambda: fn(*args)


def _as_resolution_error(ref: str, e: Exception) -> ResolutionError:
    if isinstance(e, ResolutionError) and e.ref == ref:
        return e
    return ResolutionError(ref, e)
