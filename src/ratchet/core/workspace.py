#!/usr/bin/env python3
"""
RATCHET WORKSPACE - Files on disk
---------------------------------
Expands command line paths into YAML files, loads them into documents and
writes rendered results back atomically: the new content lands in a temp
file next to the destination, inherits its permission bits, and replaces
it with a single rename.

Author: Ratchet Team
Date: 2026-10-18
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ratchet.core.document import YamlDocument, load_document
from ratchet.core.errors import WorkspaceError
from ratchet.core.exporter import DocumentExporter

logger = logging.getLogger("ratchet.workspace")

YAML_SUFFIXES = (".yml", ".yaml")


def expand_paths(paths: Iterable[str]) -> List[str]:
    """
    Files are kept as given; directories are walked for YAML files
    (symlinks skipped, sorted). Duplicates are dropped.
    """
    seen = set()
    result: List[str] = []

    def add(p: Path):
        key = _clean(p)
        if key not in seen:
            seen.add(key)
            result.append(key)

    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            found = [
                f for f in path.rglob("*")
                if f.suffix.lower() in YAML_SUFFIXES and f.is_file() and not f.is_symlink()
            ]
            for f in sorted(found):
                add(f)
        elif path.exists():
            add(path)
        else:
            raise WorkspaceError(f"no such file or directory: {raw}", path=raw)
    return result


def load_files(paths: Iterable[str], exporter: Optional[DocumentExporter] = None) -> Dict[str, YamlDocument]:
    """Reads and parses every file. The exporter snapshots blank lines."""
    exporter = exporter or DocumentExporter()
    documents: Dict[str, YamlDocument] = {}

    for path in paths:
        try:
            text = Path(path).read_text(encoding="utf-8-sig")
        except OSError as e:
            raise WorkspaceError(f"failed to read file {path}: {e}", path=path) from e
        documents[path] = exporter.snapshot(load_document(text, path))
    return documents


def validate_out(out: str, paths: List[str]):
    if out and not out.endswith("/") and len(paths) > 1:
        raise WorkspaceError("-out must be a directory (ending in /) when multiple files are given")


def output_path(path: str, out: str = "") -> str:
    """Where the rewritten contents of path go."""
    if not out:
        return path
    if out.endswith("/"):
        # Absolute inputs are nested under the output directory too
        return os.path.join(out, path.lstrip("/"))
    return out


def atomic_write(src: str, dst: str, content: str):
    """
    Writes content to dst. Permission bits are copied from dst when it
    exists, from src otherwise.
    """
    parent = os.path.dirname(dst) or "."
    try:
        os.makedirs(parent, exist_ok=True)
    except OSError as e:
        raise WorkspaceError(f"failed to make parent directory: {e}", path=dst) from e

    fd, temp_path = tempfile.mkstemp(prefix="ratchet-", dir=parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        mode_source = dst if os.path.exists(dst) else src
        if os.path.exists(mode_source):
            shutil.copymode(mode_source, temp_path)

        os.replace(temp_path, dst)
    except OSError as e:
        raise WorkspaceError(f"failed to save file {dst}: {e}", path=dst) from e
    finally:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
    logger.debug("wrote %s", dst)


def _clean(path: Path) -> str:
    return Path(os.path.normpath(str(path))).as_posix()
