# ============================================================================
# SyncBench -- Directory Comparator (src/core/dir_compare.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Proves the receiver ended up with the same tree the sender had.
#
#   Think of it like checking a shipment against its manifest: every path
#   on the sender's side must show up exactly once on the receiver's side,
#   with the same size and the same mode. The first path that does not
#   match stops the check and is reported.
#
# WHAT IS COMPARED:
#   - presence (missing on the receiver / extra on the receiver)
#   - size, for regular files only (directories are recorded as 0)
#   - mode: file type bits plus permission bits
#
#   File contents are not hashed. A same-size, same-mode corruption would
#   pass this check.
#
#   Symlinks are recorded as entries but never followed. Names listed in
#   ignore_names (the daemon's folder marker and versions dir) are skipped
#   together with everything below them.
#
# INTERNET ACCESS: NONE
# ============================================================================

from __future__ import annotations

import os
import stat
from dataclasses import dataclass
from typing import Dict, Iterable

from src.core.exceptions import SetupError, VerificationMismatchError

@dataclass(frozen=True)
class FileEntry:
    """One path in a tree, relative to the tree root with "/" separators."""
    path: str
    size: int
    mode: int

    @property
    def is_regular(self) -> bool:
        return stat.S_ISREG(self.mode)

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.mode)


def directory_contents(root, ignore_names: Iterable[str] = ()) -> Dict[str, FileEntry]:
    """
    Walk root recursively (without following symlinks) and return
    {relative_path: FileEntry}. The root itself is not included.
    """
    ignored = set(ignore_names)
    contents: Dict[str, FileEntry] = {}
    root = os.fspath(root)

    if not os.path.isdir(root):
        raise SetupError(f"Not a directory: {root}", path=root)

    pending = [("", root)]
    while pending:
        rel_dir, abs_dir = pending.pop()
        try:
            with os.scandir(abs_dir) as it:
                children = list(it)
        except OSError as e:
            raise SetupError(f"Cannot list {abs_dir}: {e}", path=abs_dir)

        for child in children:
            if child.name in ignored:
                continue
            rel = f"{rel_dir}/{child.name}" if rel_dir else child.name
            st = child.stat(follow_symlinks=False)
            mode = stat.S_IFMT(st.st_mode) | (st.st_mode & 0o777)
            size = st.st_size if stat.S_ISREG(st.st_mode) else 0
            contents[rel] = FileEntry(rel, size, mode)
            if stat.S_ISDIR(st.st_mode):
                pending.append((rel, child.path))

    return contents


def compare_directory_contents(
    actual: Dict[str, FileEntry],
    expected: Dict[str, FileEntry],
) -> None:
    """
    Raise VerificationMismatchError for the first divergent path in
    sorted order. Returns None when both trees match.
    """
    for path in sorted(set(actual) | set(expected)):
        exp = expected.get(path)
        act = actual.get(path)

        if act is None:
            raise VerificationMismatchError(path, "missing")
        if exp is None:
            raise VerificationMismatchError(path, "extra")

        if exp.is_regular and act.is_regular and exp.size != act.size:
            raise VerificationMismatchError(path, "size", exp.size, act.size)

        if exp.mode != act.mode:
            raise VerificationMismatchError(path, "mode", oct(exp.mode), oct(act.mode))
