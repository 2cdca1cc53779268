# ============================================================================
# SyncBench -- Corpus Generator (src/core/corpus.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Builds the test data set the sender will share. Content comes from a
#   seed file (any file will do, e.g. the project LICENSE) read over and
#   over; the number of files, their sizes, modes and directory layout are
#   decided up front by plan_corpus().
#
# REPRODUCIBILITY:
#   plan_corpus() draws from a PRNG seeded with (seed fingerprint, count,
#   size_exponent). The same three inputs always give the same list of
#   paths, sizes and modes, so two runs of a scenario move the same bytes.
#
# SIZE PROFILE:
#   count == 1   one file "onefile" of exactly 2**size_exponent bytes
#   count > 1    each file is 2**k + r bytes, k in [0, size_exponent),
#                r in [0, min(128 KiB, 2**k)), spread over up to three
#                levels of two-hex-digit directories
#
# INTERNET ACCESS: NONE
# ============================================================================

from __future__ import annotations

import hashlib
import os
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from src.core.exceptions import SetupError

WRITE_BLOCK_SIZE = 1024 * 1024
SMALL_FILE_JITTER = 128 * 1024
MAX_DIR_DEPTH = 3
DIR_MODE = 0o755
SINGLE_FILE_NAME = "onefile"


class SeedSource:
    """
    Bytes the corpus is derived from.

    Usage:
        seed = SeedSource.from_file("../LICENSE")
        generate_files("s1", 100, 15, seed)
    """

    def __init__(self, data: bytes, name: str = "<bytes>"):
        if not data:
            raise SetupError(f"Seed source {name} is empty", path=name)
        self.data = bytes(data)
        self.name = name
        self.fingerprint = hashlib.sha256(self.data).hexdigest()

    @classmethod
    def from_file(cls, path) -> "SeedSource":
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise SetupError(f"Cannot read seed file {path}: {e}", path=str(path))
        return cls(data, name=str(path))

    def __len__(self) -> int:
        return len(self.data)

    def block(self, offset: int = 0, min_size: int = WRITE_BLOCK_SIZE) -> bytes:
        """
        The seed rotated to start at offset, repeated to at least min_size
        bytes. The length is a whole multiple of the seed length, so
        consecutive blocks continue the cycle without a seam.
        """
        n = len(self.data)
        offset %= n
        rotated = self.data[offset:] + self.data[:offset]
        repeats = max(1, -(-min_size // n))
        return rotated * repeats


@dataclass(frozen=True)
class PlannedFile:
    """One file the generator will write. path uses "/" separators."""
    path: str
    size: int
    mode: int
    offset: int = 0


@dataclass
class CorpusManifest:
    """What generate_files() wrote."""
    root: str
    entries: List[PlannedFile] = field(default_factory=list)

    @property
    def total_bytes(self) -> int:
        return sum(e.size for e in self.entries)

    @property
    def file_count(self) -> int:
        return len(self.entries)


def _planner_rng(seed: SeedSource, count: int, size_exponent: int) -> random.Random:
    material = f"{seed.fingerprint}:{count}:{size_exponent}".encode("utf-8")
    return random.Random(int.from_bytes(hashlib.sha256(material).digest()[:8], "big"))


def plan_corpus(count: int, size_exponent: int, seed: SeedSource) -> List[PlannedFile]:
    """
    Decide paths, sizes and modes for a corpus without touching disk.

    Raises SetupError for count < 1 or a negative size_exponent.
    """
    if count < 1:
        raise SetupError(f"File count must be at least 1, got {count}")
    if size_exponent < 0:
        raise SetupError(f"Size exponent must not be negative, got {size_exponent}")

    if count == 1:
        return [PlannedFile(SINGLE_FILE_NAME, 1 << size_exponent, 0o644, 0)]

    rng = _planner_rng(seed, count, size_exponent)
    planned: List[PlannedFile] = []
    for i in range(count):
        depth = rng.randrange(MAX_DIR_DEPTH + 1)
        parts = [f"{rng.randrange(256):02x}" for _ in range(depth)]
        parts.append(f"file{i:06d}")

        base = 1 << rng.randrange(size_exponent) if size_exponent > 0 else 1
        size = base + rng.randrange(min(SMALL_FILE_JITTER, base))

        mode = rng.randrange(0o777) | 0o400
        offset = rng.randrange(len(seed))
        planned.append(PlannedFile("/".join(parts), size, mode, offset))
    return planned


def generate_one_file(seed: SeedSource, path, exact_size: int, offset: int = 0) -> int:
    """
    Write exactly exact_size bytes of seed content to path.

    The seed is read cyclically starting at offset; the last block is
    truncated. Returns the number of bytes written.
    """
    if exact_size < 0:
        raise SetupError(f"File size must not be negative, got {exact_size}", path=str(path))

    block = seed.block(offset)
    remaining = exact_size
    try:
        with open(path, "wb") as f:
            while remaining >= len(block):
                f.write(block)
                remaining -= len(block)
            if remaining:
                f.write(block[:remaining])
    except OSError as e:
        raise SetupError(f"Cannot write {path}: {e}", path=str(path))
    return exact_size


def generate_files(directory, count: int, size_exponent: int, seed: SeedSource) -> CorpusManifest:
    """
    Create the planned corpus under directory (created if absent).

    Returns a CorpusManifest with every file written.
    """
    root = Path(directory)
    planned = plan_corpus(count, size_exponent, seed)

    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise SetupError(f"Cannot create {root}: {e}", path=str(root))

    made_dirs = set()
    for entry in planned:
        target = root.joinpath(*entry.path.split("/"))
        parent = target.parent
        if parent != root and parent not in made_dirs:
            try:
                parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
            except OSError as e:
                raise SetupError(f"Cannot create {parent}: {e}", path=str(parent))
            made_dirs.add(parent)

        generate_one_file(seed, target, entry.size, entry.offset)
        try:
            os.chmod(target, entry.mode)
        except OSError as e:
            raise SetupError(f"Cannot chmod {target}: {e}", path=str(target))

    return CorpusManifest(root=str(root), entries=planned)
