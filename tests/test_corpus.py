# ============================================================================
# test_corpus.py -- Tests for the corpus generator
# ============================================================================
#
# COVERS:
#   TestSeedSource      -- loading seed bytes, empty/missing seeds
#   TestPlanCorpus      -- deterministic size/mode/path profile
#   TestGenerateOneFile -- exact lengths, cyclic seed content
#   TestGenerateFiles   -- files on disk match the plan
#
# RUN:
#   python -m pytest tests/test_corpus.py -v
#
# INTERNET ACCESS: NONE
# ============================================================================

import os
import re
import stat
import sys

import pytest

from src.core.corpus import (
    SINGLE_FILE_NAME,
    SeedSource,
    generate_files,
    generate_one_file,
    plan_corpus,
)
from src.core.exceptions import SetupError


class TestSeedSource:

    def test_from_file_reads_bytes(self, tmp_path):
        p = tmp_path / "LICENSE"
        p.write_bytes(b"MIT License\n")
        seed = SeedSource.from_file(p)
        assert seed.data == b"MIT License\n"
        assert len(seed) == 12

    def test_fingerprint_is_stable(self):
        assert SeedSource(b"abc").fingerprint == SeedSource(b"abc").fingerprint
        assert SeedSource(b"abc").fingerprint != SeedSource(b"abd").fingerprint

    def test_empty_seed_rejected(self):
        with pytest.raises(SetupError):
            SeedSource(b"")

    def test_missing_seed_file(self, tmp_path):
        with pytest.raises(SetupError) as exc:
            SeedSource.from_file(tmp_path / "nope")
        assert exc.value.error_code == "SETUP-001"

    def test_block_continues_cycle(self):
        seed = SeedSource(b"abcdefg")
        block = seed.block(offset=2, min_size=20)
        assert len(block) % 7 == 0
        assert len(block) >= 20
        assert block.startswith(b"cdefgab")


class TestPlanCorpus:

    def test_single_file_is_exact_power_of_two(self):
        planned = plan_corpus(1, 12, SeedSource(b"x"))
        assert len(planned) == 1
        assert planned[0].path == SINGLE_FILE_NAME
        assert planned[0].size == 4096

    def test_same_inputs_same_plan(self):
        seed = SeedSource(b"some seed text")
        assert plan_corpus(200, 10, seed) == plan_corpus(200, 10, seed)

    def test_different_seed_different_plan(self):
        a = plan_corpus(200, 10, SeedSource(b"seed one"))
        b = plan_corpus(200, 10, SeedSource(b"seed two"))
        assert a != b

    def test_sizes_within_profile(self):
        planned = plan_corpus(500, 10, SeedSource(b"seed"))
        for entry in planned:
            assert 1 <= entry.size < 2 ** 10

    def test_modes_are_owner_readable(self):
        planned = plan_corpus(500, 8, SeedSource(b"seed"))
        for entry in planned:
            assert entry.mode & 0o400
            assert entry.mode <= 0o777

    def test_paths_unique_and_nested_at_most_three_levels(self):
        planned = plan_corpus(500, 8, SeedSource(b"seed"))
        paths = [e.path for e in planned]
        assert len(set(paths)) == len(paths)
        for path in paths:
            parts = path.split("/")
            assert len(parts) <= 4
            for d in parts[:-1]:
                assert re.fullmatch(r"[0-9a-f]{2}", d)

    def test_invalid_count(self):
        with pytest.raises(SetupError):
            plan_corpus(0, 10, SeedSource(b"x"))

    def test_negative_exponent(self):
        with pytest.raises(SetupError):
            plan_corpus(10, -1, SeedSource(b"x"))


class TestGenerateOneFile:

    @pytest.mark.parametrize("seed_bytes", [b"a", b"0123456", b"x" * 5000])
    @pytest.mark.parametrize("size", [0, 1, 4095, 1024 * 1024 + 17])
    def test_exact_length(self, tmp_path, seed_bytes, size):
        target = tmp_path / "f"
        written = generate_one_file(SeedSource(seed_bytes), target, size)
        assert written == size
        assert target.stat().st_size == size

    def test_reads_seed_cyclically_from_offset(self, tmp_path):
        target = tmp_path / "f"
        generate_one_file(SeedSource(b"abc"), target, 10, offset=1)
        assert target.read_bytes() == b"bcabcabcab"

    def test_unwritable_target(self, tmp_path):
        with pytest.raises(SetupError):
            generate_one_file(SeedSource(b"abc"), tmp_path / "missing" / "f", 10)


class TestGenerateFiles:

    def test_total_matches_plan(self, tmp_path):
        seed = SeedSource(b"The quick brown fox jumps over the lazy dog\n")
        manifest = generate_files(tmp_path / "s1", 60, 10, seed)
        planned = plan_corpus(60, 10, seed)

        assert manifest.file_count == 60
        assert manifest.total_bytes == sum(p.size for p in planned)

        on_disk = 0
        for root, _dirs, files in os.walk(tmp_path / "s1"):
            for name in files:
                on_disk += os.path.getsize(os.path.join(root, name))
        assert on_disk == manifest.total_bytes

    def test_single_file_scenario(self, tmp_path):
        manifest = generate_files(tmp_path / "s1", 1, 16, SeedSource(b"seed"))
        assert manifest.total_bytes == 65536
        assert (tmp_path / "s1" / SINGLE_FILE_NAME).stat().st_size == 65536

    @pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX modes")
    def test_modes_applied(self, tmp_path):
        manifest = generate_files(tmp_path / "s1", 30, 6, SeedSource(b"seed"))
        for entry in manifest.entries:
            st = os.stat(tmp_path / "s1" / entry.path)
            assert stat.S_IMODE(st.st_mode) == entry.mode
