"""Tests for content hashing."""

import hashlib
import tempfile
import threading
from pathlib import Path

import pytest

from declutter.errors import HashFailure
from declutter.hasher import content_hash


class TestContentHash:
    def test_matches_hashlib(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            f = Path(tmpdir) / "data.bin"
            data = b"abc" * 50_000
            f.write_bytes(data)
            assert content_hash(f, chunk_size=4096) == hashlib.md5(data).hexdigest()

    def test_identical_content_identical_digest(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            a = Path(tmpdir) / "a"
            b = Path(tmpdir) / "b"
            a.write_bytes(b"same")
            b.write_bytes(b"same")
            assert content_hash(a) == content_hash(b)

    def test_other_algorithm(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            f = Path(tmpdir) / "a"
            f.write_bytes(b"x")
            assert content_hash(f, algorithm="sha256") == hashlib.sha256(b"x").hexdigest()

    def test_missing_file_raises_hash_failure(self):
        with pytest.raises(HashFailure) as exc_info:
            content_hash("/nonexistent/file.bin")
        assert exc_info.value.path == "/nonexistent/file.bin"

    def test_cancel_raises_hash_failure(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            f = Path(tmpdir) / "a"
            f.write_bytes(b"x" * 100)
            cancel = threading.Event()
            cancel.set()
            with pytest.raises(HashFailure, match="cancelled"):
                content_hash(f, cancel=cancel)
