"""Tests for ChecksumVerifier — SHA-256 digests of local files."""

from __future__ import annotations

import asyncio
import hashlib

import pytest

from squire.download.verifier import ChecksumVerifier
from squire.exceptions import ArtifactIOError


class TestChecksumVerifier:
    def test_digest_matches_hashlib(self, tmp_path):
        data = b"x" * (ChecksumVerifier.chunk_size * 2 + 17)
        path = tmp_path / "big.bin"
        path.write_bytes(data)
        digest = asyncio.run(ChecksumVerifier.digest_file(str(path)))
        assert digest == hashlib.sha256(data).digest()
        assert len(digest) == 32

    def test_verify_accepts_bytes_and_hex(self, tmp_path):
        path = tmp_path / "f"
        path.write_bytes(b"payload")
        expected = hashlib.sha256(b"payload")
        assert asyncio.run(ChecksumVerifier.verify(str(path), expected.digest()))
        assert asyncio.run(ChecksumVerifier.verify(str(path), expected.hexdigest()))

    def test_verify_mismatch(self, tmp_path):
        path = tmp_path / "f"
        path.write_bytes(b"payload")
        other = hashlib.sha256(b"other").digest()
        assert asyncio.run(ChecksumVerifier.verify(str(path), other)) is False

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ArtifactIOError) as exc_info:
            asyncio.run(ChecksumVerifier.digest_file(str(tmp_path / "nope")))
        assert exc_info.value.code == "E303"

    def test_exists(self, tmp_path):
        path = tmp_path / "f"
        assert ChecksumVerifier.exists(str(path)) is False
        path.write_bytes(b"")
        assert ChecksumVerifier.exists(str(path)) is True
