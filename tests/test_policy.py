"""Tests for the download decision policy."""

from __future__ import annotations

import asyncio

import pytest

from squire.download.policy import should_fetch
from squire.exceptions import ArtifactIOError
from squire.models import ALWAYS_FETCH, FETCH_IF_MISSING, OverwritePolicy

from fakes import SpyVerifier, sha256

DIGEST = sha256(b"crate contents")

ALL_POLICIES = [ALWAYS_FETCH, FETCH_IF_MISSING, OverwritePolicy.checksum(DIGEST)]


class TestShouldFetch:
    @pytest.mark.parametrize("policy", ALL_POLICIES, ids=str)
    def test_missing_file_is_always_fetched(self, policy, tmp_path):
        verifier = SpyVerifier()
        path = str(tmp_path / "absent")
        assert asyncio.run(should_fetch(False, policy, path, verifier)) is True
        assert verifier.calls == []

    def test_always_fetch_never_reads_disk(self, tmp_path):
        verifier = SpyVerifier()
        path = str(tmp_path / "present")
        assert asyncio.run(should_fetch(True, ALWAYS_FETCH, path, verifier)) is True
        assert verifier.calls == []

    def test_missing_only_skips_existing(self, tmp_path):
        verifier = SpyVerifier()
        path = str(tmp_path / "present")
        assert asyncio.run(should_fetch(True, FETCH_IF_MISSING, path, verifier)) is False
        assert verifier.calls == []

    def test_checksum_match_skips(self, tmp_path):
        path = tmp_path / "serde-1.0.0.crate"
        path.write_bytes(b"crate contents")
        policy = OverwritePolicy.checksum(DIGEST)
        assert asyncio.run(should_fetch(True, policy, str(path))) is False

    def test_checksum_mismatch_fetches(self, tmp_path):
        path = tmp_path / "serde-1.0.0.crate"
        path.write_bytes(b"truncated")
        policy = OverwritePolicy.checksum(DIGEST)
        assert asyncio.run(should_fetch(True, policy, str(path))) is True

    def test_checksum_consults_verifier(self, tmp_path):
        path = str(tmp_path / "x.crate")
        verifier = SpyVerifier(result=True)
        policy = OverwritePolicy.checksum(DIGEST)
        assert asyncio.run(should_fetch(True, policy, path, verifier)) is False
        assert verifier.calls == [(path, DIGEST)]

    def test_unreadable_file_counts_as_stale(self, tmp_path):
        verifier = SpyVerifier(error=ArtifactIOError("permission denied"))
        policy = OverwritePolicy.checksum(DIGEST)
        path = str(tmp_path / "x.crate")
        assert asyncio.run(should_fetch(True, policy, path, verifier)) is True

    def test_checksum_requires_local_path(self):
        policy = OverwritePolicy.checksum(DIGEST)
        with pytest.raises(ValueError):
            asyncio.run(should_fetch(True, policy))
