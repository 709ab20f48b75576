"""Tests for MirrorScheduler — bounded fan-out and per-item failure isolation."""

from __future__ import annotations

import asyncio

import pytest

from squire.download import ArtifactFetcher, MirrorScheduler
from squire.models import ALWAYS_FETCH, FETCH_IF_MISSING, FetchStatus

from fakes import DIST, FakeSession

PACKAGES = [f"/dist/2023-01-01/pkg-{i}-x86_64-unknown-linux-gnu.tar.xz" for i in range(3)]
MANIFEST = "/dist/channel-rust-stable.toml"


def count(outcomes, status):
    return sum(1 for o in outcomes if o.status is status)


class ExplodingFetcher(ArtifactFetcher):
    async def fetch(self, descriptor, policy):
        if descriptor.remote_path.endswith("boom"):
            raise RuntimeError("unexpected")
        return await super().fetch(descriptor, policy)


class TestMirrorScheduler:
    def test_bounded_concurrency_and_failure_isolation(self, descriptor_for):
        session = FakeSession(delay=0.01)
        paths = [f"/dist/file-{i}.tar.xz" for i in range(1, 6)]
        for path in paths:
            session.routes[DIST + path] = b"payload"
        session.routes[DIST + paths[1]] = 500
        scheduler = MirrorScheduler(ArtifactFetcher(session=session), concurrency_limit=2)

        outcomes = asyncio.run(
            scheduler.run([(descriptor_for(p), FETCH_IF_MISSING) for p in paths])
        )

        assert len(outcomes) == 5
        assert {o.descriptor.remote_path for o in outcomes} == set(paths)
        assert count(outcomes, FetchStatus.FAILED) == 1
        assert count(outcomes, FetchStatus.WRITTEN) == 4
        assert session.max_in_flight == 2
        assert len(session.requests) == 5
        assert scheduler.get_failed() == [paths[1]]

    def test_concurrency_limit_of_one_is_sequential(self, descriptor_for):
        session = FakeSession(delay=0.005)
        paths = [f"/dist/f{i}" for i in range(4)]
        session.routes.update({DIST + p: b"x" for p in paths})
        scheduler = MirrorScheduler(ArtifactFetcher(session=session), concurrency_limit=1)

        asyncio.run(scheduler.run([(descriptor_for(p), ALWAYS_FETCH) for p in paths]))

        assert session.max_in_flight == 1
        assert session.requests == [DIST + p for p in paths]

    def test_mirror_then_rerun(self, descriptor_for, output_dir):
        session = FakeSession()
        session.routes[DIST + MANIFEST] = b"manifest"
        session.routes.update({DIST + p: p.encode() for p in PACKAGES})
        items = [(descriptor_for(MANIFEST), ALWAYS_FETCH)] + [
            (descriptor_for(p), FETCH_IF_MISSING) for p in PACKAGES
        ]

        first = asyncio.run(
            MirrorScheduler(ArtifactFetcher(session=session), 2).run(items)
        )
        assert count(first, FetchStatus.WRITTEN) == 4
        assert len([p for p in output_dir.rglob("*") if p.is_file()]) == 4

        second = asyncio.run(
            MirrorScheduler(ArtifactFetcher(session=session), 2).run(items)
        )
        by_path = {o.descriptor.remote_path: o.status for o in second}
        assert by_path[MANIFEST] is FetchStatus.WRITTEN
        assert all(by_path[p] is FetchStatus.SKIPPED for p in PACKAGES)
        assert len(session.requests) == 5

    def test_duplicate_paths_written_once(self, scheduler, session, descriptor_for):
        session.routes[DIST + MANIFEST] = b"manifest"
        d = descriptor_for(MANIFEST)

        outcomes = asyncio.run(scheduler.run([(d, ALWAYS_FETCH), (d, ALWAYS_FETCH)]))

        assert len(outcomes) == 2
        assert count(outcomes, FetchStatus.WRITTEN) == 1
        assert count(outcomes, FetchStatus.SKIPPED) == 1
        assert len(session.requests) == 1

    def test_paths_deduplicated_across_batches(self, scheduler, session, descriptor_for):
        session.routes[DIST + MANIFEST] = b"manifest"
        d = descriptor_for(MANIFEST)

        async def scenario():
            first = await scheduler.fetch_one(d, ALWAYS_FETCH)
            second = await scheduler.fetch_one(d, ALWAYS_FETCH)
            return first, second

        first, second = asyncio.run(scenario())
        assert first.status is FetchStatus.WRITTEN
        assert second.status is FetchStatus.SKIPPED
        assert len(session.requests) == 1

    def test_repeat_of_failed_path_reports_the_failure(self, scheduler, session, descriptor_for):
        session.routes[DIST + MANIFEST] = 503
        d = descriptor_for(MANIFEST)

        async def scenario():
            first = await scheduler.fetch_one(d, ALWAYS_FETCH)
            second = await scheduler.fetch_one(d, ALWAYS_FETCH)
            return first, second

        first, second = asyncio.run(scenario())
        assert first.status is FetchStatus.FAILED
        assert second.status is FetchStatus.FAILED
        assert second.cause is first.cause
        assert len(session.requests) == 1
        assert scheduler.get_failed() == [MANIFEST]

    def test_repeat_within_a_batch_is_not_refetched(self, scheduler, session, descriptor_for):
        session.routes[DIST + MANIFEST] = 503
        d = descriptor_for(MANIFEST)

        outcomes = asyncio.run(scheduler.run([(d, ALWAYS_FETCH), (d, ALWAYS_FETCH)]))

        assert len(outcomes) == 2
        assert len(session.requests) == 1
        assert scheduler.get_failed() == [MANIFEST]

    def test_unexpected_exception_is_contained(self, session, descriptor_for):
        session.routes[DIST + "/dist/ok"] = b"ok"
        scheduler = MirrorScheduler(ExplodingFetcher(session=session), 2)

        outcomes = asyncio.run(
            scheduler.run(
                [
                    (descriptor_for("/dist/boom"), ALWAYS_FETCH),
                    (descriptor_for("/dist/ok"), ALWAYS_FETCH),
                ]
            )
        )

        statuses = {o.descriptor.remote_path: o for o in outcomes}
        assert statuses["/dist/boom"].status is FetchStatus.FAILED
        assert isinstance(statuses["/dist/boom"].cause, RuntimeError)
        assert statuses["/dist/ok"].status is FetchStatus.WRITTEN

    def test_consumes_lazy_iterables(self, scheduler, session, descriptor_for):
        paths = [f"/dist/lazy-{i}" for i in range(20)]
        session.routes.update({DIST + p: b"x" for p in paths})

        outcomes = asyncio.run(
            scheduler.run(
                ((descriptor_for(p), FETCH_IF_MISSING) for p in paths),
                label="lazy",
            )
        )

        assert len(outcomes) == 20
        assert scheduler.get_stats().written == 20

    def test_empty_batch(self, scheduler):
        assert asyncio.run(scheduler.run([])) == []

    def test_invalid_limit(self, fetcher):
        with pytest.raises(ValueError):
            MirrorScheduler(fetcher, concurrency_limit=0)
