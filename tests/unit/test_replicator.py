"""
Unit tests for multi-target replication.

Each replica is a bucket in one shared MockObjectStore, so a test can
leave a bucket out to model a missing replica, or inject put failures
into one replica while the others stay healthy.
"""

import asyncio

import pytest

from mediasync.core.replication.errors import ConfigurationFailure
from mediasync.core.replication.models import (
    ReplicationOutcome,
    RunState,
    TargetEndpoint,
)
from mediasync.core.replication.replicator import Replicator, replicate
from mediasync.infrastructure.storage.client import MockObjectStore, MockObjectStoreClient


TARGETS = [
    TargetEndpoint(region="us-east-1", bucket_identifier="replica-1"),
    TargetEndpoint(region="eu-west-1", bucket_identifier="replica-2"),
    TargetEndpoint(region="ap-south-1", bucket_identifier="replica-3"),
]


class StubClientFactory:
    """Builds mock clients and remembers them by bucket."""

    def __init__(self, store: MockObjectStore, **options) -> None:
        self.store = store
        self.options = options  # {bucket: MockObjectStoreClient kwargs}
        self.clients: dict[str, MockObjectStoreClient] = {}

    def __call__(self, target: TargetEndpoint) -> MockObjectStoreClient:
        client = MockObjectStoreClient(
            self.store,
            target.bucket_identifier,
            **self.options.get(target.bucket_identifier, {}),
        )
        self.clients[target.bucket_identifier] = client
        return client


@pytest.fixture
def source_dir(tmp_path):
    root = tmp_path / "show"
    (root / "a").mkdir(parents=True)
    (root / "a" / "b.ts").write_bytes(b"segment")
    (root / "c.m3u8").write_bytes(b"#EXTM3U\n")
    return str(root)


@pytest.fixture
def store() -> MockObjectStore:
    store = MockObjectStore()
    for target in TARGETS:
        store.create_bucket(target.bucket_identifier)
    return store


def run(replicator, source_dir, targets=TARGETS, **kwargs):
    return asyncio.run(replicator.replicate(source_dir, targets, **kwargs))


class TestReplicationSuccess:

    def test_every_target_receives_the_tree(self, store, source_dir):
        report = run(Replicator(StubClientFactory(store), concurrency=2), source_dir)

        assert report.success
        assert report.outcome == ReplicationOutcome.SUCCESS
        assert report.state == RunState.DONE
        for target in TARGETS:
            assert store.keys(target.bucket_identifier) == ["show/a/b.ts", "show/c.m3u8"]
            assert store.content_type(target.bucket_identifier, "show/c.m3u8") == \
                "application/vnd.apple.mpegurl"

    def test_reports_follow_target_order(self, store, source_dir):
        report = run(Replicator(StubClientFactory(store)), source_dir)

        assert [r.target for r in report.reports] == TARGETS
        assert all(r.attempted == 2 for r in report.reports)

    def test_remote_prefix_override(self, store, source_dir):
        run(Replicator(StubClientFactory(store)), source_dir, remote_prefix="videos/show-1")

        assert store.keys("replica-1") == ["videos/show-1/a/b.ts", "videos/show-1/c.m3u8"]

    def test_module_level_replicate(self, store, source_dir):
        report = asyncio.run(replicate(source_dir, TARGETS[:1], StubClientFactory(store), concurrency=1))

        assert report.success
        assert len(report.reports) == 1


class TestPreflight:
    """A missing replica aborts the run before anything is written."""

    def test_missing_bucket_aborts_all_targets(self, source_dir):
        store = MockObjectStore()
        store.create_bucket("replica-1")
        store.create_bucket("replica-3")
        factory = StubClientFactory(store)

        report = run(Replicator(factory), source_dir)

        assert report.state == RunState.ABORTED
        assert report.outcome == ReplicationOutcome.FAILED
        assert report.reports == []
        assert [c.target for c in report.preflight_failures] == [TARGETS[1]]
        assert "replica-2@eu-west-1" in report.preflight_failures[0].error
        assert store.keys("replica-1") == []
        assert store.keys("replica-3") == []
        assert all(client.put_calls == 0 for client in factory.clients.values())

    def test_every_missing_target_is_listed(self, source_dir):
        report = run(Replicator(StubClientFactory(MockObjectStore())), source_dir)

        assert len(report.preflight_failures) == 3
        assert report.configuration_error is None


class TestPartialFailure:

    def test_failing_target_does_not_stop_others(self, store, source_dir):
        factory = StubClientFactory(store, **{"replica-2": {"fail_on_put": {"show/c.m3u8"}}})

        report = run(Replicator(factory, concurrency=1), source_dir)

        assert report.state == RunState.DONE
        assert report.outcome == ReplicationOutcome.PARTIAL
        assert not report.success

        first, second, third = report.reports
        assert first.failed == 0 and third.failed == 0
        assert second.failed == 1
        assert "show/c.m3u8" in second.first_error
        assert store.keys("replica-1") == ["show/a/b.ts", "show/c.m3u8"]
        assert store.keys("replica-3") == ["show/a/b.ts", "show/c.m3u8"]

    def test_all_targets_failing_is_failed(self, store, source_dir):
        failing = {"fail_on_put": {"show/a/b.ts", "show/c.m3u8"}}
        factory = StubClientFactory(store, **{t.bucket_identifier: failing for t in TARGETS})

        report = run(Replicator(factory), source_dir)

        assert report.state == RunState.DONE
        assert report.outcome == ReplicationOutcome.FAILED


class TestConfiguration:
    """Configuration problems abort before preflight."""

    def test_no_targets(self, store, source_dir):
        factory = StubClientFactory(store)

        report = run(Replicator(factory), source_dir, targets=[])

        assert report.state == RunState.ABORTED
        assert "No replication targets" in report.configuration_error
        assert factory.clients == {}

    def test_invalid_concurrency(self, store, source_dir):
        report = run(Replicator(StubClientFactory(store), concurrency=0), source_dir)

        assert report.state == RunState.ABORTED
        assert "at least 1" in report.configuration_error

    def test_missing_source_directory(self, store, tmp_path):
        report = run(Replicator(StubClientFactory(store)), str(tmp_path / "nope"))

        assert "does not exist" in report.configuration_error
        assert report.preflight == []

    def test_client_factory_failure(self, source_dir):
        def factory(target):
            raise ConfigurationFailure("no credentials")

        report = run(Replicator(factory), source_dir)

        assert report.state == RunState.ABORTED
        assert "no credentials" in report.configuration_error
