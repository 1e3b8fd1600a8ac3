"""
Unit tests for the command-line sync.
"""

import asyncio
import json
import os

import pytest

from mediasync import cli
from mediasync.api import dependencies
from mediasync.config.settings import Settings
from mediasync.core.replication.errors import ConfigurationFailure


@pytest.fixture
def environment(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("STORAGE_MOCK_MODE", "true")
    monkeypatch.setenv("R2_BUCKET_NAME", "origin")
    monkeypatch.setenv("REPLICA_TARGETS", "us-east-1=replica-1,eu-west-1=replica-2")
    monkeypatch.setenv("STAGING_DIR", str(tmp_path / "staging"))
    monkeypatch.setattr(dependencies, "_mock_object_store", None)
    return tmp_path


@pytest.fixture
def store(environment):
    store = dependencies.get_mock_object_store(Settings(_env_file=None))
    store.write("origin", "show/a/b.ts", b"segment", "video/mp2t")
    store.write("origin", "show/c.m3u8", b"#EXTM3U\n", "application/vnd.apple.mpegurl")
    return store


class TestRunSync:

    def test_replicates_and_removes_staging(self, environment, store):
        settings = Settings(_env_file=None)
        staging = str(environment / "staging")

        status, result = asyncio.run(cli.run_sync(settings, "show", staging, 2))

        assert status == cli.EXIT_OK
        assert result["success"] is True
        assert store.keys("replica-2") == ["show/a/b.ts", "show/c.m3u8"]
        assert os.listdir(staging) == []

    def test_keep_staging(self, environment, store):
        settings = Settings(_env_file=None)
        staging = str(environment / "staging")

        asyncio.run(cli.run_sync(settings, "show", staging, 2, keep_staging=True))

        [run_dir] = os.listdir(staging)
        assert os.path.isfile(os.path.join(staging, run_dir, "show", "a", "b.ts"))

    def test_no_targets_is_configuration_failure(self, environment, monkeypatch):
        monkeypatch.setenv("REPLICA_TARGETS", "")
        settings = Settings(_env_file=None)

        with pytest.raises(ConfigurationFailure):
            asyncio.run(cli.run_sync(settings, "show", str(environment), 2))


class TestMain:

    def test_prints_report_and_exits_zero(self, store, capsys):
        status = cli.main(["show", "--concurrency", "3"])

        assert status == cli.EXIT_OK
        report = json.loads(capsys.readouterr().out)
        assert report["outcome"] == "success"
        assert len(report["targets"]) == 2

    def test_missing_bucket_exits_one(self, store, monkeypatch, capsys):
        monkeypatch.setenv("REPLICA_TARGETS", "us-east-1=replica-1,eu-west-1=replica-9")

        status = cli.main(["show"])

        assert status == cli.EXIT_FAILED
        report = json.loads(capsys.readouterr().out)
        assert report["preflight_failures"][0]["target"] == "replica-9@eu-west-1"

    def test_bad_concurrency_exits_two(self, environment):
        assert cli.main(["show", "--concurrency", "0"]) == cli.EXIT_CONFIG

    def test_no_targets_exits_two(self, environment, monkeypatch):
        monkeypatch.setenv("REPLICA_TARGETS", "")
        assert cli.main(["show"]) == cli.EXIT_CONFIG
