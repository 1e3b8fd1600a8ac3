"""
Unit tests for the object store clients.

The S3 client is exercised against a real boto3 client wrapped in a
botocore Stubber, so no request leaves the process.
"""

import io

import boto3
import pytest
from botocore.response import StreamingBody
from botocore.stub import ANY, Stubber

from mediasync.core.replication.storage import ObjectEntry
from mediasync.infrastructure.storage.client import (
    MockObjectStore,
    MockObjectStoreClient,
    S3ObjectStoreClient,
    StorageConfig,
    StorageError,
    create_object_store_client,
)


@pytest.fixture
def config() -> StorageConfig:
    return StorageConfig(
        access_key_id="test",
        secret_access_key="test",
        bucket_name="replica",
        region="us-east-1",
    )


@pytest.fixture
def stubbed(config):
    s3 = boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="test",
        aws_secret_access_key="test",
    )
    with Stubber(s3) as stubber:
        yield S3ObjectStoreClient(config, s3_client=s3), stubber
        stubber.assert_no_pending_responses()


# ---------------------------------------------------------------------------
# S3ObjectStoreClient Tests
# ---------------------------------------------------------------------------

class TestS3ObjectStoreClient:

    def test_list_follows_continuation_tokens(self, stubbed):
        client, stubber = stubbed
        stubber.add_response(
            "list_objects_v2",
            {
                "Contents": [{"Key": "show/a.ts"}],
                "IsTruncated": True,
                "NextContinuationToken": "page-2",
            },
            {"Bucket": "replica", "Prefix": "show/"},
        )
        stubber.add_response(
            "list_objects_v2",
            {"Contents": [{"Key": "show/b/"}], "IsTruncated": False},
            {"Bucket": "replica", "Prefix": "show/", "ContinuationToken": "page-2"},
        )

        pages = list(client.list("show/"))

        assert pages == [
            [ObjectEntry("show/a.ts", False)],
            [ObjectEntry("show/b/", True)],
        ]

    def test_list_empty_prefix_has_no_contents(self, stubbed):
        client, stubber = stubbed
        stubber.add_response(
            "list_objects_v2",
            {"IsTruncated": False, "KeyCount": 0},
            {"Bucket": "replica", "Prefix": "missing/"},
        )

        assert list(client.list("missing/")) == [[]]

    def test_list_error_raises_storage_error(self, stubbed):
        client, stubber = stubbed
        stubber.add_client_error("list_objects_v2", service_error_code="AccessDenied", http_status_code=403)

        with pytest.raises(StorageError, match="List failed for show/"):
            list(client.list("show/"))

    def test_get_returns_body(self, stubbed):
        client, stubber = stubbed
        stubber.add_response(
            "get_object",
            {"Body": StreamingBody(io.BytesIO(b"data"), 4)},
            {"Bucket": "replica", "Key": "show/a.ts"},
        )

        body = client.get("show/a.ts")

        assert body.read() == b"data"

    def test_get_missing_key_raises_storage_error(self, stubbed):
        client, stubber = stubbed
        stubber.add_client_error("get_object", service_error_code="NoSuchKey", http_status_code=404)

        with pytest.raises(StorageError, match="show/a.ts"):
            client.get("show/a.ts")

    def test_put_sends_content_type(self, stubbed):
        client, stubber = stubbed
        stubber.add_response(
            "put_object",
            {},
            {"Bucket": "replica", "Key": "show/a.ts", "Body": ANY, "ContentType": "video/mp2t"},
        )

        client.put("show/a.ts", io.BytesIO(b"data"), "video/mp2t")

    def test_head_missing_bucket_names_bucket_and_region(self, stubbed):
        client, stubber = stubbed
        stubber.add_client_error("head_bucket", service_error_code="404", http_status_code=404)

        with pytest.raises(StorageError, match="'replica'.*'us-east-1'"):
            client.head()

    def test_head_existing_bucket(self, stubbed):
        client, stubber = stubbed
        stubber.add_response("head_bucket", {}, {"Bucket": "replica"})

        client.head()


# ---------------------------------------------------------------------------
# Mock Client Tests
# ---------------------------------------------------------------------------

class TestMockObjectStoreClient:

    @pytest.fixture
    def store(self) -> MockObjectStore:
        store = MockObjectStore()
        store.create_bucket("origin")
        return store

    def test_put_then_get(self, store):
        client = MockObjectStoreClient(store, "origin")

        client.put("show/a.ts", io.BytesIO(b"data"), "video/mp2t")

        assert client.get("show/a.ts").read() == b"data"
        assert store.content_type("origin", "show/a.ts") == "video/mp2t"
        assert client.put_calls == 1
        assert client.get_calls == 1

    def test_list_pages(self, store):
        for i in range(5):
            store.write("origin", f"show/{i}.ts", b"x", "video/mp2t")
        client = MockObjectStoreClient(store, "origin", page_size=2)

        pages = list(client.list("show/"))

        assert [len(page) for page in pages] == [2, 2, 1]

    def test_missing_key(self, store):
        with pytest.raises(StorageError, match="NoSuchKey"):
            MockObjectStoreClient(store, "origin").get("nope")

    def test_head_missing_bucket(self, store):
        with pytest.raises(StorageError, match="does not exist"):
            MockObjectStoreClient(store, "other").head()

    def test_injected_put_failure(self, store):
        client = MockObjectStoreClient(store, "origin", fail_on_put={"show/a.ts"})

        with pytest.raises(StorageError, match="injected"):
            client.put("show/a.ts", io.BytesIO(b"x"), "video/mp2t")

        assert store.keys("origin") == []

    def test_latency_within_timeout_completes(self, store):
        client = MockObjectStoreClient(store, "origin", latency=0.01, timeout=1.0)

        client.put("show/a.ts", io.BytesIO(b"x"), "video/mp2t")

        assert store.keys("origin") == ["show/a.ts"]

    def test_latency_past_timeout_raises_without_writing(self, store):
        client = MockObjectStoreClient(store, "origin", latency=0.2, timeout=0.01)

        with pytest.raises(StorageError, match="Read timeout on show/a.ts"):
            client.put("show/a.ts", io.BytesIO(b"x"), "video/mp2t")

        assert store.keys("origin") == []


class TestCreateObjectStoreClient:

    def test_mock_store_gives_mock_client(self, config):
        client = create_object_store_client(config, mock_store=MockObjectStore())
        assert isinstance(client, MockObjectStoreClient)
        assert client.bucket_name == "replica"

    def test_without_mock_store_gives_s3_client(self, config):
        client = create_object_store_client(config)
        assert isinstance(client, S3ObjectStoreClient)
        assert client.bucket_name == "replica"

    def test_timeout_sets_connect_and_read_deadlines(self, config):
        config.timeout = 5.0

        client = create_object_store_client(config)

        boto_config = client._s3_client.meta.config
        assert boto_config.connect_timeout == 5.0
        assert boto_config.read_timeout == 5.0

    def test_timeout_reaches_mock_client(self, config):
        config.timeout = 0.01
        store = MockObjectStore()
        store.create_bucket("replica")

        client = create_object_store_client(config, mock_store=store)

        assert client._timeout == 0.01
