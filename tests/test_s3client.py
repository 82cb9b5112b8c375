from botocore.exceptions import ClientError
from botocore.exceptions import ReadTimeoutError
from datetime import datetime
from moto import mock_aws
from trace_blockstore.context import CancelledError
from trace_blockstore.context import Context
from trace_blockstore.errors import NotFoundError
from trace_blockstore.errors import StoreOperationError
from trace_blockstore.interfaces import IBlobStore
from trace_blockstore.reader import BlockReader
from trace_blockstore.s3client import MIN_PART_SIZE
from trace_blockstore.s3client import _client_kwargs
from trace_blockstore.s3client import S3BlobStore
from unittest import mock

import boto3
import io
import pytest
import uuid


@pytest.fixture
def s3_env():
    with mock_aws():
        boto3.client("s3", region_name="us-east-1").create_bucket(
            Bucket="test-bucket"
        )
        yield


@pytest.fixture
def store(s3_env):
    return S3BlobStore(bucket_name="test-bucket", region_name="us-east-1")


@pytest.fixture
def prefixed_store(s3_env):
    return S3BlobStore(
        bucket_name="test-bucket", prefix="myprefix", region_name="us-east-1"
    )


@pytest.fixture
def ctx():
    return Context.background()


class TestS3BlobStoreInterface:
    def test_interface_provided(self, store):
        assert IBlobStore.providedBy(store)

    def test_bucket_required(self, s3_env):
        with pytest.raises(ValueError, match="bucket-name"):
            S3BlobStore(bucket_name="", region_name="us-east-1")

    def test_prefix_rejects_invalid_characters(self, s3_env):
        with pytest.raises(ValueError, match="invalid characters"):
            S3BlobStore(bucket_name="test-bucket", prefix="a b", region_name="us-east-1")

    def test_prefix_rejects_parent_reference(self, s3_env):
        with pytest.raises(ValueError, match="'..'"):
            S3BlobStore(bucket_name="test-bucket", prefix="a/../b", region_name="us-east-1")

    def test_client_kwargs_leave_unset_options_out(self):
        kwargs = _client_kwargs(
            use_ssl=True, config=None, endpoint_url=None, region_name="eu-west-1"
        )
        assert kwargs == {"region_name": "eu-west-1", "config": None, "use_ssl": True}

    def test_client_kwargs_warn_without_ssl(self, caplog):
        with caplog.at_level("WARNING", logger="trace_blockstore.s3client"):
            kwargs = _client_kwargs(use_ssl=False, config=None)
        assert kwargs["use_ssl"] is False
        assert "SSL is disabled" in caplog.text


class TestPutGet:
    def test_put_and_get_roundtrip(self, store, ctx):
        store.put("t/b/bloom", b"bloom bytes", ctx)
        assert store.get("t/b/bloom", ctx) == b"bloom bytes"

    def test_get_missing_raises_not_found(self, store, ctx):
        with pytest.raises(NotFoundError) as exc_info:
            store.get("missing/key", ctx)
        assert exc_info.value.key == "missing/key"

    def test_get_with_mod_time(self, store, ctx):
        store.put("t/b/meta.json", b"{}", ctx)
        data, modified = store.get_with_mod_time("t/b/meta.json", ctx)
        assert data == b"{}"
        assert isinstance(modified, datetime)

    def test_put_respects_cancellation(self, store):
        ctx = Context()
        ctx.cancel()
        with pytest.raises(CancelledError):
            store.put("t/b/bloom", b"x", ctx)
        assert store.head("t/b/bloom", Context.background()) is None


class TestPutStream:
    def test_small_payload_single_put(self, store, ctx):
        store.put_stream("t/b/data", io.BytesIO(b"payload"), 1024, ctx)
        assert store.get("t/b/data", ctx) == b"payload"

    def test_empty_payload(self, store, ctx):
        store.put_stream("t/b/data", io.BytesIO(b""), 1024, ctx)
        assert store.get("t/b/data", ctx) == b""

    def test_multipart_payload(self, store, ctx):
        data = bytes(range(256)) * ((2 * MIN_PART_SIZE + 1000) // 256)
        store.put_stream("t/b/data", io.BytesIO(data), MIN_PART_SIZE, ctx)
        assert store.get("t/b/data", ctx) == data

    def test_multipart_cancel_aborts_upload(self, store):
        class CancellingStream(io.BytesIO):
            def __init__(self, data, ctx):
                super().__init__(data)
                self.ctx = ctx
                self.reads = 0

            def read(self, size=-1):
                self.reads += 1
                if self.reads > 1:
                    self.ctx.cancel()
                return super().read(size)

        ctx = Context()
        data = b"x" * (MIN_PART_SIZE * 3)
        with pytest.raises(CancelledError):
            store.put_stream("t/b/data", CancellingStream(data, ctx), MIN_PART_SIZE, ctx)

        assert store.head("t/b/data", Context.background()) is None
        raw = boto3.client("s3", region_name="us-east-1")
        uploads = raw.list_multipart_uploads(Bucket="test-bucket")
        assert uploads.get("Uploads", []) == []


class TestHead:
    def test_head_existing(self, store, ctx):
        store.put("t/b/index", b"123456789", ctx)
        info = store.head("t/b/index", ctx)
        assert info.size == 9
        assert isinstance(info.last_modified, datetime)

    def test_head_missing(self, store, ctx):
        assert store.head("t/b/index", ctx) is None


class TestOpenRange:
    def test_range(self, store, ctx):
        store.put("t/b/data", b"0123456789", ctx)
        stream = store.open_range("t/b/data", 3, 4, ctx)
        try:
            assert stream.read() == b"3456"
        finally:
            stream.close()

    def test_range_past_end_is_clamped(self, store, ctx):
        store.put("t/b/data", b"0123456789", ctx)
        stream = store.open_range("t/b/data", 8, 10, ctx)
        try:
            assert stream.read() == b"89"
        finally:
            stream.close()

    def test_offset_past_end_is_empty(self, store, ctx):
        store.put("t/b/data", b"0123456789", ctx)
        assert store.open_range("t/b/data", 50, 10, ctx).read() == b""

    def test_missing_key(self, store, ctx):
        with pytest.raises(NotFoundError):
            store.open_range("t/b/data", 0, 10, ctx)

    def test_body_read_failure_is_store_error(self, store, ctx, monkeypatch):
        body = mock.Mock()
        body.read.side_effect = ReadTimeoutError(endpoint_url="http://s3")
        monkeypatch.setattr(
            store._client, "get_object", mock.Mock(return_value={"Body": body})
        )

        stream = store.open_range("t/b/data", 0, 10, ctx)
        with pytest.raises(StoreOperationError, match="read range") as exc_info:
            stream.read(10)
        assert isinstance(exc_info.value.__cause__, ReadTimeoutError)
        stream.close()
        body.close.assert_called_once_with()

    def test_body_read_failure_through_reader(self, store, monkeypatch):
        body = mock.Mock()
        body.read.side_effect = ReadTimeoutError(endpoint_url="http://s3")
        monkeypatch.setattr(
            store._client, "get_object", mock.Mock(return_value={"Body": body})
        )

        block_id = uuid.UUID("0b5d2f7a-3c2e-4f0a-9d8e-1a2b3c4d5e6f")
        with pytest.raises(StoreOperationError):
            BlockReader(store).object(block_id, "t", 0, bytearray(10))
        body.close.assert_called_once_with()


class TestListPrefixes:
    def test_top_level(self, store, ctx):
        for key in ["a/1/bloom", "a/2/bloom", "b/1/bloom", "top-level-object"]:
            store.put(key, b"x", ctx)

        entries = list(store.list_prefixes("", ctx))
        assert [e.prefix for e in entries] == ["a/", "b/"]
        assert all(e.error is None for e in entries)

    def test_one_level_below_prefix(self, store, ctx):
        store.put("a/1/bloom", b"x", ctx)
        store.put("a/1/index", b"x", ctx)
        store.put("a/2/deep/nested/key", b"x", ctx)

        entries = list(store.list_prefixes("a/", ctx))
        assert [e.prefix for e in entries] == ["a/1/", "a/2/"]

    def test_empty(self, store, ctx):
        assert list(store.list_prefixes("", ctx)) == []

    def test_page_failure_is_yielded(self, store, ctx, monkeypatch):
        paginator = mock.Mock()
        paginator.paginate.side_effect = ClientError(
            {"Error": {"Code": "SlowDown", "Message": "slow"}}, "ListObjectsV2"
        )
        monkeypatch.setattr(store._client, "get_paginator", lambda name: paginator)

        entries = list(store.list_prefixes("", ctx))
        assert len(entries) == 1
        assert entries[0].prefix is None
        assert "SlowDown" in str(entries[0].error)

    def test_cancelled(self, store):
        ctx = Context()
        ctx.cancel()
        with pytest.raises(CancelledError):
            list(store.list_prefixes("", ctx))


class TestPrefix:
    def test_prefix_applied_to_put(self, prefixed_store, ctx):
        prefixed_store.put("t/b/bloom", b"prefixed", ctx)

        s3 = boto3.client("s3", region_name="us-east-1")
        resp = s3.get_object(Bucket="test-bucket", Key="myprefix/t/b/bloom")
        assert resp["Body"].read() == b"prefixed"

    def test_prefix_stripped_from_listing(self, prefixed_store, ctx):
        prefixed_store.put("t1/b/bloom", b"x", ctx)
        prefixed_store.put("t2/b/bloom", b"x", ctx)

        assert [e.prefix for e in prefixed_store.list_prefixes("", ctx)] == [
            "t1/",
            "t2/",
        ]
        assert [e.prefix for e in prefixed_store.list_prefixes("t1/", ctx)] == [
            "t1/b/"
        ]

    def test_prefix_isolation(self, s3_env, ctx):
        store_a = S3BlobStore(
            bucket_name="test-bucket", prefix="ns_a", region_name="us-east-1"
        )
        store_b = S3BlobStore(
            bucket_name="test-bucket", prefix="ns_b", region_name="us-east-1"
        )
        store_a.put("key", b"isolation", ctx)

        assert store_a.head("key", ctx) is not None
        assert store_b.head("key", ctx) is None


class TestClose:
    def test_close(self, store):
        store.close()
