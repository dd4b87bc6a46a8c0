"""Unit tests for the S3-backed object store and cache adapters."""

from datetime import datetime, timezone
from unittest.mock import Mock, patch

import pytest
from botocore.exceptions import ClientError

from image_dimensions.core.exceptions import CacheError, StoreError
from image_dimensions.core.stores import S3KeyValueCache, S3ObjectStore
from image_dimensions.testing.fakes import FakeS3Client, build_jpeg_header


@pytest.fixture
def s3_client():
    client = FakeS3Client()
    images = client.create_bucket("images")
    images.add_object("portfolio/", b"", content_type="application/x-directory")
    images.add_object("portfolio/a.jpg", build_jpeg_header(10, 20))
    images.add_object("portfolio/b.jpg", b"x" * 100)
    images.add_object("portfolio/c.jpg", b"y" * 10)
    images.add_object("portfolio/empty.jpg", b"")
    images.add_object("other/d.jpg", b"z")
    client.create_bucket("dims")
    return client


class TestS3ObjectStore:
    """Tests for S3ObjectStore."""

    def test_list_objects_across_pages(self, s3_client):
        store = S3ObjectStore(s3_client, "images")

        records = store.list_objects("portfolio/")

        assert [r.identifier for r in records] == [
            "portfolio/",
            "portfolio/a.jpg",
            "portfolio/b.jpg",
            "portfolio/c.jpg",
            "portfolio/empty.jpg",
        ]
        assert records[2].size == 100
        assert records[2].uploaded_at == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_list_objects_empty_prefix(self, s3_client):
        store = S3ObjectStore(s3_client, "images")

        assert store.list_objects("nothing/") == []

    def test_list_objects_missing_bucket(self, s3_client):
        store = S3ObjectStore(s3_client, "nope")

        with pytest.raises(StoreError, match="list_objects failed") as exc_info:
            store.list_objects("portfolio/")

        assert isinstance(exc_info.value.__cause__, ClientError)

    def test_open_stream_reads_body(self, s3_client):
        store = S3ObjectStore(s3_client, "images")

        stream = store.open_stream("portfolio/b.jpg")

        assert stream.read() == b"x" * 100
        assert s3_client.ranges_requested == [None]

    def test_open_stream_requests_range(self, s3_client):
        """Test a range cap asks S3 for only the first bytes of the object."""
        store = S3ObjectStore(s3_client, "images", range_cap=32)

        stream = store.open_stream("portfolio/b.jpg")

        assert stream.read() == b"x" * 32
        assert s3_client.ranges_requested == ["bytes=0-31"]

    def test_open_stream_carries_content_type(self, s3_client):
        s3_client.get_bucket("images").add_object(
            "portfolio/blob", b"\x00" * 64, content_type="image/png"
        )
        store = S3ObjectStore(s3_client, "images")

        stream = store.open_stream("portfolio/blob")

        assert stream.content_type == "image/png"
        assert stream.read() == b"\x00" * 64

    def test_max_bytes_overrides_range_cap(self, s3_client):
        store = S3ObjectStore(s3_client, "images", range_cap=32)

        stream = store.open_stream("portfolio/b.jpg", max_bytes=64)

        assert stream.read() == b"x" * 64
        assert s3_client.ranges_requested == ["bytes=0-63"]

    def test_range_longer_than_object(self, s3_client):
        store = S3ObjectStore(s3_client, "images", range_cap=32)

        assert store.open_stream("portfolio/c.jpg").read() == b"y" * 10

    def test_range_on_empty_object(self, s3_client):
        """Test the 416 S3 returns for a ranged read of an empty object."""
        store = S3ObjectStore(s3_client, "images", range_cap=32)

        assert store.open_stream("portfolio/empty.jpg").read() == b""

    def test_open_stream_missing_key(self, s3_client):
        store = S3ObjectStore(s3_client, "images")

        assert store.open_stream("portfolio/gone.jpg") is None

    def test_open_stream_failure(self, s3_client):
        s3_client.set_failure_mode(True)
        store = S3ObjectStore(s3_client, "images")

        with pytest.raises(StoreError, match="open_stream failed"):
            store.open_stream("portfolio/a.jpg")

    @patch("image_dimensions.core.error_handling.time.sleep")
    def test_throttling_is_retried(self, mock_sleep):
        """Test SlowDown responses are retried with backoff."""
        throttled = ClientError({"Error": {"Code": "SlowDown", "Message": "slow"}}, "GetObject")
        body = Mock()
        body.read.return_value = b"\xff\xd8"
        client = Mock()
        client.get_object.side_effect = [throttled, throttled, {"Body": body}]
        store = S3ObjectStore(client, "images")

        stream = store.open_stream("portfolio/a.jpg")

        assert stream.read(2) == b"\xff\xd8"
        body.read.assert_called_once_with(2)
        assert stream.content_type is None
        assert client.get_object.call_count == 3
        mock_sleep.assert_any_call(1)
        mock_sleep.assert_any_call(2)

    @patch("image_dimensions.core.error_handling.time.sleep")
    def test_throttling_gives_up(self, mock_sleep):
        throttled = ClientError({"Error": {"Code": "SlowDown", "Message": "slow"}}, "GetObject")
        client = Mock()
        client.get_object.side_effect = throttled
        store = S3ObjectStore(client, "images")

        with pytest.raises(StoreError):
            store.open_stream("portfolio/a.jpg")

        assert client.get_object.call_count == 3

    def test_other_errors_are_not_retried(self):
        denied = ClientError({"Error": {"Code": "AccessDenied", "Message": "no"}}, "GetObject")
        client = Mock()
        client.get_object.side_effect = denied
        store = S3ObjectStore(client, "images")

        with pytest.raises(StoreError):
            store.open_stream("portfolio/a.jpg")

        assert client.get_object.call_count == 1


class TestS3KeyValueCache:
    """Tests for S3KeyValueCache."""

    def test_put_then_get(self, s3_client):
        cache = S3KeyValueCache(s3_client, "dims")

        cache.put("portfolio/a.jpg", '{"width":10,"height":20}')

        assert cache.get("portfolio/a.jpg") == '{"width":10,"height":20}'
        stored = s3_client.get_bucket("dims").get_object("portfolio/a.jpg")
        assert stored.content_type == "application/json"

    def test_get_missing_key(self, s3_client):
        assert S3KeyValueCache(s3_client, "dims").get("portfolio/none.jpg") is None

    def test_namespace_is_applied_and_stripped(self, s3_client):
        cache = S3KeyValueCache(s3_client, "dims", namespace="dimensions/")

        cache.put("portfolio/a.jpg", "{}")
        cache.put("portfolio/b.jpg", "{}")
        cache.put("other/c.jpg", "{}")

        assert set(s3_client.get_bucket("dims").objects) == {
            "dimensions/portfolio/a.jpg",
            "dimensions/portfolio/b.jpg",
            "dimensions/other/c.jpg",
        }
        assert cache.list_keys("portfolio/") == ["portfolio/a.jpg", "portfolio/b.jpg"]
        assert cache.get("portfolio/b.jpg") == "{}"

    def test_list_keys_empty(self, s3_client):
        assert S3KeyValueCache(s3_client, "dims").list_keys("portfolio/") == []

    def test_failures_raise_cache_error(self, s3_client):
        cache = S3KeyValueCache(s3_client, "dims")
        s3_client.set_failure_mode(True)

        with pytest.raises(CacheError):
            cache.put("portfolio/a.jpg", "{}")
        with pytest.raises(CacheError):
            cache.get("portfolio/a.jpg")
        with pytest.raises(CacheError):
            cache.list_keys("portfolio/")
