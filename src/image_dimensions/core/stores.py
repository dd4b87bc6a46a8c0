"""S3-backed object store and key-value cache adapters."""

import io
from typing import List, Optional

from botocore.exceptions import ClientError

from .error_handling import client_error_code, retry_store_operation, with_error_handling
from .exceptions import CacheError
from .logging_config import get_logger
from .models import ObjectRecord
from .protocols import ByteStreamProtocol, S3ClientProtocol

NOT_FOUND_CODES = ("NoSuchKey", "404", "NotFound")
# S3 answers a ranged GET on a zero-byte object with 416
EMPTY_RANGE_CODES = ("InvalidRange", "416")
CACHE_CONTENT_TYPE = "application/json"


class S3ObjectStream:
    """Body of a fetched object with the ``ContentType`` S3 reported for it."""

    def __init__(self, body: ByteStreamProtocol, content_type: Optional[str] = None):
        self._body = body
        self.content_type = content_type

    def read(self, amt: Optional[int] = None) -> bytes:
        return self._body.read(amt)

    def close(self) -> None:
        self._body.close()


class S3ObjectStore:
    """Object store capability over one S3 bucket."""

    def __init__(
        self,
        s3_client: S3ClientProtocol,
        bucket: str,
        range_cap: Optional[int] = None,
    ):
        self._s3_client = s3_client
        self._bucket = bucket
        self._range_cap = range_cap

    @property
    def bucket(self) -> str:
        return self._bucket

    @retry_store_operation()
    @with_error_handling
    def list_objects(self, prefix: str) -> List[ObjectRecord]:
        """List every object under ``prefix``, directory markers included."""
        logger = get_logger("stores")
        logger.debug(f"Listing s3://{self._bucket}/{prefix}")

        records = []
        paginator = self._s3_client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
            for obj in page.get("Contents", []):
                records.append(
                    ObjectRecord(
                        identifier=obj["Key"],
                        size=obj.get("Size", 0),
                        uploaded_at=obj.get("LastModified"),
                    )
                )
        return records

    @retry_store_operation()
    @with_error_handling
    def open_stream(
        self, identifier: str, max_bytes: Optional[int] = None
    ) -> Optional[S3ObjectStream]:
        """
        Open the body of ``identifier``.

        Only the first ``max_bytes`` bytes are requested from S3, falling
        back to the store's ``range_cap``; with neither set the whole
        object is fetched.
        """
        range_cap = max_bytes or self._range_cap
        kwargs = {}
        if range_cap:
            kwargs["Range"] = f"bytes=0-{range_cap - 1}"
        try:
            response = self._s3_client.get_object(
                Bucket=self._bucket, Key=identifier, **kwargs
            )
        except ClientError as e:
            code = client_error_code(e)
            if code in NOT_FOUND_CODES:
                return None
            if kwargs and code in EMPTY_RANGE_CODES:
                return S3ObjectStream(io.BytesIO(b""))
            raise
        return S3ObjectStream(response["Body"], response.get("ContentType"))


class S3KeyValueCache:
    """
    Key-value cache capability storing each entry as a small S3 object.

    Keys are stored as ``namespace + key`` so one bucket can hold several
    caches; listing strips the namespace again.
    """

    def __init__(self, s3_client: S3ClientProtocol, bucket: str, namespace: str = ""):
        self._s3_client = s3_client
        self._bucket = bucket
        self._namespace = namespace

    def _object_key(self, key: str) -> str:
        return f"{self._namespace}{key}"

    @retry_store_operation()
    @with_error_handling(error_cls=CacheError)
    def list_keys(self, prefix: str) -> List[str]:
        keys = []
        paginator = self._s3_client.get_paginator("list_objects_v2")
        for page in paginator.paginate(
            Bucket=self._bucket, Prefix=self._object_key(prefix)
        ):
            for obj in page.get("Contents", []):
                keys.append(obj["Key"][len(self._namespace):])
        return keys

    @retry_store_operation()
    @with_error_handling(error_cls=CacheError)
    def get(self, key: str) -> Optional[str]:
        try:
            response = self._s3_client.get_object(
                Bucket=self._bucket, Key=self._object_key(key)
            )
        except ClientError as e:
            if client_error_code(e) in NOT_FOUND_CODES:
                return None
            raise
        body = response["Body"]
        try:
            return body.read().decode("utf-8")
        finally:
            body.close()

    @retry_store_operation()
    @with_error_handling(error_cls=CacheError)
    def put(self, key: str, value: str) -> None:
        self._s3_client.put_object(
            Bucket=self._bucket,
            Key=self._object_key(key),
            Body=value.encode("utf-8"),
            ContentType=CACHE_CONTENT_TYPE,
        )
