from botocore.config import Config
from botocore.exceptions import BotoCoreError
from botocore.exceptions import ClientError
from trace_blockstore.blobstore import ListEntry
from trace_blockstore.blobstore import ObjectInfo
from trace_blockstore.blobstore import read_chunk
from trace_blockstore.errors import NotFoundError
from trace_blockstore.errors import StoreOperationError
from trace_blockstore.interfaces import IBlobStore
from trace_blockstore.keys import DELIMITER
from zope.interface import implementer

import boto3
import io
import logging
import re


logger = logging.getLogger(__name__)

# S3 rejects multipart parts below 5 MiB, except the last one.
MIN_PART_SIZE = 5 * 1024 * 1024

_NOT_FOUND_CODES = frozenset(["NoSuchKey", "404", "NotFound"])
_BOTO_ERRORS = (BotoCoreError, ClientError)


def _check_prefix(prefix):
    if not prefix:
        return
    if not re.fullmatch(r"[a-zA-Z0-9._/-]*", prefix):
        raise ValueError(
            f"s3-prefix contains invalid characters: {prefix!r}. "
            "Only alphanumeric characters, dots, hyphens, underscores, "
            "and slashes are allowed."
        )
    if ".." in prefix:
        raise ValueError(f"s3-prefix must not contain '..': {prefix!r}")


def _client_kwargs(use_ssl, config, **options):
    """boto3.client keyword arguments, leaving unset options to boto's defaults."""
    kwargs = {k: v for k, v in options.items() if v}
    kwargs["config"] = config
    kwargs["use_ssl"] = use_ssl
    if not use_ssl:
        logger.warning(
            "S3 SSL is disabled, block data and credentials are sent in cleartext"
        )
    return kwargs


class _S3RangeStream:
    """Ranged object body whose read failures surface as store errors."""

    def __init__(self, store, body, key):
        self._store = store
        self._body = body
        self._key = key

    def read(self, size=-1):
        try:
            if size is None or size < 0:
                return self._body.read()
            return self._body.read(size)
        except _BOTO_ERRORS as e:
            raise self._store._store_error(e, "read range", self._key)

    def close(self):
        self._body.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


@implementer(IBlobStore)
class S3BlobStore:
    """Thin boto3 wrapper storing block components in an S3-compatible bucket."""

    def __init__(
        self,
        bucket_name,
        prefix="",
        endpoint_url=None,
        region_name=None,
        aws_access_key_id=None,
        aws_secret_access_key=None,
        use_ssl=True,
        addressing_style="auto",
        connect_timeout=60,
        read_timeout=60,
    ):
        if not bucket_name:
            raise ValueError("bucket-name is required")
        self.bucket_name = bucket_name
        self._prefix = prefix.rstrip("/") if prefix else ""

        _check_prefix(self._prefix)
        self._client = boto3.client(
            "s3",
            **_client_kwargs(
                endpoint_url=endpoint_url,
                region_name=region_name,
                aws_access_key_id=aws_access_key_id,
                aws_secret_access_key=aws_secret_access_key,
                use_ssl=use_ssl,
                config=Config(
                    s3={"addressing_style": addressing_style},
                    connect_timeout=connect_timeout,
                    read_timeout=read_timeout,
                ),
            ),
        )

    def __repr__(self):
        return f"<S3BlobStore bucket={self.bucket_name!r} prefix={self._prefix!r}>"

    def _full_key(self, s3_key):
        if self._prefix:
            return f"{self._prefix}/{s3_key}"
        return s3_key

    def _store_error(self, e, operation, s3_key):
        """Translate a boto error into ours, logging the original at DEBUG."""
        logger.debug("S3 %s failed for key=%s: %s", operation, s3_key, e)
        if isinstance(e, ClientError):
            code = e.response["Error"].get("Code", "Unknown")
            if code in _NOT_FOUND_CODES:
                error = NotFoundError(s3_key)
            else:
                error = StoreOperationError(
                    f"S3 {operation} failed for key={s3_key}: {code}"
                )
        else:
            error = StoreOperationError(
                f"S3 {operation} failed for key={s3_key}: {type(e).__name__}"
            )
        error.__cause__ = e
        return error

    def _wrap_error(self, e, operation, s3_key):
        raise self._store_error(e, operation, s3_key)

    def put(self, key, data, ctx):
        ctx.check(f"put {key}")
        try:
            self._client.put_object(
                Bucket=self.bucket_name, Key=self._full_key(key), Body=data
            )
        except _BOTO_ERRORS as e:
            self._wrap_error(e, "put", key)

    def put_stream(self, key, fileobj, chunk_size, ctx):
        part_size = max(chunk_size, MIN_PART_SIZE)
        ctx.check(f"put {key}")
        chunk = read_chunk(fileobj, part_size)
        if len(chunk) < part_size:
            # Fits in one request.
            self.put(key, chunk, ctx)
            return

        full_key = self._full_key(key)
        try:
            upload = self._client.create_multipart_upload(
                Bucket=self.bucket_name, Key=full_key
            )
        except _BOTO_ERRORS as e:
            self._wrap_error(e, "create multipart upload", key)
        upload_id = upload["UploadId"]
        logger.debug("Started multipart upload %s for key=%s", upload_id, key)

        parts = []
        try:
            try:
                while chunk:
                    ctx.check(f"put {key}")
                    number = len(parts) + 1
                    resp = self._client.upload_part(
                        Bucket=self.bucket_name,
                        Key=full_key,
                        UploadId=upload_id,
                        PartNumber=number,
                        Body=chunk,
                    )
                    parts.append({"ETag": resp["ETag"], "PartNumber": number})
                    chunk = read_chunk(fileobj, part_size)
                ctx.check(f"put {key}")
                self._client.complete_multipart_upload(
                    Bucket=self.bucket_name,
                    Key=full_key,
                    UploadId=upload_id,
                    MultipartUpload={"Parts": parts},
                )
            except _BOTO_ERRORS as e:
                self._wrap_error(e, "multipart upload", key)
        except BaseException:
            self._abort_multipart(key, upload_id)
            raise

    def _abort_multipart(self, key, upload_id):
        try:
            self._client.abort_multipart_upload(
                Bucket=self.bucket_name,
                Key=self._full_key(key),
                UploadId=upload_id,
            )
        except _BOTO_ERRORS:
            logger.warning(
                "Failed to abort multipart upload %s for key=%s",
                upload_id,
                key,
                exc_info=True,
            )

    def _get_object(self, key, ctx, **kwargs):
        ctx.check(f"get {key}")
        try:
            return self._client.get_object(
                Bucket=self.bucket_name, Key=self._full_key(key), **kwargs
            )
        except _BOTO_ERRORS as e:
            self._wrap_error(e, "get", key)

    def _read_body(self, resp, key):
        body = resp["Body"]
        try:
            return body.read()
        except _BOTO_ERRORS as e:
            self._wrap_error(e, "read", key)
        finally:
            body.close()

    def get(self, key, ctx):
        resp = self._get_object(key, ctx)
        return self._read_body(resp, key)

    def get_with_mod_time(self, key, ctx):
        resp = self._get_object(key, ctx)
        return self._read_body(resp, key), resp["LastModified"]

    def head(self, key, ctx):
        ctx.check(f"head {key}")
        try:
            resp = self._client.head_object(
                Bucket=self.bucket_name, Key=self._full_key(key)
            )
        except _BOTO_ERRORS as e:
            error = self._store_error(e, "head", key)
            if isinstance(error, NotFoundError):
                return None
            raise error
        return ObjectInfo(resp["ContentLength"], resp["LastModified"])

    def open_range(self, key, offset, length, ctx):
        if length <= 0:
            return io.BytesIO()
        ctx.check(f"get range {key}")
        try:
            resp = self._client.get_object(
                Bucket=self.bucket_name,
                Key=self._full_key(key),
                Range=f"bytes={offset}-{offset + length - 1}",
            )
        except ClientError as e:
            # Offset at or past the end of the object.
            if e.response["Error"].get("Code") == "InvalidRange":
                return io.BytesIO()
            self._wrap_error(e, "get range", key)
        except BotoCoreError as e:
            self._wrap_error(e, "get range", key)
        return _S3RangeStream(self, resp["Body"], key)

    def list_prefixes(self, prefix, ctx):
        full_prefix = self._full_key(prefix)
        strip_len = len(self._prefix) + 1 if self._prefix else 0
        paginator = self._client.get_paginator("list_objects_v2")
        ctx.check(f"list {prefix}")
        try:
            for page in paginator.paginate(
                Bucket=self.bucket_name, Prefix=full_prefix, Delimiter=DELIMITER
            ):
                for common in page.get("CommonPrefixes", []):
                    name = common.get("Prefix")
                    if name is None:
                        error = StoreOperationError(
                            f"listing entry without prefix: {common!r}"
                        )
                        yield ListEntry(None, error)
                        continue
                    # Strip the store prefix so callers see logical keys
                    yield ListEntry(name[strip_len:], None)
                ctx.check(f"list {prefix}")
        except _BOTO_ERRORS as e:
            yield ListEntry(None, self._store_error(e, "list", prefix))

    def close(self):
        self._client.close()
