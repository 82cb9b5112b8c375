from trace_blockstore import keys
from trace_blockstore.context import ensure_context
from trace_blockstore.errors import SourceMissingError
from trace_blockstore.interfaces import IBlockWriter
from trace_blockstore.interfaces import IPayloadSource
from trace_blockstore.meta import encode_meta
from zope.interface import implementer

import logging
import os


logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 16 * 1024 * 1024


@implementer(IPayloadSource)
class FilePayloadSource:
    """Payload read from a local file."""

    def __init__(self, path):
        self.path = os.fspath(path)

    def __repr__(self):
        return f"<FilePayloadSource {self.path!r}>"

    def __str__(self):
        return self.path

    def exists(self):
        return os.path.isfile(self.path)

    def open(self):
        return open(self.path, "rb")


def as_payload_source(source):
    if IPayloadSource.providedBy(source):
        return source
    if isinstance(source, (str, os.PathLike)):
        return FilePayloadSource(source)
    raise TypeError(f"cannot use {source!r} as a block payload source")


@implementer(IBlockWriter)
class BlockWriter:
    """Persists the four components of a block.

    Components are written bloom, index, object, meta. Meta goes last so
    anything that checks for meta.json never sees a half-written block. A
    failure stops the write where it happened; components already written
    are left in place and stay invisible without their meta.

    Writing the same block id from two callers at once is not supported:
    each component is last-writer-wins with no atomicity across them.
    """

    def __init__(self, store, chunk_size=DEFAULT_CHUNK_SIZE, operation_timeout=None):
        if chunk_size <= 0:
            raise ValueError(f"chunk size must be positive, got {chunk_size}")
        self.store = store
        self.chunk_size = chunk_size
        self.operation_timeout = operation_timeout

    def write(self, block_id, tenant_id, meta, bloom, index, source, ctx=None):
        ctx = ensure_context(ctx, self.operation_timeout)
        source = as_payload_source(source)

        self.store.put(keys.bloom_key(block_id, tenant_id), bloom, ctx)
        self.store.put(keys.index_key(block_id, tenant_id), index, ctx)

        # bloom and index are already persisted here; without meta they
        # remain an invisible orphan.
        if not source.exists():
            raise SourceMissingError(source)
        try:
            src = source.open()
        except OSError as e:
            raise SourceMissingError(source) from e
        with src:
            self.store.put_stream(
                keys.object_key(block_id, tenant_id), src, self.chunk_size, ctx
            )

        # write meta last. this keeps listings from returning a partial block
        self.store.put(keys.meta_key(block_id, tenant_id), encode_meta(meta), ctx)
        logger.debug("Wrote block %s for tenant %s", block_id, tenant_id)
