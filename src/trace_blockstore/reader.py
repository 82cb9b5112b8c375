from trace_blockstore import keys
from trace_blockstore.context import ensure_context
from trace_blockstore.errors import ShortReadError
from trace_blockstore.interfaces import IBlockReader
from trace_blockstore.meta import decode_meta
from zope.interface import implementer

import contextlib
import logging


logger = logging.getLogger(__name__)


@implementer(IBlockReader)
class BlockReader:
    """Fetches block components; the payload is read by byte range."""

    def __init__(self, store, operation_timeout=None):
        self.store = store
        self.operation_timeout = operation_timeout

    def block_meta(self, block_id, tenant_id, ctx=None):
        ctx = ensure_context(ctx, self.operation_timeout)
        data = self.store.get(keys.meta_key(block_id, tenant_id), ctx)
        return decode_meta(data)

    def block_meta_with_mod_time(self, block_id, tenant_id, ctx=None):
        ctx = ensure_context(ctx, self.operation_timeout)
        data, modified = self.store.get_with_mod_time(
            keys.meta_key(block_id, tenant_id), ctx
        )
        return decode_meta(data), modified

    def bloom(self, block_id, tenant_id, ctx=None):
        ctx = ensure_context(ctx, self.operation_timeout)
        return self.store.get(keys.bloom_key(block_id, tenant_id), ctx)

    def index(self, block_id, tenant_id, ctx=None):
        ctx = ensure_context(ctx, self.operation_timeout)
        return self.store.get(keys.index_key(block_id, tenant_id), ctx)

    def object(self, block_id, tenant_id, start, buffer, ctx=None, strict=False):
        """Fill ``buffer`` with payload bytes starting at offset ``start``.

        Reads until the buffer is full or the store has no more bytes and
        returns the number of bytes filled. Fewer bytes than ``len(buffer)``
        means the payload ended early; with ``strict`` that raises
        ShortReadError instead.
        """
        if start < 0:
            raise ValueError(f"start offset must be non-negative, got {start}")
        view = _writable_view(buffer)
        ctx = ensure_context(ctx, self.operation_timeout)
        key = keys.object_key(block_id, tenant_id)
        size = len(view)
        if size == 0:
            return 0

        total = 0
        stream = self.store.open_range(key, start, size, ctx)
        with contextlib.closing(stream):
            while total < size:
                ctx.check(f"read {key}")
                data = stream.read(size - total)
                if not data:
                    break
                view[total : total + len(data)] = data
                total += len(data)

        if total < size:
            logger.debug(
                "Short read on %s at offset %s: %s of %s bytes", key, start, total, size
            )
            if strict:
                raise ShortReadError(key, size, total)
        return total


def _writable_view(buffer):
    try:
        view = memoryview(buffer)
    except TypeError:
        raise TypeError(
            f"buffer must support the buffer protocol, got {type(buffer).__name__}"
        ) from None
    if view.readonly:
        raise TypeError(f"buffer must be writable, got read-only {type(buffer).__name__}")
    if not view.c_contiguous:
        raise TypeError("buffer must be C-contiguous")
    return view.cast("B")
