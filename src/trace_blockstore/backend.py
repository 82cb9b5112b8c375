from trace_blockstore.interfaces import IBlockBackend
from trace_blockstore.lister import BlockLister
from trace_blockstore.reader import BlockReader
from trace_blockstore.writer import DEFAULT_CHUNK_SIZE
from trace_blockstore.writer import BlockWriter
from zope.interface import implementer

import logging


logger = logging.getLogger(__name__)


@implementer(IBlockBackend)
class BlockBackend:
    """Writer, reader and lister sharing one store.

    Holds nothing but configuration, so one instance can serve concurrent
    callers as long as the store client is thread-safe.
    """

    def __init__(
        self,
        store,
        chunk_size=DEFAULT_CHUNK_SIZE,
        require_meta=False,
        operation_timeout=None,
    ):
        self.store = store
        self._writer = BlockWriter(store, chunk_size, operation_timeout)
        self._reader = BlockReader(store, operation_timeout)
        self._lister = BlockLister(store, require_meta, operation_timeout)

    def __repr__(self):
        return f"<BlockBackend store={self.store!r}>"

    @property
    def chunk_size(self):
        return self._writer.chunk_size

    def write(self, block_id, tenant_id, meta, bloom, index, source, ctx=None):
        self._writer.write(block_id, tenant_id, meta, bloom, index, source, ctx)

    def tenants(self, ctx=None):
        return self._lister.tenants(ctx)

    def blocks(self, tenant_id, ctx=None):
        return self._lister.blocks(tenant_id, ctx)

    def block_meta(self, block_id, tenant_id, ctx=None):
        return self._reader.block_meta(block_id, tenant_id, ctx)

    def block_meta_with_mod_time(self, block_id, tenant_id, ctx=None):
        return self._reader.block_meta_with_mod_time(block_id, tenant_id, ctx)

    def bloom(self, block_id, tenant_id, ctx=None):
        return self._reader.bloom(block_id, tenant_id, ctx)

    def index(self, block_id, tenant_id, ctx=None):
        return self._reader.index(block_id, tenant_id, ctx)

    def object(self, block_id, tenant_id, start, buffer, ctx=None, strict=False):
        return self._reader.object(block_id, tenant_id, start, buffer, ctx, strict)

    def shutdown(self):
        logger.debug("Shutting down %r", self)
        self.store.close()
