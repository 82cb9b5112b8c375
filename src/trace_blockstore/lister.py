from trace_blockstore import keys
from trace_blockstore.context import ensure_context
from trace_blockstore.errors import MalformedBlockIDError
from trace_blockstore.errors import StoreOperationError
from trace_blockstore.interfaces import IBlockLister
from zope.interface import implementer

import logging
import uuid


logger = logging.getLogger(__name__)


class ListResult:
    """Best-effort enumeration result.

    ``items`` holds every entry that was read and parsed. ``warnings`` holds
    an ``(entry, error)`` pair for each entry that was skipped, in listing
    order; a non-empty ``warnings`` means ``items`` may be incomplete.
    """

    def __init__(self, items=None, warnings=None):
        self.items = list(items or [])
        self.warnings = list(warnings or [])

    @property
    def warning(self):
        """The most recent error, or None."""
        if not self.warnings:
            return None
        return self.warnings[-1][1]

    def __iter__(self):
        return iter(self.items)

    def __len__(self):
        return len(self.items)

    def __repr__(self):
        return f"<ListResult items={len(self.items)} warnings={len(self.warnings)}>"


@implementer(IBlockLister)
class BlockLister:
    """Enumerates tenants and blocks by delimiter-bounded listing.

    With ``require_meta`` set, a block is only reported once its meta.json
    exists, hiding blocks whose write has not finished (or failed).
    """

    def __init__(self, store, require_meta=False, operation_timeout=None):
        self.store = store
        self.require_meta = require_meta
        self.operation_timeout = operation_timeout

    def _entries(self, prefix, ctx, result):
        for entry in self.store.list_prefixes(prefix, ctx):
            if entry.error is not None:
                logger.warning(
                    "Skipping listing entry %s under %r: %s",
                    entry.prefix,
                    prefix,
                    entry.error,
                )
                result.warnings.append((entry.prefix, entry.error))
                continue
            yield entry.prefix

    def tenants(self, ctx=None):
        ctx = ensure_context(ctx, self.operation_timeout)
        result = ListResult()
        for prefix in self._entries("", ctx, result):
            result.items.append(prefix.rstrip(keys.DELIMITER))
        return result

    def blocks(self, tenant_id, ctx=None):
        ctx = ensure_context(ctx, self.operation_timeout)
        tenant_prefix = keys.tenant_prefix(tenant_id)
        result = ListResult()
        for prefix in self._entries(tenant_prefix, ctx, result):
            id_string = prefix.removeprefix(tenant_prefix).rstrip(keys.DELIMITER)
            try:
                block_id = uuid.UUID(id_string)
            except ValueError as e:
                error = MalformedBlockIDError(id_string, e)
                logger.warning("Skipping block under tenant %s: %s", tenant_id, error)
                result.warnings.append((id_string, error))
                continue
            if self.require_meta and not self._has_meta(block_id, tenant_id, ctx, result):
                continue
            result.items.append(block_id)
        return result

    def _has_meta(self, block_id, tenant_id, ctx, result):
        try:
            info = self.store.head(keys.meta_key(block_id, tenant_id), ctx)
        except StoreOperationError as e:
            logger.warning("Cannot check meta of block %s: %s", block_id, e)
            result.warnings.append((str(block_id), e))
            return False
        if info is None:
            logger.debug(
                "Skipping block %s for tenant %s without meta", block_id, tenant_id
            )
            return False
        return True
