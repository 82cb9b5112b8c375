"""Object-store backed persistence for immutable trace blocks."""

from trace_blockstore.backend import BlockBackend
from trace_blockstore.context import Context
from trace_blockstore.lister import ListResult
from trace_blockstore.meta import BlockMeta
from trace_blockstore.writer import FilePayloadSource


__all__ = [
    "BlockBackend",
    "BlockMeta",
    "Context",
    "FilePayloadSource",
    "ListResult",
]
