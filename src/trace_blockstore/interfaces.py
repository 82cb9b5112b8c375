from zope.interface import Attribute
from zope.interface import Interface


class IBlobStore(Interface):
    """Abstraction over an object store holding block components.

    Every operation takes a Context and checks it before each round trip.
    Implementations must be safe for concurrent use.
    """

    def put(key, data, ctx):
        """Write ``data`` (bytes) as the whole value of ``key``."""

    def put_stream(key, fileobj, chunk_size, ctx):
        """Copy a readable binary stream to ``key``.

        At most ``chunk_size`` bytes of the stream are buffered at a time.
        """

    def get(key, ctx):
        """Return the bytes stored at ``key``; raise NotFoundError if absent."""

    def get_with_mod_time(key, ctx):
        """Return ``(bytes, last_modified)`` for ``key``."""

    def head(key, ctx):
        """Return an ObjectInfo for ``key``, or None if not found."""

    def open_range(key, offset, length, ctx):
        """Open a binary stream over at most ``length`` bytes from ``offset``."""

    def list_prefixes(prefix, ctx):
        """Yield a ListEntry per child prefix one delimiter level below."""

    def close():
        """Release client resources."""


class IPayloadSource(Interface):
    """A readable byte stream holding a block's object payload."""

    def exists():
        """Return True if the source can be opened."""

    def open():
        """Return a readable binary file object."""


class IBlockWriter(Interface):
    def write(block_id, tenant_id, meta, bloom, index, source, ctx=None):
        """Persist bloom, index, object and meta, in that order."""


class IBlockLister(Interface):
    def tenants(ctx=None):
        """Return a ListResult of tenant ids."""

    def blocks(tenant_id, ctx=None):
        """Return a ListResult of block ids for ``tenant_id``."""


class IBlockReader(Interface):
    def block_meta(block_id, tenant_id, ctx=None):
        """Return the decoded BlockMeta of a block."""

    def block_meta_with_mod_time(block_id, tenant_id, ctx=None):
        """Return ``(BlockMeta, last_modified)`` of a block."""

    def bloom(block_id, tenant_id, ctx=None):
        """Return the bloom component bytes."""

    def index(block_id, tenant_id, ctx=None):
        """Return the index component bytes."""

    def object(block_id, tenant_id, start, buffer, ctx=None, strict=False):
        """Fill ``buffer`` with payload bytes from ``start``; return the count."""


class IBlockBackend(IBlockWriter, IBlockLister, IBlockReader):
    """Reader, writer and lister over a single store."""

    store = Attribute("The IBlobStore all operations go through.")

    def shutdown():
        """Release the store's resources."""
