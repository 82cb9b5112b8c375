class BlockStoreError(Exception):
    """Base class for all errors raised by trace_blockstore."""


class NotFoundError(BlockStoreError):
    """The requested key does not exist in the store."""

    def __init__(self, key):
        super().__init__(f"key not found: {key}")
        self.key = key


class StoreOperationError(BlockStoreError):
    """A store round trip failed; the original error is chained as __cause__."""


class MalformedError(BlockStoreError):
    """Stored or listed data could not be interpreted."""


class MalformedBlockIDError(MalformedError):
    def __init__(self, value, reason=None):
        message = f"failed parse on block id {value!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.value = value


class MalformedMetaError(MalformedError):
    """A meta.json payload failed to deserialize."""


class SourceMissingError(BlockStoreError):
    """The payload source handed to a write cannot be opened."""

    def __init__(self, source):
        super().__init__(f"object source not found: {source}")
        self.source = source


class ShortReadError(BlockStoreError):
    """A strict ranged read filled less of the buffer than requested."""

    def __init__(self, key, expected, actual):
        super().__init__(
            f"short read on {key}: expected {expected} bytes, got {actual}"
        )
        self.key = key
        self.expected = expected
        self.actual = actual
