"""Value types and helpers shared by IBlobStore implementations."""

from collections import namedtuple


ObjectInfo = namedtuple("ObjectInfo", ["size", "last_modified"])

# One child prefix from a delimiter-bounded listing. Exactly one of
# ``prefix`` and ``error`` carries the outcome; ``prefix`` may also be set
# alongside ``error`` when the failing entry's name is known.
ListEntry = namedtuple("ListEntry", ["prefix", "error"])


def read_chunk(fileobj, size):
    """Read up to ``size`` bytes, looping over short reads until EOF."""
    parts = []
    remaining = size
    while remaining > 0:
        data = fileobj.read(remaining)
        if not data:
            break
        parts.append(data)
        remaining -= len(data)
    return b"".join(parts)
