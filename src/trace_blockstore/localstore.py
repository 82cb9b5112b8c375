from datetime import datetime
from datetime import timezone
from trace_blockstore.blobstore import ListEntry
from trace_blockstore.blobstore import ObjectInfo
from trace_blockstore.blobstore import read_chunk
from trace_blockstore.errors import NotFoundError
from trace_blockstore.errors import StoreOperationError
from trace_blockstore.interfaces import IBlobStore
from trace_blockstore.keys import DELIMITER
from zope.interface import implementer

import contextlib
import io
import logging
import os
import tempfile


logger = logging.getLogger(__name__)


class _RangeFile:
    """Binary reader limited to ``length`` bytes of an open file."""

    def __init__(self, fileobj, length):
        self._file = fileobj
        self._remaining = length

    def read(self, size=-1):
        if self._remaining <= 0:
            return b""
        if size is None or size < 0 or size > self._remaining:
            size = self._remaining
        data = self._file.read(size)
        self._remaining -= len(data)
        return data

    def close(self):
        self._file.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


@implementer(IBlobStore)
class LocalBlobStore:
    """Filesystem-backed block store.

    Keys map to paths below ``root``, one directory per key segment, so
    ``<tenant>/<block>/bloom`` lives at ``{root}/<tenant>/<block>/bloom``.
    Values are written to a temp file and renamed into place, so a reader
    never sees a half-written component.
    """

    def __init__(self, root):
        if not root:
            raise ValueError("path is required")
        self.root = root
        os.makedirs(root, exist_ok=True)

    def __repr__(self):
        return f"<LocalBlobStore root={self.root!r}>"

    def _path(self, key):
        return os.path.join(self.root, *[p for p in key.split(DELIMITER) if p])

    def _wrap_os_error(self, e, operation, key):
        logger.debug("Local %s failed for key=%s: %s", operation, key, e)
        if isinstance(e, FileNotFoundError):
            raise NotFoundError(key) from e
        raise StoreOperationError(
            f"local {operation} failed for key={key}: {e.strerror or e}"
        ) from e

    @contextlib.contextmanager
    def _atomic_writer(self, key):
        path = self._path(key)
        target_dir = os.path.dirname(path)
        os.makedirs(target_dir, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=target_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                yield f
            os.replace(tmp_path, path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_path)
            raise

    def put(self, key, data, ctx):
        ctx.check(f"put {key}")
        try:
            with self._atomic_writer(key) as f:
                f.write(data)
        except OSError as e:
            self._wrap_os_error(e, "put", key)

    def put_stream(self, key, fileobj, chunk_size, ctx):
        ctx.check(f"put {key}")
        try:
            with self._atomic_writer(key) as f:
                while True:
                    chunk = read_chunk(fileobj, chunk_size)
                    if not chunk:
                        break
                    ctx.check(f"put {key}")
                    f.write(chunk)
        except OSError as e:
            self._wrap_os_error(e, "put", key)

    def get(self, key, ctx):
        ctx.check(f"get {key}")
        try:
            with open(self._path(key), "rb") as f:
                return f.read()
        except OSError as e:
            self._wrap_os_error(e, "get", key)

    def get_with_mod_time(self, key, ctx):
        ctx.check(f"get {key}")
        try:
            with open(self._path(key), "rb") as f:
                mtime = os.fstat(f.fileno()).st_mtime
                return f.read(), datetime.fromtimestamp(mtime, tz=timezone.utc)
        except OSError as e:
            self._wrap_os_error(e, "get", key)

    def head(self, key, ctx):
        ctx.check(f"head {key}")
        try:
            st = os.stat(self._path(key))
        except FileNotFoundError:
            return None
        except OSError as e:
            self._wrap_os_error(e, "head", key)
        return ObjectInfo(
            st.st_size, datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)
        )

    def open_range(self, key, offset, length, ctx):
        if length <= 0:
            return io.BytesIO()
        ctx.check(f"get range {key}")
        try:
            f = open(self._path(key), "rb")
        except OSError as e:
            self._wrap_os_error(e, "get range", key)
        f.seek(offset)
        return _RangeFile(f, length)

    def list_prefixes(self, prefix, ctx):
        ctx.check(f"list {prefix}")
        directory = self._path(prefix) if prefix else self.root
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda entry: entry.name)
        except FileNotFoundError:
            return
        except OSError as e:
            logger.debug("Local list failed for prefix=%s: %s", prefix, e)
            error = StoreOperationError(f"local list failed for prefix={prefix}")
            error.__cause__ = e
            yield ListEntry(None, error)
            return

        for entry in entries:
            name = f"{prefix}{entry.name}{DELIMITER}"
            try:
                is_dir = entry.is_dir()
            except OSError as e:
                error = StoreOperationError(f"cannot stat listing entry {name}")
                error.__cause__ = e
                yield ListEntry(name, error)
                continue
            if is_dir:
                yield ListEntry(name, None)

    def close(self):
        pass
