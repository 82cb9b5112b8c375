"""The meta.json descriptor written last for every block."""

from datetime import datetime
from trace_blockstore.errors import MalformedMetaError

import base64
import binascii
import json
import re
import uuid


CURRENT_VERSION = "v0"

# JSON field name -> attribute name
_FIELDS = {
    "format": "version",
    "blockID": "block_id",
    "tenantID": "tenant_id",
    "minID": "min_id",
    "maxID": "max_id",
    "startTime": "start_time",
    "endTime": "end_time",
}

# RFC 3339 as written by Go's time.Time, up to nanosecond fractions
_TIME_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2}[Tt ]\d{2}:\d{2}:\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})?$"
)


class BlockMeta:
    """Descriptor of a block.

    Fields this layer does not know about are kept in ``extra`` and written
    back unchanged. A decoded meta also remembers the document it came from:
    known fields the caller has not changed are re-emitted verbatim, and
    fields absent from the document stay absent.
    """

    def __init__(
        self,
        block_id,
        tenant_id,
        min_id=b"",
        max_id=b"",
        start_time=None,
        end_time=None,
        version=CURRENT_VERSION,
        extra=None,
    ):
        self.version = version
        self.block_id = block_id
        self.tenant_id = tenant_id
        self.min_id = min_id
        self.max_id = max_id
        self.start_time = start_time
        self.end_time = end_time
        self.extra = dict(extra or {})
        self._source = None

    def __eq__(self, other):
        if not isinstance(other, BlockMeta):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return (
            f"<BlockMeta block_id={self.block_id} tenant_id={self.tenant_id!r} "
            f"version={self.version!r}>"
        )

    def _values(self):
        return {name: getattr(self, attr) for name, attr in _FIELDS.items()}

    def to_dict(self):
        if self._source is None:
            doc = dict(self.extra)
            for name, value in self._values().items():
                doc[name] = _encode_field(name, value)
            return doc

        raw, decoded = self._source
        doc = {k: v for k, v in raw.items() if k in _FIELDS}
        doc.update(self.extra)
        for name, value in self._values().items():
            if value != decoded[name]:
                doc[name] = _encode_field(name, value)
        return doc

    @classmethod
    def from_dict(cls, doc):
        extra = {k: v for k, v in doc.items() if k not in _FIELDS}
        try:
            block_id = doc.get("blockID")
            meta = cls(
                block_id=uuid.UUID(block_id) if block_id else None,
                tenant_id=doc.get("tenantID", ""),
                min_id=base64.b64decode(doc.get("minID") or "", validate=True),
                max_id=base64.b64decode(doc.get("maxID") or "", validate=True),
                start_time=_parse_time(doc.get("startTime")),
                end_time=_parse_time(doc.get("endTime")),
                version=doc.get("format", CURRENT_VERSION),
                extra=extra,
            )
        except (AttributeError, TypeError, ValueError, binascii.Error) as e:
            raise MalformedMetaError(f"invalid block meta: {e}") from e
        meta._source = (dict(doc), meta._values())
        return meta


def _encode_field(name, value):
    if name == "blockID":
        return None if value is None else str(value)
    if name in ("minID", "maxID"):
        return base64.b64encode(value).decode("ascii")
    if name in ("startTime", "endTime"):
        return None if value is None else value.isoformat()
    return value


def _parse_time(value):
    """Parse an RFC 3339 timestamp; fractions beyond microseconds are cut."""
    if value is None:
        return None
    m = _TIME_RE.match(value)
    if m is None:
        raise ValueError(f"invalid timestamp {value!r}")
    base, fraction, zone = m.groups()
    if fraction:
        base = f"{base}.{fraction[:6].ljust(6, '0')}"
    if zone:
        base += "+00:00" if zone in ("Z", "z") else zone
    return datetime.fromisoformat(base.replace("t", "T"))


def encode_meta(meta):
    """Serialize a BlockMeta, or any JSON-serializable mapping, to bytes."""
    doc = meta.to_dict() if isinstance(meta, BlockMeta) else meta
    return json.dumps(doc, sort_keys=True).encode("utf-8")


def decode_meta(data):
    try:
        doc = json.loads(data)
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedMetaError(f"meta.json is not valid JSON: {e}") from e
    if not isinstance(doc, dict):
        raise MalformedMetaError(
            f"meta.json must hold a JSON object, got {type(doc).__name__}"
        )
    return BlockMeta.from_dict(doc)
