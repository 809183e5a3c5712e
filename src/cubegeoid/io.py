"""Reading and writing geoid cubemaps in the ``boldatni`` binary format.

All multi-byte values are big-endian.  The header is::

    offset  size  field
    0x00    8     magic "boldatni"
    0x08    8     content hash, the two words of Cubemap.hash()
    0x10    2     body (0 = Earth)
    0x12    1     data kind (0 = undulation)
    0x13    1     encoding (0 = fixed 4-byte, 1 = variable length)
    0x14    1     component arrangement (1 = scalar)
    0x15    2     scale as a binary exponent (-16: one unit is 1/65536 m)
    0x17    8     conversion tolerance (double)
    0x1f    8     subdivision limit (double)
    0x27    8     smallest feature not to be missed (double)
    0x2f    2     2 × number of source files
    0x31    ...   null-terminated source name / format string pairs

followed by the six face quadtrees in preorder.  A node is one flag byte
(0 = leaf, 1 = subdivided).  A leaf then holds its first coefficient;
if that is the unknown sentinel nothing else follows, otherwise the
other five coefficients do.

In the variable-length encoding a coefficient whose first byte is
``00``–``3f`` or ``c0``–``ff`` is a 3-byte two's complement number,
``80 00`` is the sentinel, and ``40`` introduces a 4-byte number.  An
unknown face is therefore ``00 80 00``.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .config import DEFAULT, GeoidConfig
from .exceptions import GeoidFormatError
from .geoquad import UNKNOWN_SENTINEL, Cubemap, Geoquad, HashPair
from .logging_config import get_logger

logger = get_logger("io")

MAGIC = b"boldatni"
HEADER_SIZE = 0x31

ENCODING_FIXED = 0
ENCODING_VARIABLE = 1

BODY_EARTH = 0
KIND_UNDULATION = 0
ARRANGEMENT_SCALAR = 1
SCALE_EXPONENT = -16

_SHORT_LIMIT = 1 << 22
_HEADER = struct.Struct(">8sIIHBBBhdddH")


@dataclass
class GeoidHeader:
    """Header fields of a geoid file.

    *hash* is filled in from the cubemap when writing and checked
    against the decoded cubemap when reading.
    """

    encoding: int = ENCODING_VARIABLE
    tolerance: float = DEFAULT.tolerance
    sublimit: float = DEFAULT.sublimit
    spacing: float = DEFAULT.spacing
    sources: List[Tuple[str, str]] = field(default_factory=list)
    hash: HashPair = (0, 0)
    body: int = BODY_EARTH
    kind: int = KIND_UNDULATION
    arrangement: int = ARRANGEMENT_SCALAR
    scale_exponent: int = SCALE_EXPONENT

    @classmethod
    def from_config(
        cls,
        config: GeoidConfig,
        encoding: int = ENCODING_VARIABLE,
        sources: Optional[List[Tuple[str, str]]] = None,
    ) -> "GeoidHeader":
        return cls(
            encoding=encoding,
            tolerance=config.tolerance,
            sublimit=config.sublimit,
            spacing=config.spacing,
            sources=list(sources or []),
        )


# ═══════════════════════════════════════════════════════════════════
# Writing
# ═══════════════════════════════════════════════════════════════════

def _encode_int(value: int, encoding: int) -> bytes:
    if encoding == ENCODING_FIXED:
        return struct.pack(">i", value)
    if value == UNKNOWN_SENTINEL:
        return b"\x80\x00"
    if -_SHORT_LIMIT <= value < _SHORT_LIMIT:
        return (value & 0xFFFFFF).to_bytes(3, "big")
    return b"\x40" + struct.pack(">i", value)


def _write_node(quad: Geoquad, encoding: int, out: bytearray) -> None:
    if quad.is_subdivided():
        out.append(1)
        for sub in quad.children:
            _write_node(sub, encoding, out)
        return
    out.append(0)
    und = quad.und
    if und is None:
        out += _encode_int(UNKNOWN_SENTINEL, encoding)
    else:
        for u in und:
            out += _encode_int(u, encoding)


def dumps(cubemap: Cubemap, header: Optional[GeoidHeader] = None) -> bytes:
    """Serialise *cubemap*.

    The hash written is taken from the cubemap; *header* is not modified.
    """
    if header is None:
        header = GeoidHeader()
    if header.encoding not in (ENCODING_FIXED, ENCODING_VARIABLE):
        raise ValueError(f"Unknown encoding {header.encoding}")
    header = replace(header, hash=cubemap.hash())

    out = bytearray(_HEADER.pack(
        MAGIC, header.hash[0], header.hash[1],
        header.body, header.kind, header.encoding, header.arrangement,
        header.scale_exponent, header.tolerance, header.sublimit, header.spacing,
        2 * len(header.sources),
    ))
    for name, fmt in header.sources:
        for text in (name, fmt):
            out += text.encode("utf-8") + b"\0"
    for quad in cubemap.faces:
        _write_node(quad, header.encoding, out)
    return bytes(out)


def write_geoid(
    cubemap: Cubemap,
    path: Union[str, Path],
    header: Optional[GeoidHeader] = None,
) -> GeoidHeader:
    if header is None:
        header = GeoidHeader()
    header = replace(header, hash=cubemap.hash())
    data = dumps(cubemap, header)
    Path(path).write_bytes(data)
    logger.info(
        "Wrote %s: %d bytes, %d leaves, hash %08x%08x",
        path, len(data), cubemap.leaf_count(), header.hash[0], header.hash[1],
    )
    return header


# ═══════════════════════════════════════════════════════════════════
# Reading
# ═══════════════════════════════════════════════════════════════════

class _Reader:
    """Cursor over the file bytes that reports where parsing failed."""

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def take(self, n: int, check: str) -> bytes:
        if self.pos + n > len(self.data):
            raise GeoidFormatError(check, self.pos, f"needs {n} bytes, {len(self.data) - self.pos} left")
        chunk = self.data[self.pos:self.pos + n]
        self.pos += n
        return chunk

    def byte(self, check: str) -> int:
        return self.take(1, check)[0]

    def cstring(self, check: str) -> str:
        end = self.data.find(b"\0", self.pos)
        if end < 0:
            raise GeoidFormatError(check, self.pos, "unterminated string")
        raw = self.data[self.pos:end]
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise GeoidFormatError(check, self.pos, str(exc)) from exc
        self.pos = end + 1
        return text

    def integer(self, encoding: int) -> int:
        if encoding == ENCODING_FIXED:
            return struct.unpack(">i", self.take(4, "coefficient"))[0]
        start = self.pos
        lead = self.byte("coefficient")
        if lead < 0x40 or lead >= 0xC0:
            rest = self.take(2, "coefficient")
            return int.from_bytes(bytes([lead]) + rest, "big", signed=True)
        if lead == 0x80:
            if self.byte("coefficient") != 0:
                raise GeoidFormatError("coefficient", start, "80 must be followed by 00")
            return UNKNOWN_SENTINEL
        if lead == 0x40:
            return struct.unpack(">i", self.take(4, "coefficient"))[0]
        raise GeoidFormatError("coefficient", start, f"invalid lead byte {lead:#04x}")


def _read_header(reader: _Reader) -> GeoidHeader:
    raw = reader.take(HEADER_SIZE, "header")
    (magic, h0, h1, body, kind, encoding, arrangement,
     scale_exponent, tolerance, sublimit, spacing, count) = _HEADER.unpack(raw)
    if magic != MAGIC:
        raise GeoidFormatError("magic", 0, f"got {magic!r}")
    if body != BODY_EARTH:
        raise GeoidFormatError("body", 0x10, f"unsupported body {body}")
    if kind != KIND_UNDULATION:
        raise GeoidFormatError("kind", 0x12, f"unsupported data kind {kind}")
    if encoding not in (ENCODING_FIXED, ENCODING_VARIABLE):
        raise GeoidFormatError("encoding", 0x13, f"unsupported encoding {encoding}")
    if arrangement != ARRANGEMENT_SCALAR:
        raise GeoidFormatError("arrangement", 0x14, f"unsupported arrangement {arrangement}")
    if scale_exponent != SCALE_EXPONENT:
        raise GeoidFormatError("scale", 0x15, f"unsupported scale exponent {scale_exponent}")
    if count % 2:
        raise GeoidFormatError("sources", 0x2F, f"odd string count {count}")

    sources = []
    for _ in range(count // 2):
        name = reader.cstring("sources")
        fmt = reader.cstring("sources")
        sources.append((name, fmt))
    return GeoidHeader(
        encoding=encoding,
        tolerance=tolerance,
        sublimit=sublimit,
        spacing=spacing,
        sources=sources,
        hash=(h0, h1),
        body=body,
        kind=kind,
        arrangement=arrangement,
        scale_exponent=scale_exponent,
    )


def _read_node(reader: _Reader, quad: Geoquad, encoding: int) -> None:
    start = reader.pos
    flag = reader.byte("node")
    if flag == 1:
        quad.subdivide()
        for sub in quad.children:
            _read_node(reader, sub, encoding)
        return
    if flag != 0:
        raise GeoidFormatError("node", start, f"invalid subdivision flag {flag}")
    first = reader.integer(encoding)
    if first == UNKNOWN_SENTINEL:
        quad.mark_unknown()
        return
    und = [first]
    for _ in range(5):
        offset = reader.pos
        value = reader.integer(encoding)
        if value == UNKNOWN_SENTINEL:
            raise GeoidFormatError("coefficient", offset, "unknown marker inside a leaf")
        und.append(value)
    quad.set_coefficients(und)


def loads(data: bytes) -> Tuple[GeoidHeader, Cubemap]:
    """Parse a geoid file held in memory."""
    reader = _Reader(data)
    header = _read_header(reader)
    cubemap = Cubemap()
    for quad in cubemap.faces:
        _read_node(reader, quad, header.encoding)
    if reader.pos != len(data):
        raise GeoidFormatError("trailing", reader.pos, f"{len(data) - reader.pos} bytes after last face")
    if cubemap.hash() != header.hash:
        raise GeoidFormatError("hash", 0x08, "content does not match the header hash")
    return header, cubemap


def read_geoid(path: Union[str, Path]) -> Tuple[GeoidHeader, Cubemap]:
    header, cubemap = loads(Path(path).read_bytes())
    logger.info(
        "Read %s: %d leaves, depth %d, %d sources",
        path, cubemap.leaf_count(), cubemap.depth(), len(header.sources),
    )
    return header, cubemap
