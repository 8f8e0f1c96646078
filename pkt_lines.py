from dataclasses import dataclass
from enum import Enum
import string
from typing import Iterator, Optional, Union

OBJECT_ID_LENGTH = 40
PEELED_SUFFIX = b'^{}'
COMMENT_PREFIX = b'#'
HEX_DIGITS = frozenset(string.hexdigits.encode())


class PktLineError(ValueError):
    pass


class PktLineConstants(Enum):
    FLUSH = 0
    DELIMITER = 1
    RESPONSE_END = 2


@dataclass(frozen=True)
class PktLineData:
    data: bytes


PktLine = Union[PktLineData, PktLineConstants]


@dataclass(frozen=True)
class Frame:
    pkt: PktLine
    start: int
    end: int


@dataclass(frozen=True)
class RefRecord:
    """A reference line of an advertisement.

    `name` never carries the peel suffix; `peeled` records whether it did.
    `start`/`end` delimit the whole frame, header included.
    """
    object_id: str
    name: str
    peeled: bool
    capabilities: Optional[bytes]
    start: int
    end: int

    @property
    def full_name(self) -> str:
        return self.name + PEELED_SUFFIX.decode() if self.peeled else self.name


def encode_pkt_line(line: bytes) -> bytes:
    return b'%04x' % (len(line) + 4) + line


def encode_ref_line(object_id: str, name: str, capabilities: Optional[bytes] = None) -> bytes:
    line = f'{object_id} {name}'.encode()
    if capabilities is not None:
        line += b'\0' + capabilities
    return encode_pkt_line(line + b'\n')


def _parse_length(prefix: bytes, offset: int) -> int:
    if len(prefix) < 4:
        raise PktLineError(f"truncated pkt-line header at offset {offset}: {prefix!r}")
    if not all(c in HEX_DIGITS for c in prefix):
        raise PktLineError(f"cannot parse pkt-line size at offset {offset}: {prefix!r}")
    return int(prefix, 16)


def parse_pkt_lines(data: bytes) -> Iterator[Frame]:
    offset = 0
    size = len(data)
    while offset < size:
        pkt_length = _parse_length(data[offset:(offset + 4)], offset)
        if pkt_length < 4:
            try:
                pkt: PktLine = PktLineConstants(pkt_length)
            except ValueError:
                raise PktLineError(f"invalid pkt-line size {pkt_length} at offset {offset}") from None
            yield Frame(pkt, offset, offset + 4)
            offset += 4
            continue
        end = offset + pkt_length
        if end > size:
            raise PktLineError(f"incomplete pkt-line at offset {offset}: needs {pkt_length} bytes, {size - offset} left")
        yield Frame(PktLineData(data[offset + 4:end]), offset, end)
        offset = end


def decode_ref_line(payload: bytes) -> Optional[tuple[str, str, Optional[bytes]]]:
    """Split `<object-id> <name>[\\0<capabilities>]\\n` into its parts.

    Returns None for payloads of any other shape.
    """
    if payload.startswith(COMMENT_PREFIX):
        return None
    if payload.find(b' ') != OBJECT_ID_LENGTH or payload[OBJECT_ID_LENGTH + 1:].startswith(b' '):
        return None
    object_id = payload[:OBJECT_ID_LENGTH]
    if not all(c in HEX_DIGITS for c in object_id):
        return None
    rest = payload[OBJECT_ID_LENGTH + 1:].removesuffix(b'\n')
    name, nul, capabilities = rest.partition(b'\0')
    if not name:
        return None
    return object_id.decode(), name.decode(errors='replace'), capabilities if nul else None


def parse_refs(data: bytes) -> list[RefRecord]:
    refs: list[RefRecord] = []
    for frame in parse_pkt_lines(data):
        if not isinstance(frame.pkt, PktLineData):
            continue
        decoded = decode_ref_line(frame.pkt.data)
        if decoded is None:
            continue
        object_id, name, capabilities = decoded
        peeled = name.endswith(PEELED_SUFFIX.decode())
        if peeled:
            name = name[:-len(PEELED_SUFFIX)]
        refs.append(RefRecord(object_id, name, peeled, capabilities, frame.start, frame.end))
    return refs
