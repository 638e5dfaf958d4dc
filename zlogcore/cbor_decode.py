"""Conversion of binary (CBOR) log records back into JSON text."""

from __future__ import annotations

import ipaddress
import struct
from datetime import datetime, timedelta, timezone, tzinfo
from decimal import Decimal
from typing import BinaryIO, Optional, Union

# Time zone used when rendering decoded timestamps; None means UTC.
decode_time_zone: Optional[tzinfo] = None

_MAJOR_MASK = 0xE0
_MINOR_MASK = 0x1F

_UNSIGNED_INT = 0x00
_NEGATIVE_INT = 0x20
_BYTE_STRING = 0x40
_UTF8_STRING = 0x60
_ARRAY = 0x80
_MAP = 0xA0
_TAGS = 0xC0
_SIMPLE_AND_FLOAT = 0xE0

_BOOL_FALSE = 20
_BOOL_TRUE = 21
_NULL = 22
_FLOAT16 = 25
_FLOAT32 = 26
_FLOAT64 = 27
_UINT16 = 25
_TIMESTAMP = 1
_INFINITE_COUNT = 31
_BREAK_BYTE = _SIMPLE_AND_FLOAT | 31

_TAG_NETWORK_ADDR = 260
_TAG_NETWORK_PREFIX = 261
_TAG_EMBEDDED_JSON = 262
_TAG_HEX_STRING = 263

_FLOAT32_NAN = b"\x7f\xc0\x00\x00"
_FLOAT32_POS_INF = b"\x7f\x80\x00\x00"
_FLOAT32_NEG_INF = b"\xff\x80\x00\x00"
_FLOAT64_NAN = b"\x7f\xf8\x00\x00\x00\x00\x00\x00"
_FLOAT64_POS_INF = b"\x7f\xf0\x00\x00\x00\x00\x00\x00"
_FLOAT64_NEG_INF = b"\xff\xf0\x00\x00\x00\x00\x00\x00"

_INT_SIZES = {24: 1, 25: 2, 26: 4, 27: 8}

_ESCAPES = {
    0x22: b'\\"',
    0x5C: b"\\\\",
    0x08: b"\\b",
    0x0C: b"\\f",
    0x0A: b"\\n",
    0x0D: b"\\r",
    0x09: b"\\t",
}

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_NANOS = 1_000_000_000

Source = Union[bytes, bytearray, memoryview, BinaryIO]


class CborDecodeError(ValueError):
    """Raised when binary input is not a well-formed log record."""

    def __init__(self, message: str, partial: bytes = b"") -> None:
        super().__init__(message)
        self.partial = partial


def _needs_escape(b: int) -> bool:
    return b < 0x20 or b > 0x7E or b == 0x5C or b == 0x22


def _utf8_rune_size(raw: bytes, i: int) -> int:
    """Length of the valid UTF-8 sequence starting at raw[i], or 0 if invalid."""
    lead = raw[i]
    if 0xC2 <= lead <= 0xDF:
        ranges = [(0x80, 0xBF)]
    elif lead == 0xE0:
        ranges = [(0xA0, 0xBF), (0x80, 0xBF)]
    elif 0xE1 <= lead <= 0xEC or 0xEE <= lead <= 0xEF:
        ranges = [(0x80, 0xBF), (0x80, 0xBF)]
    elif lead == 0xED:
        ranges = [(0x80, 0x9F), (0x80, 0xBF)]
    elif lead == 0xF0:
        ranges = [(0x90, 0xBF), (0x80, 0xBF), (0x80, 0xBF)]
    elif 0xF1 <= lead <= 0xF3:
        ranges = [(0x80, 0xBF), (0x80, 0xBF), (0x80, 0xBF)]
    elif lead == 0xF4:
        ranges = [(0x80, 0x8F), (0x80, 0xBF), (0x80, 0xBF)]
    else:
        return 0
    if i + len(ranges) >= len(raw) + 0 and i + len(ranges) > len(raw) - 1:
        if i + len(ranges) > len(raw) - 1 + 0 and i + len(ranges) >= len(raw):
            return 0
    for offset, (low, high) in enumerate(ranges, start=1):
        if not low <= raw[i + offset] <= high:
            return 0
    return len(ranges) + 1


def _escape_json(raw: bytes, i: int) -> bytes:
    """Escape raw from position i on; bytes before i are copied unchanged."""
    out = bytearray()
    start = 0
    n = len(raw)
    while i < n:
        b = raw[i]
        if b >= 0x80:
            size = _utf8_rune_size(raw, i)
            if size == 0:
                out += raw[start:i]
                out += b"\\ufffd"
                i += 1
                start = i
            else:
                i += size
            continue
        if not _needs_escape(b):
            i += 1
            continue
        out += raw[start:i]
        out += _ESCAPES.get(b) or b"\\u00%02x" % b
        i += 1
        start = i
    out += raw[start:]
    return bytes(out)


def _fixed_notation(text: str) -> str:
    value = Decimal(text)
    if value.is_zero():
        return "-0" if value.is_signed() else "0"
    return format(value.normalize(), "f")


def _shortest_float32(value: float) -> str:
    for precision in range(1, 10):
        text = f"{value:.{precision}g}"
        try:
            if struct.unpack(">f", struct.pack(">f", float(text)))[0] == value:
                return text
        except OverflowError:
            continue
    return repr(value)


def _format_float(value: float, single: bool) -> bytes:
    text = _shortest_float32(value) if single else repr(value)
    return _fixed_notation(text).encode("ascii")


def _format_time(secs: int, nanos: int, with_fraction: bool) -> bytes:
    zone = decode_time_zone if decode_time_zone is not None else timezone.utc
    try:
        moment = (_EPOCH + timedelta(seconds=secs)).astimezone(zone)
    except (OverflowError, ValueError) as exc:
        raise CborDecodeError(f"timestamp out of range: {secs}") from exc
    text = (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )
    if with_fraction and nanos:
        text += "." + f"{nanos:09d}".rstrip("0")
    offset = moment.utcoffset() or timedelta(0)
    if offset == timedelta(0):
        text += "Z"
    else:
        minutes = int(offset.total_seconds()) // 60
        sign = "+" if minutes >= 0 else "-"
        hours, mins = divmod(abs(minutes), 60)
        text += f"{sign}{hours:02d}:{mins:02d}"
    return b'"' + text.encode("ascii") + b'"'


def _ip_string(octets: bytes) -> str:
    if not octets:
        return "<nil>"
    if len(octets) == 4:
        return str(ipaddress.IPv4Address(octets))
    if len(octets) == 16:
        address = ipaddress.IPv6Address(octets)
        if address.ipv4_mapped is not None:
            return str(address.ipv4_mapped)
        return str(address)
    return "?" + octets.hex()


class _Decoder:
    """Reads CBOR items from a byte buffer and appends their JSON form to out."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0
        self.out = bytearray()

    # Reading primitives.

    def at_end(self) -> bool:
        return self._pos >= len(self._data)

    def _peek(self) -> int:
        if self._pos >= len(self._data):
            raise CborDecodeError("EOF")
        return self._data[self._pos]

    def _read_byte(self) -> int:
        if self._pos >= len(self._data):
            raise CborDecodeError("Tried to Read 1 Byte.. But hit end of file")
        b = self._data[self._pos]
        self._pos += 1
        return b

    def _read(self, n: int) -> bytes:
        end = self._pos + n
        if end > len(self._data):
            raise CborDecodeError(f"Tried to Read {n} Bytes.. But hit end of file")
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def _unread(self) -> None:
        self._pos -= 1

    def _at_break(self) -> bool:
        if self._peek() == _BREAK_BYTE:
            self._pos += 1
            return True
        return False

    # Item decoders.

    def _int_additional(self, minor: int) -> int:
        if minor <= 23:
            return minor
        size = _INT_SIZES.get(minor)
        if size is None:
            raise CborDecodeError(
                f"Invalid Additional Type: {minor} in decodeInteger (expected <28)"
            )
        return int.from_bytes(self._read(size), "big")

    def _integer(self) -> int:
        pb = self._read_byte()
        major, minor = pb & _MAJOR_MASK, pb & _MINOR_MASK
        if major not in (_UNSIGNED_INT, _NEGATIVE_INT):
            raise CborDecodeError(
                f"Major type is: {major} in decodeInteger!! (expected 0 or 1)"
            )
        value = self._int_additional(minor)
        return value if major == _UNSIGNED_INT else -1 - value

    def _float(self) -> tuple[float, bool]:
        """Return the float and whether it was single precision."""
        pb = self._read_byte()
        major, minor = pb & _MAJOR_MASK, pb & _MINOR_MASK
        if major != _SIMPLE_AND_FLOAT:
            raise CborDecodeError(f"Incorrect Major type is: {major} in decodeFloat")
        if minor == _FLOAT16:
            raise CborDecodeError("float16 is not suppported in decodeFloat")
        if minor == _FLOAT32:
            raw = self._read(4)
            if raw == _FLOAT32_NAN:
                return float("nan"), True
            if raw == _FLOAT32_POS_INF:
                return float("inf"), True
            if raw == _FLOAT32_NEG_INF:
                return float("-inf"), True
            return struct.unpack(">f", raw)[0], True
        if minor == _FLOAT64:
            raw = self._read(8)
            if raw == _FLOAT64_NAN:
                return float("nan"), False
            if raw == _FLOAT64_POS_INF:
                return float("inf"), False
            if raw == _FLOAT64_NEG_INF:
                return float("-inf"), False
            return struct.unpack(">d", raw)[0], False
        raise CborDecodeError(f"Invalid Additional Type: {minor} in decodeFloat")

    def _byte_string(self, quoted: bool) -> bytes:
        pb = self._read_byte()
        major, minor = pb & _MAJOR_MASK, pb & _MINOR_MASK
        if major != _BYTE_STRING:
            raise CborDecodeError(f"Major type is: {major} in decodeString")
        content = self._read(self._int_additional(minor))
        return b'"' + content + b'"' if quoted else content

    def _utf8_string(self) -> bytes:
        pb = self._read_byte()
        major, minor = pb & _MAJOR_MASK, pb & _MINOR_MASK
        if major != _UTF8_STRING:
            raise CborDecodeError(f"Major type is: {major} in decodeUTF8String")
        raw = self._read(self._int_additional(minor))
        first = next((i for i, b in enumerate(raw) if _needs_escape(b)), None)
        if first is None:
            return b'"' + raw + b'"'
        return b'"' + _escape_json(raw, first) + b'"'

    def _length(self, minor: int) -> Optional[int]:
        if minor == _INFINITE_COUNT:
            return None
        return self._int_additional(minor)

    def _array(self) -> None:
        self.out += b"["
        pb = self._read_byte()
        major, minor = pb & _MAJOR_MASK, pb & _MINOR_MASK
        if major != _ARRAY:
            raise CborDecodeError(f"Major type is: {major} in array2Json")
        count = self._length(minor)
        i = 0
        while count is None or i < count:
            if count is None and self._at_break():
                break
            self.one()
            if count is None:
                if self._at_break():
                    break
                self.out += b","
            elif i + 1 < count:
                self.out += b","
            i += 1
        self.out += b"]"

    def _map(self) -> None:
        pb = self._read_byte()
        major, minor = pb & _MAJOR_MASK, pb & _MINOR_MASK
        if major != _MAP:
            raise CborDecodeError(f"Major type is: {major} in map2Json")
        # A definite length counts keys and values together.
        count = self._length(minor)
        self.out += b"{"
        i = 0
        while count is None or i < count:
            if count is None and self._at_break():
                break
            self.one()
            if i % 2 == 0:
                self.out += b":"
            elif count is None:
                if self._at_break():
                    break
                self.out += b","
            elif i + 1 < count:
                self.out += b","
            i += 1
        self.out += b"}"

    def _timestamp(self) -> bytes:
        pb = self._read_byte()
        self._unread()
        major = pb & _MAJOR_MASK
        if major in (_UNSIGNED_INT, _NEGATIVE_INT):
            return _format_time(self._integer(), 0, with_fraction=False)
        if major == _SIMPLE_AND_FLOAT:
            value, _ = self._float()
            try:
                secs = int(value)
            except (OverflowError, ValueError) as exc:
                raise CborDecodeError(f"timestamp out of range: {value}") from exc
            nanos = int((value - secs) * 1e9)
            secs, nanos = divmod(secs * _NANOS + nanos, _NANOS)
            return _format_time(secs, nanos, with_fraction=True)
        raise CborDecodeError(f"TS format is neigther int nor float: {major}")

    def _tag(self) -> bytes:
        pb = self._read_byte()
        major, minor = pb & _MAJOR_MASK, pb & _MINOR_MASK
        if major != _TAGS:
            raise CborDecodeError(f"Major type is: {major} in decodeTagData")
        if minor == _TIMESTAMP:
            return self._timestamp()
        if minor != _UINT16:
            raise CborDecodeError(f"Unsupported Additional Type: {minor} in decodeTagData")
        tag = self._int_additional(minor)
        if tag == _TAG_EMBEDDED_JSON:
            data_major = self._read_byte() & _MAJOR_MASK
            if data_major != _BYTE_STRING:
                raise CborDecodeError(
                    f"Unsupported embedded Type: {data_major} in decodeEmbeddedJSON"
                )
            self._unread()
            return self._byte_string(quoted=False)
        if tag == _TAG_NETWORK_ADDR:
            octets = self._byte_string(quoted=False)
            if len(octets) == 6:
                text = ":".join(f"{b:02x}" for b in octets)
            elif len(octets) in (4, 16):
                text = _ip_string(octets)
            else:
                raise CborDecodeError(
                    f"Unexpected Network Address length: {len(octets)} (expected 4,6,16)"
                )
            return b'"' + text.encode("ascii") + b'"'
        if tag == _TAG_NETWORK_PREFIX:
            if self._read_byte() != _MAP | 0x1:
                raise CborDecodeError("IP Prefix is NOT of MAP of 1 elements as expected")
            octets = self._byte_string(quoted=False)
            prefix_len = self._integer()
            bits = 32 if len(octets) == 4 else 128
            if not 0 <= prefix_len <= bits:
                raise CborDecodeError(f"Invalid prefix length: {prefix_len}")
            text = f"{_ip_string(octets)}/{prefix_len}"
            return b'"' + text.encode("ascii") + b'"'
        if tag == _TAG_HEX_STRING:
            octets = self._byte_string(quoted=False)
            return b'"' + octets.hex().encode("ascii") + b'"'
        raise CborDecodeError(f"Unsupported Additional Tag Type: {tag} in decodeTagData")

    def _simple_or_float(self) -> bytes:
        pb = self._read_byte()
        major, minor = pb & _MAJOR_MASK, pb & _MINOR_MASK
        if major != _SIMPLE_AND_FLOAT:
            raise CborDecodeError(f"Major type is: {major} in decodeSimpleFloat")
        if minor == _BOOL_TRUE:
            return b"true"
        if minor == _BOOL_FALSE:
            return b"false"
        if minor == _NULL:
            return b"null"
        if minor in (_FLOAT16, _FLOAT32, _FLOAT64):
            self._unread()
            value, single = self._float()
            if value != value:
                return b'"NaN"'
            if value == float("inf"):
                return b'"+Inf"'
            if value == float("-inf"):
                return b'"-Inf"'
            return _format_float(value, single)
        raise CborDecodeError(f"Invalid Additional Type: {minor} in decodeSimpleFloat")

    def one(self) -> None:
        """Decode the next item and append its JSON form."""
        major = self._peek() & _MAJOR_MASK
        if major in (_UNSIGNED_INT, _NEGATIVE_INT):
            self.out += str(self._integer()).encode("ascii")
        elif major == _BYTE_STRING:
            self.out += self._byte_string(quoted=True)
        elif major == _UTF8_STRING:
            self.out += self._utf8_string()
        elif major == _ARRAY:
            self._array()
        elif major == _MAP:
            self._map()
        elif major == _TAGS:
            self.out += self._tag()
        else:
            self.out += self._simple_or_float()


def _as_bytes(data: Source) -> bytes:
    if hasattr(data, "read"):
        return bytes(data.read())
    return bytes(data)


def is_binary(data: bytes) -> bool:
    """Whether data looks like a binary record rather than JSON text."""
    return len(data) > 0 and data[0] > 0x7F


def decode_one(data: Source) -> bytes:
    """Decode the first CBOR item in data into JSON."""
    decoder = _Decoder(_as_bytes(data))
    try:
        decoder.one()
    except CborDecodeError as exc:
        raise CborDecodeError(str(exc), bytes(decoder.out)) from None
    return bytes(decoder.out)


def decode_many(data: Source) -> bytes:
    """Decode every CBOR item in data, one JSON line per item.

    On malformed input CborDecodeError is raised; its ``partial`` attribute
    holds the output produced before the error.
    """
    decoder = _Decoder(_as_bytes(data))
    try:
        while not decoder.at_end():
            decoder.one()
            decoder.out += b"\n"
    except CborDecodeError as exc:
        raise CborDecodeError(str(exc), bytes(decoder.out)) from None
    return bytes(decoder.out)


def _to_text(data: bytes) -> str:
    return data.decode("utf-8", "surrogateescape")


def decode_if_binary_to_bytes(data: bytes) -> bytes:
    """Decode binary records to JSON lines; other input is returned unchanged.

    Decoding errors are swallowed and whatever was decoded is returned.
    """
    data = bytes(data)
    if not is_binary(data):
        return data
    try:
        return decode_many(data)
    except CborDecodeError as exc:
        return exc.partial


def decode_if_binary_to_string(data: bytes) -> str:
    """Like decode_if_binary_to_bytes, returning text."""
    return _to_text(decode_if_binary_to_bytes(data))


def decode_object_to_str(data: bytes) -> str:
    """Decode a single binary object to JSON text; other input is returned as text."""
    data = bytes(data)
    if is_binary(data):
        return _to_text(decode_one(data))
    return _to_text(data)