"""Binary (CBOR, RFC 7049) encoding of log fields."""

from __future__ import annotations

import ipaddress
import json
import math
import struct
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

MAJOR_OFFSET = 5
ADDITIONAL_MAX = 23

MAJOR_UNSIGNED_INT = 0 << MAJOR_OFFSET
MAJOR_NEGATIVE_INT = 1 << MAJOR_OFFSET
MAJOR_BYTE_STRING = 2 << MAJOR_OFFSET
MAJOR_UTF8_STRING = 3 << MAJOR_OFFSET
MAJOR_ARRAY = 4 << MAJOR_OFFSET
MAJOR_MAP = 5 << MAJOR_OFFSET
MAJOR_TAGS = 6 << MAJOR_OFFSET
MAJOR_SIMPLE_AND_FLOAT = 7 << MAJOR_OFFSET

ADDITIONAL_BOOL_FALSE = 20
ADDITIONAL_BOOL_TRUE = 21
ADDITIONAL_NULL = 22
ADDITIONAL_UINT8 = 24
ADDITIONAL_UINT16 = 25
ADDITIONAL_UINT32 = 26
ADDITIONAL_UINT64 = 27
ADDITIONAL_FLOAT16 = 25
ADDITIONAL_FLOAT32 = 26
ADDITIONAL_FLOAT64 = 27
ADDITIONAL_BREAK = 31
ADDITIONAL_TIMESTAMP = 1
ADDITIONAL_INFINITE_COUNT = 31

TAG_NETWORK_ADDR = 260
TAG_NETWORK_PREFIX = 261
TAG_EMBEDDED_JSON = 262
TAG_HEX_STRING = 263

FLOAT32_NAN = b"\xfa\x7f\xc0\x00\x00"
FLOAT32_POS_INF = b"\xfa\x7f\x80\x00\x00"
FLOAT32_NEG_INF = b"\xfa\xff\x80\x00\x00"
FLOAT64_NAN = b"\xfb\x7f\xf8\x00\x00\x00\x00\x00\x00"
FLOAT64_POS_INF = b"\xfb\x7f\xf0\x00\x00\x00\x00\x00\x00"
FLOAT64_NEG_INF = b"\xfb\xff\xf0\x00\x00\x00\x00\x00\x00"

_BREAK = bytes([MAJOR_SIMPLE_AND_FLOAT | ADDITIONAL_BREAK])
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_UINT64_LIMIT = 1 << 64


def encode_type_prefix(major: int, number: int) -> bytes:
    """Encode a major type with a number held in 1, 2, 4 or 8 following bytes."""
    if not 0 <= number < _UINT64_LIMIT:
        raise OverflowError(f"value {number} does not fit in a CBOR header")
    if number < 256:
        size, minor = 1, ADDITIONAL_UINT8
    elif number < 65536:
        size, minor = 2, ADDITIONAL_UINT16
    elif number < 4294967296:
        size, minor = 4, ADDITIONAL_UINT32
    else:
        size, minor = 8, ADDITIONAL_UINT64
    return bytes([major | minor]) + number.to_bytes(size, "big")


def _header(major: int, length: int) -> bytes:
    if length <= ADDITIONAL_MAX:
        return bytes([major | length])
    return encode_type_prefix(major, length)


def _tag16(tag: int) -> bytes:
    return bytes([MAJOR_TAGS | ADDITIONAL_UINT16]) + tag.to_bytes(2, "big")


def embedded_json(data: bytes) -> bytes:
    """Wrap already serialised JSON in the embedded-JSON tag."""
    data = bytes(data)
    return _tag16(TAG_EMBEDDED_JSON) + _header(MAJOR_BYTE_STRING, len(data)) + data


def _nanoseconds(value: timedelta | int) -> int:
    if isinstance(value, timedelta):
        whole = value.days * 86400 + value.seconds
        return whole * 1_000_000_000 + value.microseconds * 1000
    return int(value)


def _truncating_div(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient


def _unix_parts(t: datetime) -> tuple[int, int]:
    """Seconds since the epoch and the nanosecond remainder; naive times are UTC."""
    if t.tzinfo is None:
        t = t.replace(tzinfo=timezone.utc)
    delta = t - _EPOCH
    return delta.days * 86400 + delta.seconds, delta.microseconds * 1000


class CborEncoder:
    """Produces CBOR fragments for each kind of log field."""

    def key(self, dst: bytes, key: str) -> bytes:
        """Append a map key to dst, opening the map if dst is empty."""
        if len(dst) < 1:
            dst = self.begin_marker()
        return bytes(dst) + self.string(key)

    def string(self, s: str) -> bytes:
        data = s.encode("utf-8", "surrogateescape")
        return _header(MAJOR_UTF8_STRING, len(data)) + data

    def strings(self, vals: Iterable[str]) -> bytes:
        vals = list(vals)
        return _header(MAJOR_ARRAY, len(vals)) + b"".join(self.string(v) for v in vals)

    def byte_string(self, data: bytes) -> bytes:
        data = bytes(data)
        return _header(MAJOR_BYTE_STRING, len(data)) + data

    def hex_bytes(self, data: bytes) -> bytes:
        return _tag16(TAG_HEX_STRING) + self.byte_string(data)

    def nil(self) -> bytes:
        return bytes([MAJOR_SIMPLE_AND_FLOAT | ADDITIONAL_NULL])

    def begin_marker(self) -> bytes:
        return bytes([MAJOR_MAP | ADDITIONAL_INFINITE_COUNT])

    def end_marker(self) -> bytes:
        return _BREAK

    def object_data(self, dst: bytes, obj: bytes) -> bytes:
        """Append an encoded object to dst, dropping its leading map marker."""
        return bytes(dst) + bytes(obj[1:])

    def array_start(self) -> bytes:
        return bytes([MAJOR_ARRAY | ADDITIONAL_INFINITE_COUNT])

    def array_end(self) -> bytes:
        return _BREAK

    def array_delim(self, dst: bytes) -> bytes:
        return bytes(dst)

    def line_break(self) -> bytes:
        return b""

    def _array(self, vals: list, encode) -> bytes:
        if not vals:
            return self.array_start() + self.array_end()
        return _header(MAJOR_ARRAY, len(vals)) + b"".join(encode(v) for v in vals)

    def boolean(self, val: bool) -> bytes:
        minor = ADDITIONAL_BOOL_TRUE if val else ADDITIONAL_BOOL_FALSE
        return bytes([MAJOR_SIMPLE_AND_FLOAT | minor])

    def booleans(self, vals: Iterable[bool]) -> bytes:
        return self._array(list(vals), self.boolean)

    def integer(self, val: int) -> bytes:
        val = int(val)
        if val < 0:
            major, content = MAJOR_NEGATIVE_INT, -val - 1
        else:
            major, content = MAJOR_UNSIGNED_INT, val
        if content <= ADDITIONAL_MAX:
            return bytes([major | content])
        return encode_type_prefix(major, content)

    def integers(self, vals: Iterable[int]) -> bytes:
        return self._array(list(vals), self.integer)

    def float32(self, val: float) -> bytes:
        val = float(val)
        if math.isnan(val):
            return FLOAT32_NAN
        try:
            packed = struct.pack(">f", val)
        except OverflowError:
            packed = None
        if packed is None or math.isinf(val):
            return FLOAT32_POS_INF if val > 0 else FLOAT32_NEG_INF
        return bytes([MAJOR_SIMPLE_AND_FLOAT | ADDITIONAL_FLOAT32]) + packed

    def floats32(self, vals: Iterable[float]) -> bytes:
        return self._array(list(vals), self.float32)

    def float64(self, val: float) -> bytes:
        val = float(val)
        if math.isnan(val):
            return FLOAT64_NAN
        if math.isinf(val):
            return FLOAT64_POS_INF if val > 0 else FLOAT64_NEG_INF
        return bytes([MAJOR_SIMPLE_AND_FLOAT | ADDITIONAL_FLOAT64]) + struct.pack(">d", val)

    def floats64(self, vals: Iterable[float]) -> bytes:
        return self._array(list(vals), self.float64)

    def any_value(self, value: object) -> bytes:
        """Serialise value as JSON and embed it; failures become a string field."""
        try:
            marshaled = json.dumps(value, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError) as exc:
            return self.string(f"marshaling error: {exc}")
        return embedded_json(marshaled.encode("utf-8"))

    def ip_addr(self, ip) -> bytes:
        address = ipaddress.ip_address(ip)
        return _tag16(TAG_NETWORK_ADDR) + self.byte_string(address.packed)

    def ip_prefix(self, network) -> bytes:
        """Encode an address with its prefix length; host bits are kept."""
        interface = ipaddress.ip_interface(network)
        return (
            _tag16(TAG_NETWORK_PREFIX)
            + bytes([MAJOR_MAP | 1])
            + self.byte_string(interface.ip.packed)
            + self.integer(interface.network.prefixlen & 0xFF)
        )

    def mac_addr(self, mac) -> bytes:
        if isinstance(mac, str):
            mac = bytes(int(part, 16) for part in mac.replace("-", ":").split(":"))
        return _tag16(TAG_NETWORK_ADDR) + self.byte_string(mac)

    def time(self, t: datetime, fmt: str = "") -> bytes:
        """Encode a timestamp; the format is ignored in binary output."""
        secs, nanos = _unix_parts(t)
        tag = bytes([MAJOR_TAGS | ADDITIONAL_TIMESTAMP])
        if nanos == 0:
            if secs < 0:
                return tag + encode_type_prefix(MAJOR_NEGATIVE_INT, -secs - 1)
            return tag + encode_type_prefix(MAJOR_UNSIGNED_INT, secs)
        return tag + self.float64(float(secs) * 1.0 + float(nanos) * 1e-9)

    def times(self, vals: Iterable[datetime], fmt: str = "") -> bytes:
        return self._array(list(vals), lambda t: self.time(t, fmt))

    def duration(self, d, unit, use_int: bool) -> bytes:
        """Encode d counted in unit, as an integer or as a float."""
        d_ns, unit_ns = _nanoseconds(d), _nanoseconds(unit)
        if unit_ns == 0:
            raise ZeroDivisionError("duration unit must not be zero")
        if use_int:
            return self.integer(_truncating_div(d_ns, unit_ns))
        return self.float64(float(d_ns) / float(unit_ns))

    def durations(self, vals, unit, use_int: bool) -> bytes:
        return self._array(list(vals), lambda d: self.duration(d, unit, use_int))