"""JSON text encoding of log fields."""

from __future__ import annotations

import ipaddress
import json
import math
import re
import struct
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from .cbor_decode import _format_float
from .cbor_encode import _nanoseconds, _truncating_div

TIME_FORMAT_UNIX = ""
TIME_FORMAT_UNIX_MS = "UNIXMS"
TIME_FORMAT_UNIX_MICRO = "UNIXMICRO"
RFC3339 = "2006-01-02T15:04:05Z07:00"
RFC3339_NANO = "2006-01-02T15:04:05.999999999Z07:00"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_NEEDS_ESCAPE = re.compile(r'[\x00-\x1f"\\\x7f\ud800-\udfff]')

_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def _escape_char(match: re.Match) -> str:
    ch = match.group()
    code = ord(ch)
    if 0xD800 <= code <= 0xDFFF:
        # Lone surrogates stand for bytes that were not valid UTF-8.
        return "\\ufffd"
    return _ESCAPES.get(ch) or f"\\u00{code:02x}"


def _quote(text: str) -> bytes:
    return b'"' + _NEEDS_ESCAPE.sub(_escape_char, text).encode("utf-8") + b'"'


def _as_aware(t: datetime) -> datetime:
    return t.replace(tzinfo=timezone.utc) if t.tzinfo is None else t


def _unix_micros(t: datetime) -> tuple[int, int]:
    """Whole seconds (floored) and total microseconds since the epoch."""
    delta = _as_aware(t) - _EPOCH
    secs = delta.days * 86400 + delta.seconds
    return secs, secs * 1_000_000 + delta.microseconds


def _rfc3339(t: datetime, with_fraction: bool) -> str:
    t = _as_aware(t)
    text = (
        f"{t.year:04d}-{t.month:02d}-{t.day:02d}"
        f"T{t.hour:02d}:{t.minute:02d}:{t.second:02d}"
    )
    if with_fraction and t.microsecond:
        text += "." + f"{t.microsecond:06d}".rstrip("0")
    offset = t.utcoffset() or timedelta(0)
    if offset == timedelta(0):
        return text + "Z"
    minutes = int(offset.total_seconds()) // 60
    sign = "+" if minutes >= 0 else "-"
    hours, mins = divmod(abs(minutes), 60)
    return f"{text}{sign}{hours:02d}:{mins:02d}"


def _to_float32(val: float) -> float:
    try:
        return struct.unpack(">f", struct.pack(">f", val))[0]
    except OverflowError:
        return math.copysign(math.inf, val)


def _float(val: float, single: bool) -> bytes:
    # JSON has no NaN or infinities; they are written as strings instead.
    if math.isnan(val):
        return b'"NaN"'
    if math.isinf(val):
        return b'"+Inf"' if val > 0 else b'"-Inf"'
    return _format_float(val, single)


def _ip_text(ip) -> str:
    if isinstance(ip, (bytes, bytearray, memoryview)):
        ip = bytes(ip)
    address = ipaddress.ip_address(ip)
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return str(address.ipv4_mapped)
    return str(address)


class JsonEncoder:
    """Produces JSON fragments for each kind of log field."""

    def key(self, dst: bytes, key: str) -> bytes:
        """Append a key to dst, separating it from any previous field."""
        dst = bytes(dst)
        if dst and dst[-1:] != b"{":
            dst += b","
        return dst + self.string(key) + b":"

    def string(self, s: str) -> bytes:
        return _quote(s)

    def strings(self, vals: Iterable[str]) -> bytes:
        return self._array(vals, self.string)

    def byte_string(self, data: bytes) -> bytes:
        """Quote raw bytes; invalid UTF-8 bytes become \\ufffd each."""
        return _quote(bytes(data).decode("utf-8", "surrogateescape"))

    def hex_bytes(self, data: bytes) -> bytes:
        return b'"' + bytes(data).hex().encode("ascii") + b'"'

    def nil(self) -> bytes:
        return b"null"

    def begin_marker(self) -> bytes:
        return b"{"

    def end_marker(self) -> bytes:
        return b"}"

    def object_data(self, dst: bytes, obj: bytes) -> bytes:
        """Append encoded object data to dst, merging it with existing fields."""
        dst, obj = bytes(dst), bytes(obj)
        if obj[:1] == b"{":
            obj = obj[1:]
        if len(dst) > 1:
            dst += b","
        return dst + obj

    def array_start(self) -> bytes:
        return b"["

    def array_end(self) -> bytes:
        return b"]"

    def array_delim(self, dst: bytes) -> bytes:
        dst = bytes(dst)
        return dst + b"," if dst else dst

    def line_break(self) -> bytes:
        return b"\n"

    @staticmethod
    def _array(vals: Iterable, encode) -> bytes:
        return b"[" + b",".join(encode(v) for v in vals) + b"]"

    def boolean(self, val: bool) -> bytes:
        return b"true" if val else b"false"

    def booleans(self, vals: Iterable[bool]) -> bytes:
        return self._array(vals, self.boolean)

    def integer(self, val: int) -> bytes:
        return str(int(val)).encode("ascii")

    def integers(self, vals: Iterable[int]) -> bytes:
        return self._array(vals, self.integer)

    def float32(self, val: float) -> bytes:
        return _float(_to_float32(float(val)), single=True)

    def floats32(self, vals: Iterable[float]) -> bytes:
        return self._array(vals, self.float32)

    def float64(self, val: float) -> bytes:
        return _float(float(val), single=False)

    def floats64(self, vals: Iterable[float]) -> bytes:
        return self._array(vals, self.float64)

    def any_value(self, value: object) -> bytes:
        """Serialise value as JSON; failures become a string field."""
        try:
            marshaled = json.dumps(value, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError) as exc:
            return self.string(f"marshaling error: {exc}")
        return marshaled.encode("utf-8")

    def ip_addr(self, ip) -> bytes:
        return self.string(_ip_text(ip))

    def ip_prefix(self, network) -> bytes:
        """Write address/prefix-length; host bits of the address are kept."""
        if isinstance(network, (ipaddress.IPv4Network, ipaddress.IPv6Network)):
            address, prefix_len = network.network_address, network.prefixlen
        else:
            interface = ipaddress.ip_interface(network)
            address, prefix_len = interface.ip, interface.network.prefixlen
        return self.string(f"{_ip_text(address)}/{prefix_len}")

    def mac_addr(self, mac) -> bytes:
        if isinstance(mac, str):
            mac = bytes(int(part, 16) for part in mac.replace("-", ":").split(":"))
        return self.string(":".join(f"{b:02x}" for b in bytes(mac)))

    def time(self, t: datetime, fmt: str = TIME_FORMAT_UNIX) -> bytes:
        """Write t as a Unix number or as a formatted string.

        The formats are the Unix constants of this module, RFC3339,
        RFC3339_NANO, or any strftime pattern.
        """
        if fmt == TIME_FORMAT_UNIX:
            return self.integer(_unix_micros(t)[0])
        if fmt == TIME_FORMAT_UNIX_MS:
            return self.integer(_truncating_div(_unix_micros(t)[1], 1000))
        if fmt == TIME_FORMAT_UNIX_MICRO:
            return self.integer(_unix_micros(t)[1])
        if fmt == RFC3339:
            return self.string(_rfc3339(t, with_fraction=False))
        if fmt == RFC3339_NANO:
            return self.string(_rfc3339(t, with_fraction=True))
        return self.string(t.strftime(fmt))

    def times(self, vals: Iterable[datetime], fmt: str = TIME_FORMAT_UNIX) -> bytes:
        return self._array(vals, lambda t: self.time(t, fmt))

    def duration(self, d, unit, use_int: bool) -> bytes:
        """Write d counted in unit, as an integer or as a float."""
        d_ns, unit_ns = _nanoseconds(d), _nanoseconds(unit)
        if unit_ns == 0:
            raise ZeroDivisionError("duration unit must not be zero")
        if use_int:
            return self.integer(_truncating_div(d_ns, unit_ns))
        return self.float64(float(d_ns) / float(unit_ns))

    def durations(self, vals, unit, use_int: bool) -> bytes:
        return self._array(vals, lambda d: self.duration(d, unit, use_int))