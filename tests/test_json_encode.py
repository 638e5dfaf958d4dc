import itertools
import math
from datetime import datetime, timedelta, timezone

import pytest

from zlogcore.json_encode import (
    RFC3339,
    RFC3339_NANO,
    TIME_FORMAT_UNIX,
    TIME_FORMAT_UNIX_MS,
    JsonEncoder,
)

enc = JsonEncoder()

ENCODE_STRING_TESTS = [
    (b"", '""'),
    (b"\\", r'"\\"'),
    (b"\x00", r'"\u0000"'),
    (b"\x01", r'"\u0001"'),
    (b"\x02", r'"\u0002"'),
    (b"\x03", r'"\u0003"'),
    (b"\x04", r'"\u0004"'),
    (b"\x05", r'"\u0005"'),
    (b"\x06", r'"\u0006"'),
    (b"\x07", r'"\u0007"'),
    (b"\x08", r'"\b"'),
    (b"\x09", r'"\t"'),
    (b"\x0a", r'"\n"'),
    (b"\x0b", r'"\u000b"'),
    (b"\x0c", r'"\f"'),
    (b"\x0d", r'"\r"'),
    (b"\x0e", r'"\u000e"'),
    (b"\x0f", r'"\u000f"'),
    (b"\x10", r'"\u0010"'),
    (b"\x11", r'"\u0011"'),
    (b"\x12", r'"\u0012"'),
    (b"\x13", r'"\u0013"'),
    (b"\x14", r'"\u0014"'),
    (b"\x15", r'"\u0015"'),
    (b"\x16", r'"\u0016"'),
    (b"\x17", r'"\u0017"'),
    (b"\x18", r'"\u0018"'),
    (b"\x19", r'"\u0019"'),
    (b"\x1a", r'"\u001a"'),
    (b"\x1b", r'"\u001b"'),
    (b"\x1c", r'"\u001c"'),
    (b"\x1d", r'"\u001d"'),
    (b"\x1e", r'"\u001e"'),
    (b"\x1f", r'"\u001f"'),
    ("✭".encode(), '"✭"'),
    (b"foo\xc2\x7fbar", r'"foo\ufffd\u007fbar"'),
    (b"ascii", '"ascii"'),
    (b'"a', r'"\"a"'),
    (b"\x1fa", r'"\u001fa"'),
    (b'foo"bar"baz', r'"foo\"bar\"baz"'),
    (b"\x1ffoo\x1fbar\x1fbaz", r'"\u001ffoo\u001fbar\u001fbaz"'),
    ("emoji \u2764\ufe0f!".encode(), '"emoji ❤️!"'),
]


@pytest.mark.parametrize("raw, want", ENCODE_STRING_TESTS)
def test_string(raw, want):
    assert enc.string(raw.decode("utf-8", "surrogateescape")) == want.encode("utf-8")


@pytest.mark.parametrize("raw, want", ENCODE_STRING_TESTS)
def test_byte_string(raw, want):
    assert enc.byte_string(raw) == want.encode("utf-8")


@pytest.mark.parametrize(
    "value, want",
    [(0x00, b'"00"'), (0x0F, b'"0f"'), (0x10, b'"10"'), (0xF0, b'"f0"'), (0xFF, b'"ff"')],
)
def test_hex_bytes(value, want):
    assert enc.hex_bytes(bytes([value])) == want


def test_string_and_bytes_encode_alike():
    text = "".join(map(chr, itertools.chain(range(0xD800), range(0xE000, 0x110000))))
    raw = text.encode("utf-8") + b"\xff\xff\xffhello"
    from_text = enc.string(raw.decode("utf-8", "surrogateescape"))
    from_bytes = enc.byte_string(raw)
    assert from_text == from_bytes
    assert from_bytes.endswith(b'\\ufffd\\ufffd\\ufffdhello"')


@pytest.mark.parametrize(
    "value, want",
    [
        (127, b"127"),
        (32767, b"32767"),
        (2147483647, b"2147483647"),
        (9223372036854775807, b"9223372036854775807"),
        (255, b"255"),
        (65535, b"65535"),
        (4294967295, b"4294967295"),
        (18446744073709551615, b"18446744073709551615"),
    ],
)
def test_integer_limits(value, want):
    assert enc.integer(value) == want


@pytest.mark.parametrize(
    "value, want",
    [
        (-math.inf, b'"-Inf"'),
        (math.inf, b'"+Inf"'),
        (math.nan, b'"NaN"'),
        (0.0, b"0"),
        (-1.1, b"-1.1"),
        (1e20, b"100000000000000000000"),
        (1e21, b"1000000000000000000000"),
    ],
)
def test_float32(value, want):
    assert enc.float32(value) == want


@pytest.mark.parametrize(
    "value, want",
    [
        (-math.inf, b'"-Inf"'),
        (math.inf, b'"+Inf"'),
        (math.nan, b'"NaN"'),
        (0.0, b"0"),
        (-1.1, b"-1.1"),
        (1e20, b"100000000000000000000"),
        (1e21, b"1000000000000000000000"),
    ],
)
def test_float64(value, want):
    assert enc.float64(value) == want


def test_float_field_values():
    assert enc.float32(11.1234) == b"11.1234"
    assert enc.float32(11.101) == b"11.101"
    assert enc.float64(12.321321321) == b"12.321321321"
    assert enc.float64(12.30303) == b"12.30303"


@pytest.mark.parametrize(
    "mac, want",
    [
        ("01:23:45:67:89:ab", b'"01:23:45:67:89:ab"'),
        ("cd:ef:11:22:33:44", b'"cd:ef:11:22:33:44"'),
        (bytes([0x12, 0x34, 0x56, 0x78, 0x90, 0xAB]), b'"12:34:56:78:90:ab"'),
        (bytes([0x12, 0x34, 0x00, 0x00, 0x90, 0xAB]), b'"12:34:00:00:90:ab"'),
    ],
)
def test_mac_addr(mac, want):
    assert enc.mac_addr(mac) == want


@pytest.mark.parametrize(
    "ip, want",
    [
        (bytes([0, 0, 0, 0]), b'"0.0.0.0"'),
        (bytes([192, 0, 2, 200]), b'"192.0.2.200"'),
        (bytes(16), b'"::"'),
        ("ff02::1", b'"ff02::1"'),
        (
            bytes([0x20, 0x01, 0x0D, 0xB8, 0x85, 0xA3, 0, 0, 0, 0, 0x8A, 0x2E, 0x03, 0x70, 0x73, 0x34]),
            b'"2001:db8:85a3::8a2e:370:7334"',
        ),
    ],
)
def test_ip_addr(ip, want):
    assert enc.ip_addr(ip) == want


@pytest.mark.parametrize(
    "network, want",
    [
        ("0.0.0.0/0", b'"0.0.0.0/0"'),
        ("192.0.2.200/24", b'"192.0.2.200/24"'),
        ("::/0", b'"::/0"'),
        ("ff02::1/128", b'"ff02::1/128"'),
        ("2001:db8:85a3::8a2e:370:7334/64", b'"2001:db8:85a3::8a2e:370:7334/64"'),
    ],
)
def test_ip_prefix(network, want):
    assert enc.ip_prefix(network) == want


@pytest.mark.parametrize(
    "dst, obj, want",
    [
        (b"", b'{"foo":"bar"}', b'"foo":"bar"}'),
        (b'{"qux":"quz"', b'{"foo":"bar"}', b'{"qux":"quz","foo":"bar"}'),
        (b"", b'"foo":"bar"', b'"foo":"bar"'),
        (b'{"qux":"quz"', b'"foo":"bar"', b'{"qux":"quz","foo":"bar"'),
    ],
)
def test_object_data(dst, obj, want):
    assert enc.object_data(dst, obj) == want


def test_key():
    assert enc.key(b"{", "foo") == b'{"foo":'
    assert enc.key(b'{"a":1', "b") == b'{"a":1,"b":'


def test_markers_and_delimiters():
    assert enc.begin_marker() + enc.end_marker() == b"{}"
    assert enc.array_start() + enc.array_end() == b"[]"
    assert enc.array_delim(b"") == b""
    assert enc.array_delim(b"[1") == b"[1,"
    assert enc.line_break() == b"\n"
    assert enc.nil() == b"null"


def test_arrays():
    assert enc.strings([]) == b"[]"
    assert enc.strings(["foo", "bar"]) == b'["foo","bar"]'
    assert enc.booleans([True, False]) == b"[true,false]"
    assert enc.integers([1, 0]) == b"[1,0]"
    assert enc.floats32([11, 0]) == b"[11,0]"
    assert enc.floats64([12, 0]) == b"[12,0]"
    assert enc.integers([]) == b"[]"


def test_any_value():
    assert enc.any_value({"some": "json"}) == b'{"some":"json"}'
    assert enc.any_value(object()).startswith(b'"marshaling error: ')


def test_time_unix_formats():
    t = datetime(2008, 1, 8, 17, 5, 5, tzinfo=timezone.utc)
    assert enc.time(t, TIME_FORMAT_UNIX) == b"1199811905"
    assert enc.time(t, TIME_FORMAT_UNIX_MS) == b"1199811905000"


def test_time_rfc3339():
    assert enc.time(datetime(1, 1, 1), RFC3339) == b'"0001-01-01T00:00:00Z"'
    t = datetime(2001, 2, 3, 4, 5, 6, 1, tzinfo=timezone.utc)
    assert enc.time(t, RFC3339) == b'"2001-02-03T04:05:06Z"'
    assert enc.time(t, RFC3339_NANO) == b'"2001-02-03T04:05:06.000001Z"'


def test_times():
    zero = datetime(1, 1, 1)
    assert enc.times([], RFC3339) == b"[]"
    assert enc.times([zero, zero], RFC3339) == b'["0001-01-01T00:00:00Z","0001-01-01T00:00:00Z"]'


def test_durations():
    ms = timedelta(milliseconds=1)
    assert enc.duration(timedelta(seconds=1), ms, True) == b"1000"
    assert enc.duration(timedelta(seconds=1, milliseconds=500), timedelta(seconds=1), False) == b"1.5"
    assert enc.durations([], ms, True) == b"[]"
    assert enc.durations([timedelta(seconds=1), timedelta(0)], ms, True) == b"[1000,0]"
    with pytest.raises(ZeroDivisionError):
        enc.duration(timedelta(seconds=1), 0, True)