# zlogcore

This package provides the building blocks for structured logging. It has:

- encoders that write log fields as JSON text or as compact CBOR;
- a decoder that turns CBOR log records back into JSON lines;
- log levels;
- samplers that reduce the number of log events;
- writers that route each finished record according to its level.

The package needs only the standard library. It supports Python 3.10 and
later.

```
pip install zlogcore
```

## What the package does not do

The package has no logger object. It has no event builder, no global logger,
no hooks, no caller or stack-trace fields, and no command-line tool. To build
a record, you join encoder output yourself, as the examples below show. To
send the record, you pass it to a writer.

## Encoders

`zlogcore.json_encode.JsonEncoder` and `zlogcore.cbor_encode.CborEncoder`
have the same methods. Most methods return the encoded bytes for one value.
`key(dst, key)`, `object_data(dst, obj)` and `array_delim(dst)` are different:
they take the bytes built so far and return them with the new part added.

```python
from zlogcore.json_encode import JsonEncoder

enc = JsonEncoder()
rec = enc.begin_marker()
rec = enc.key(rec, "foo") + enc.string("bar")
rec = enc.key(rec, "n") + enc.integer(123)
rec += enc.end_marker() + enc.line_break()
# rec == b'{"foo":"bar","n":123}\n'
```

The encoders have these methods:

- single values: `string`, `byte_string`, `hex_bytes`, `nil`, `boolean`,
  `integer`, `float32`, `float64`, `any_value`, `ip_addr`, `ip_prefix`,
  `mac_addr`, `time` and `duration`;
- arrays of values: `strings`, `booleans`, `integers`, `floats32`,
  `floats64`, `times` and `durations`;
- structure: `begin_marker`, `end_marker`, `array_start`, `array_end`,
  `array_delim`, `line_break`, `key` and `object_data`.

### JSON output

- NaN and the infinities are written as the strings `"NaN"`, `"+Inf"` and
  `"-Inf"`.
- Floats are written in fixed notation, never with an exponent, using the
  shortest digits that read back to the same value.
- Each byte that is not valid UTF-8 is written as `\ufffd`.
- `any_value` serialises its argument with `json.dumps`. If that fails, it
  writes the string `"marshaling error: ..."` instead.
- `time(t, fmt)` writes a number or a string, depending on `fmt`:
  - `""` (`TIME_FORMAT_UNIX`): Unix seconds, as a number;
  - `TIME_FORMAT_UNIX_MS`: Unix milliseconds, as a number;
  - `TIME_FORMAT_UNIX_MICRO`: Unix microseconds, as a number;
  - `RFC3339` or `RFC3339_NANO`: an RFC 3339 string;
  - any other value: a `strftime` pattern, and the result is a string.

  A naive `datetime` is treated as UTC.
- `duration(d, unit, use_int)` writes `d` counted in units of `unit`, as an
  integer or as a float. Both `d` and `unit` may be a `timedelta` or a number
  of nanoseconds.

### CBOR output

The CBOR encoder writes binary data in the CBOR format (RFC 7049).

- Maps and arrays with no known length are written with an indefinite
  length.
- Timestamps use tag 1. A time with no fraction of a second is written as an
  integer. Any other time is written as a float, and the format argument is
  ignored.
- These values use their own tags: IP addresses and MAC addresses (tag 260),
  IP prefixes (tag 261), embedded JSON (tag 262) and hex strings (tag 263).

To build a tag header or a length header yourself, use
`encode_type_prefix(major, number)` and `embedded_json(data)`.

## Decoding CBOR records

`zlogcore.cbor_decode` converts CBOR records into JSON text:

```python
from zlogcore.cbor_encode import CborEncoder
from zlogcore.cbor_decode import decode_many

enc = CborEncoder()
rec = enc.key(b"", "foo") + enc.string("bar") + enc.end_marker()
decode_many(rec)  # b'{"foo":"bar"}\n'
```

- `decode_one(data)` decodes the first item. `decode_many(data)` decodes
  every item and writes one JSON line for each. Both accept bytes or a binary
  file object.
- On malformed input, both functions raise `CborDecodeError`, which is a
  subclass of `ValueError`. The exception's `partial` attribute holds the
  output produced before the error.
- `is_binary(data)` tells CBOR input from text. Input counts as CBOR when its
  first byte is above `0x7f`.
- `decode_if_binary_to_bytes(data)` and `decode_if_binary_to_string(data)`
  return text input unchanged. They decode CBOR input, and on an error they
  return the part that decoded without raising.
- `decode_object_to_str(data)` decodes one object.
- The module variable `decode_time_zone` sets the zone that decoded
  timestamps are shown in. When it is `None`, timestamps are shown in UTC.

## Levels

`zlogcore.levels.Level` is an `IntEnum` with these members: `TRACE`, `DEBUG`,
`INFO`, `WARN`, `ERROR`, `FATAL`, `PANIC`, `NO_LEVEL` and `DISABLED`.

`str(level)` gives the level's name, such as `"info"`. For `NO_LEVEL` the name
is the empty string.

`parse_level(text)` does the reverse. For an unknown name it raises
`ValueError`.

## Sampling

`zlogcore.sampling` provides these samplers. Each one has a `sample(level)`
method, which returns `True` when the event should be kept.

- `BasicSampler(n)` keeps the first event and then every n-th event after it.
- `RandomSampler(n)` keeps about one event in n, chosen at random. You may
  pass your own `random.Random` as the `rng` argument.
- `BurstSampler(burst, period, next_sampler)` lets `burst` events through in
  each period. After that, `next_sampler` decides, or the event is dropped if
  there is no `next_sampler`. The period may be a `timedelta` or a number of
  seconds.
- `LevelSampler` applies a separate sampler to each level, from trace to
  error. A level that has no sampler is always kept.

## Writers

A writer is any object with a `write(data)` method. A level writer also has
`write_level(level, data)`.

`zlogcore.writers` provides:

- `as_level_writer(writer)` wraps a plain writer so that it accepts
  `write_level`. A writer that already has `write_level` is returned
  unchanged. Passing `None` gives a writer that discards its input.
- `SyncWriter(writer)` guards every write with a lock.
- `MultiLevelWriter(*writers)` writes the same data to every writer. It tries
  every writer even when one of them fails, and then raises the first
  failure. If a writer reports that it wrote fewer bytes than it was given,
  the error raised is `ShortWriteError`.

`zlogcore.syslog.SyslogLevelWriter(writer)` passes each record to the syslog
method that matches its level, as follows:

| Level | Method |
| --- | --- |
| debug | `debug` |
| info and no level | `info` |
| warn | `warning` |
| error | `err` |
| fatal | `emerg` |
| panic | `crit` |
| trace | none: the record is dropped |

`syslog_cee_writer(writer)` does the same, and puts the `@cee:` prefix in
front of each record.

## Running the tests

```
pip install -e .[test]
pytest
```