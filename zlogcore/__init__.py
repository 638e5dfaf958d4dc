"""JSON and CBOR encoders for log fields, a CBOR-to-JSON decoder, levels, samplers and level-aware writers."""

__version__ = "0.1.0"

__all__ = [
    "cbor_encode",
    "cbor_decode",
    "json_encode",
    "levels",
    "sampling",
    "writers",
    "syslog",
]