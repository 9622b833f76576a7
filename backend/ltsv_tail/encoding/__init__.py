"""Point encoders for sinks that write text."""

from .jsonl import encode_json
from .line_protocol import encode_line_protocol

ENCODERS = {
    "json": encode_json,
    "influx": encode_line_protocol,
}

__all__ = [
    "ENCODERS",
    "encode_json",
    "encode_line_protocol",
]
