"""CBOR framing for records crossing the event stream."""

from __future__ import annotations

from typing import Any

import cbor2

MAX_FRAME_BYTES = 256 * 1024


def encode(obj: Any) -> bytes:
    return cbor2.dumps(obj)


def decode(data: bytes) -> Any:
    if len(data) > MAX_FRAME_BYTES:
        raise ValueError(f"frame too large: {len(data)} bytes")
    return cbor2.loads(data)
