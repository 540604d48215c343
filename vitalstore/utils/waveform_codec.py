"""
Compact binary encoding for ECG waveforms.

Layout (little endian):
    byte 0      format version (1)
    byte 1      sample width in bytes (2 or 4)
    bytes 2-5   sample count, uint32
    bytes 6..   samples, signed ints of the given width
"""

import struct
from typing import Iterable, List, Optional

from vitalstore.exceptions.errors import SampleValidationError

FORMAT_VERSION = 1
HEADER = struct.Struct("<BBI")

_INT16_MIN, _INT16_MAX = -(2 ** 15), 2 ** 15 - 1
_INT32_MIN, _INT32_MAX = -(2 ** 31), 2 ** 31 - 1
_SAMPLE_CODES = {2: "h", 4: "i"}


def encode_waveform(samples: Iterable[int]) -> bytes:
    values = list(samples)
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int):
            raise SampleValidationError(f"Waveform samples must be integers, got {value!r}")
        if value < _INT32_MIN or value > _INT32_MAX:
            raise SampleValidationError(f"Waveform sample out of range: {value}")

    width = 2 if all(_INT16_MIN <= v <= _INT16_MAX for v in values) else 4
    body = struct.pack(f"<{len(values)}{_SAMPLE_CODES[width]}", *values)
    return HEADER.pack(FORMAT_VERSION, width, len(values)) + body


def decode_waveform(blob: Optional[bytes]) -> List[int]:
    if not blob:
        return []
    if len(blob) < HEADER.size:
        raise SampleValidationError("Waveform blob is truncated")

    version, width, count = HEADER.unpack_from(blob)
    if version != FORMAT_VERSION:
        raise SampleValidationError(f"Unsupported waveform format version {version}")
    if width not in _SAMPLE_CODES:
        raise SampleValidationError(f"Unsupported waveform sample width {width}")
    if len(blob) != HEADER.size + count * width:
        raise SampleValidationError(
            f"Waveform blob length {len(blob)} does not match {count} samples of {width} bytes"
        )

    return list(struct.unpack_from(f"<{count}{_SAMPLE_CODES[width]}", blob, HEADER.size))


def waveform_sample_count(blob: Optional[bytes]) -> int:
    """Read the sample count from the header without decoding the body."""
    if not blob or len(blob) < HEADER.size:
        return 0
    return HEADER.unpack_from(blob)[2]
