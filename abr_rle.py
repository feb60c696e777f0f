"""
PackBits decompression for ABR brush samples.

A compressed sample starts with a table of big-endian u16 byte counts, one per
scanline, followed by the packed scanlines themselves. Each scanline is a
sequence of packets led by a signed control byte:

- 0..127: copy the next (n+1) literal bytes
- -127..-1: repeat the next byte (1-n) times
- -128: no-op
"""
import numpy as np

from abr_errors import RleError, TruncatedBrush


def decode_packbits_row(row_data):
    """[Algorithm] 基础 PackBits 解码 (one scanline)"""
    ptr = 0
    row_len = len(row_data)
    out = bytearray()

    while ptr < row_len:
        n = row_data[ptr]
        ptr += 1
        if n < 128: # Literal
            count = n + 1
            if ptr + count > row_len:
                raise RleError(f"Literal run of {count} overruns scanline ({row_len - ptr} bytes left)")
            out += row_data[ptr : ptr + count]
            ptr += count
        elif n > 128: # Repeat
            count = 257 - n
            if ptr >= row_len:
                raise RleError("Repeat run is missing its value byte")
            out += row_data[ptr : ptr + 1] * count
            ptr += 1
    return out


def read_rle_data(reader, height, size, end=None):
    """
    Reads ``height`` packed scanlines from ``reader`` and returns exactly
    ``size`` bytes of pixel data. With ``end`` given, nothing is read past
    that absolute offset.
    """
    if end is not None and reader.tell() + height * 2 > end:
        raise RleError(f"Line count table for {height} scanlines runs past the record end (0x{end:08X})")
    try:
        table = reader.read_exact(height * 2, "RLE.LineCounts")
        line_byte_counts = np.frombuffer(table, dtype='>u2')

        result = bytearray()
        for i, byte_cnt in enumerate(line_byte_counts):
            if end is not None and reader.tell() + int(byte_cnt) > end:
                raise RleError(f"Scanline {i} of {byte_cnt} bytes runs past the record end (0x{end:08X})")
            row = reader.read_exact(int(byte_cnt), f"RLE.Line[{i}]")
            result += decode_packbits_row(row)
            if len(result) > size:
                raise RleError(f"Expected {size} bytes but scanline {i} overflowed to {len(result)} bytes")
    except TruncatedBrush as e:
        raise RleError(f"Compressed data truncated: {e}") from e

    if len(result) != size:
        raise RleError(f"Expected {size} bytes but decoded {len(result)} bytes")
    return bytes(result)
