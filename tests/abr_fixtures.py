"""Builders for synthetic ABR byte streams."""
import struct


def packbits(data: bytes) -> bytes:
    """PackBits encoder; runs of 2+ equal bytes become repeat packets"""
    result = bytearray()
    length = len(data)
    i = 0
    while i < length:
        run = 1
        while i + run < length and run < 128 and data[i + run] == data[i]:
            run += 1
        if run >= 2:
            result += bytes((257 - run, data[i]))
            i += run
            continue
        j = i
        while j < length and j - i < 128 and not (j + 1 < length and data[j] == data[j + 1]):
            j += 1
        result.append(j - i - 1)
        result += data[i:j]
        i = j
    return bytes(result)


def rle_block(rows) -> bytes:
    packed = [packbits(row) for row in rows]
    counts = b"".join(struct.pack(">H", len(p)) for p in packed)
    return counts + b"".join(packed)


def legacy_record(version, rect, payload, compressed=False, ty=2, depth=8, name=""):
    top, left, bottom, right = rect
    body = struct.pack(">HIH", ty, 0, 25)
    if version == 2:
        body += struct.pack(">I", len(name)) + name.encode("utf-16-be")
    body += struct.pack(">B", 1)
    body += struct.pack(">4H", top, left, bottom, right)
    body += struct.pack(">4I", top, left, bottom, right)
    body += struct.pack(">HB", depth, 1 if compressed else 0)
    body += payload
    return struct.pack(">H", len(body)) + body


def abr12_file(version, records, count=None):
    if count is None:
        count = len(records)
    return struct.pack(">HH", version, count) + b"".join(records)


def abr6_record(subversion, rect, payload, compressed=False, depth=8):
    skip = 47 if subversion == 1 else 301
    body = b"\xAA" * skip
    body += struct.pack(">4I", *rect)
    body += struct.pack(">HB", depth, 1 if compressed else 0)
    body += payload
    return struct.pack(">I", len(body)) + body + b"\0" * (-len(body) % 4)


def block(key: bytes, data: bytes, sig=b"8BIM") -> bytes:
    return sig + key + struct.pack(">I", len(data)) + data


def abr6_blocks(records, leading=(), samp_len=None):
    samp = b"".join(records)
    if samp_len is None:
        samp_len = len(samp)
    out = b"".join(block(key, data) for key, data in leading)
    return out + b"8BIM" + b"samp" + struct.pack(">I", samp_len) + samp


def abr6_file(subversion, records, leading=()):
    return struct.pack(">HH", 6, subversion) + abr6_blocks(records, leading)
