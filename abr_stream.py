import io
import struct

from abr_errors import TruncatedBrush

# ==============================================================================
# 流式读取器 (Stream Reader) - Seekable, big-endian
# ==============================================================================

class AbrStreamReader:
    """
    Big-endian field reader over a seekable binary stream.

    The reader never buffers: every read goes straight to the underlying
    stream, so ``tell()`` is always the absolute offset of the next field.
    With ``verbose`` set, each field is printed as ``[offset] name : value``.
    """

    def __init__(self, stream, verbose=False):
        self.stream = stream
        self.verbose = verbose
        self.indent_level = 0
        self.indent_str = "    "

    def indent(self): self.indent_level += 1
    def dedent(self):
        if self.indent_level > 0: self.indent_level -= 1

    def tell(self):
        return self.stream.tell()

    def seek(self, offset):
        self.stream.seek(offset, io.SEEK_SET)

    def _log(self, size, name, value_repr):
        if not self.verbose: return
        prefix = self.indent_str * self.indent_level
        print(f"[0x{self.tell()-size:08X}] {prefix}{name:<25} : {value_repr}")

    def read_exact(self, length, name="Bytes"):
        raw = self.stream.read(length)
        if len(raw) != length:
            raise TruncatedBrush(f"EOF reading {name}: wanted {length} bytes, got {len(raw)}")
        if self.verbose:
            disp = raw[:16].hex()
            if len(raw) > 16: disp += "..."
            self._log(length, name, f"Size:{length} [{disp}]")
        return raw

    def _unpack(self, fmt, name):
        size = struct.calcsize(fmt)
        raw = self.stream.read(size)
        if len(raw) != size:
            raise TruncatedBrush(f"EOF reading {name}")
        val = struct.unpack(fmt, raw)[0]
        self._log(size, name, f"{val}")
        return val

    def read_u1(self, name="Uint8"):
        return self._unpack('>B', name)

    def read_u2(self, name="Uint16"):
        return self._unpack('>H', name)

    def read_u4(self, name="Uint32"):
        return self._unpack('>I', name)

    def read_ostype(self, name="OSType"):
        raw = self.stream.read(4)
        if len(raw) != 4:
            raise TruncatedBrush(f"EOF reading {name}")
        if all(32 <= c <= 126 for c in raw):
            self._log(4, name, f"'{raw.decode('ascii')}'")
        else:
            self._log(4, name, f"Hex:{raw.hex()}")
        return raw

    def skip(self, length, name="Skipped"):
        self.stream.seek(length, io.SEEK_CUR)
        self._log(length, name, f"Jump {length} bytes (Ignored)")
