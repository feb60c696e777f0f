import enum
from dataclasses import dataclass

from abr_errors import (
    InvalidBounds, SampleSectionNotFound, TruncatedBrush,
    TruncatedFile, UnsupportedBitDepth, UnsupportedBrushType, UnsupportedVersion,
)
from abr_rle import read_rle_data
from abr_stream import AbrStreamReader

# ==============================================================================
# 1. 基础定义 (Records & Constants)
# ==============================================================================

SAMPLED_BRUSH_TYPE = 2
SUPPORTED_DEPTH = 8

LEGACY_VERSIONS = (1, 2)
# Bytes between an ABR6 record's length field and its bounds, per subversion
ABR6_HEADER_SKIP = {1: 47, 2: 301}

SIG_NO_SAMPLES = b'8bim'
KEY_SAMPLES = b'samp'


@dataclass(frozen=True)
class BrushRecord:
    """A decoded raster brush: row-major samples, ``depth`` bits each"""
    width: int
    height: int
    depth: int
    data: bytes


class LegacyBrush(BrushRecord):
    pass


class SampleBrush(BrushRecord):
    pass


class DecoderState(enum.Enum):
    ACTIVE = "active"
    EXHAUSTED = "exhausted"


def align_up(n: int, to: int) -> int:
    return (n + to - 1) // to * to


def brush_dimensions(top, left, bottom, right):
    if bottom < top or right < left:
        raise InvalidBounds(top, left, bottom, right)
    return right - left, bottom - top


def read_pixel_data(reader, width, height, depth, compressed, record_end) -> bytes:
    size = width * height * (depth >> 3)
    if compressed:
        return read_rle_data(reader, height, size, end=record_end)
    if reader.tell() + size > record_end:
        raise TruncatedBrush(f"Image Data of {size} bytes runs past the record end (0x{record_end:08X})")
    return reader.read_exact(size, "Image Data")


# ==============================================================================
# 2. 记录布局 (Record Layouts)
# ==============================================================================

class RecordLayout:
    """
    Describes one generation's brush record: how its length prefix is stored,
    what boundary the following record is aligned to, and how the body reads.
    """
    alignment = 1

    def read_length(self, reader: AbrStreamReader) -> int:
        raise NotImplementedError

    def read_body(self, reader: AbrStreamReader, record_end: int) -> BrushRecord:
        raise NotImplementedError


class Abr12Layout(RecordLayout):
    def __init__(self, version: int):
        self.version = version

    def read_length(self, reader):
        return reader.read_u2("Brush Length")

    def read_body(self, reader, record_end):
        ty = reader.read_u2("Brush Type")
        if ty != SAMPLED_BRUSH_TYPE:
            raise UnsupportedBrushType(ty)

        reader.read_u4("Misc")
        reader.read_u2("Spacing")

        if self.version == 2:
            # UCS-2 sample name, length counted in characters
            char_len = reader.read_u4("Name.CharLen")
            reader.skip(char_len * 2, "Name.Val")

        reader.read_u1("Antialiasing")

        top = reader.read_u2("Rect.Top")
        left = reader.read_u2("Rect.Left")
        bottom = reader.read_u2("Rect.Bottom")
        right = reader.read_u2("Rect.Right")

        # Long bounds repeat the rect above; the short ones are used.
        reader.read_u4("RectL.Top")
        reader.read_u4("RectL.Left")
        reader.read_u4("RectL.Bottom")
        reader.read_u4("RectL.Right")

        depth = reader.read_u2("Depth")
        if depth != SUPPORTED_DEPTH:
            raise UnsupportedBitDepth(depth)

        compressed = reader.read_u1("Compression") != 0

        width, height = brush_dimensions(top, left, bottom, right)
        data = read_pixel_data(reader, width, height, depth, compressed, record_end)
        return LegacyBrush(width=width, height=height, depth=depth, data=data)


class Abr6Layout(RecordLayout):
    alignment = 4

    def __init__(self, subversion: int):
        self.subversion = subversion
        self.header_skip = ABR6_HEADER_SKIP[subversion]

    def read_length(self, reader):
        return reader.read_u4("Item Length")

    def read_body(self, reader, record_end):
        reader.skip(self.header_skip, "Fixed Header")

        top = reader.read_u4("Rect.Top")
        left = reader.read_u4("Rect.Left")
        bottom = reader.read_u4("Rect.Bottom")
        right = reader.read_u4("Rect.Right")

        depth = reader.read_u2("Depth")
        if depth != SUPPORTED_DEPTH:
            raise UnsupportedBitDepth(depth)

        compressed = reader.read_u1("Compression") != 0

        width, height = brush_dimensions(top, left, bottom, right)
        data = read_pixel_data(reader, width, height, depth, compressed, record_end)
        return SampleBrush(width=width, height=height, depth=depth, data=data)


# ==============================================================================
# 3. 记录迭代器 (Length-prefixed Record Decoders)
# ==============================================================================

class RecordDecoder:
    """
    Walks length-prefixed brush records in a seekable stream.

    Every call locates the record after the current one before its body is
    parsed, so a broken body only costs that brush. If the length itself
    can't be read, the decoder moves to ``DecoderState.EXHAUSTED`` and the
    error propagates; every later call returns ``None``.
    """

    def __init__(self, reader: AbrStreamReader, layout: RecordLayout, first_brush_pos: int):
        self.reader = reader
        self.layout = layout
        # Alignment of later records is measured from the first one
        self.base_pos = first_brush_pos
        self.next_brush_pos = first_brush_pos
        self.state = DecoderState.ACTIVE

    def _has_next(self) -> bool:
        raise NotImplementedError

    def _record_started(self):
        pass

    def _on_exhausted(self):
        pass

    def exhaust(self):
        self.state = DecoderState.EXHAUSTED
        self._on_exhausted()

    def _locate_next(self):
        """Returns ``(record_end, next_brush_pos)`` for the record at next_brush_pos."""
        self.reader.seek(self.next_brush_pos)
        length = self.layout.read_length(self.reader)
        record_end = self.reader.tell() + length
        return record_end, self.base_pos + align_up(record_end - self.base_pos, self.layout.alignment)

    def next_brush(self):
        """Returns the next brush, or None once iteration is over.

        Raises BrushError (or OSError) for a brush that failed to decode.
        """
        if self.state is DecoderState.EXHAUSTED:
            return None
        if not self._has_next():
            self.exhaust()
            return None

        self._record_started()
        try:
            record_end, next_brush_pos = self._locate_next()
        except (TruncatedBrush, OSError):
            self.exhaust()
            raise
        self.next_brush_pos = next_brush_pos

        self.reader.indent()
        try:
            return self.layout.read_body(self.reader, record_end)
        finally:
            self.reader.dedent()

    def __iter__(self):
        return self

    def __next__(self):
        brush = self.next_brush()
        if brush is None:
            raise StopIteration
        return brush


class LegacyDecoder(RecordDecoder):
    """ABR v1/v2: a counted run of records with u16 length prefixes"""

    def __init__(self, reader, version, count):
        super().__init__(reader, Abr12Layout(version), reader.tell())
        self.version = version
        self.count = count

    def _has_next(self):
        return self.count > 0

    def _record_started(self):
        self.count -= 1

    def _on_exhausted(self):
        self.count = 0


class Abr6Decoder(RecordDecoder):
    """ABR v6: 4-byte aligned records with u32 length prefixes inside 'samp'"""

    def __init__(self, reader, subversion, sample_section_start, sample_section_end):
        super().__init__(reader, Abr6Layout(subversion), sample_section_start)
        self.subversion = subversion
        self.sample_section_end = sample_section_end

    def _has_next(self):
        return self.next_brush_pos < self.sample_section_end

    def _on_exhausted(self):
        self.next_brush_pos = self.sample_section_end


# ==============================================================================
# 4. 入口 (Entry Points)
# ==============================================================================

def _as_reader(source, verbose):
    if isinstance(source, AbrStreamReader):
        return source
    return AbrStreamReader(source, verbose=verbose)


def open_abr12(source, version, count, verbose=False) -> LegacyDecoder:
    """Opens a v1/v2 decoder on ``source``, positioned at the first brush."""
    if version not in LEGACY_VERSIONS:
        raise UnsupportedVersion(version)
    return LegacyDecoder(_as_reader(source, verbose), version, count)


def find_sample_section(reader):
    """
    Scans resource blocks up to the 'samp' block and returns
    ``(start, end)`` of its contents.
    """
    try:
        while True:
            sig = reader.read_ostype("Signature")
            if sig == SIG_NO_SAMPLES:
                raise SampleSectionNotFound()
            key = reader.read_ostype("Block Key")
            if key == KEY_SAMPLES:
                break
            length = reader.read_u4("Block Length")
            reader.skip(length, f"Ignored ({key.decode('latin1')})")
        length = reader.read_u4("Samp Length")
    except TruncatedBrush as e:
        raise TruncatedFile(f"No 'samp' section before end of file: {e}") from e
    start = reader.tell()
    return start, start + length


def open_abr6(source, subversion, verbose=False) -> Abr6Decoder:
    """Opens a v6 decoder on ``source``, positioned at the resource blocks."""
    if subversion not in ABR6_HEADER_SKIP:
        raise UnsupportedVersion(6, subversion)
    reader = _as_reader(source, verbose)
    start, end = find_sample_section(reader)
    return Abr6Decoder(reader, subversion, start, end)
