import argparse
import os
import sys
from dataclasses import dataclass

import numpy as np
from PIL import Image

from abr_brushes import LEGACY_VERSIONS, open_abr12, open_abr6
from abr_errors import AbrError, TruncatedBrush, TruncatedFile, UnsupportedVersion
from abr_stream import AbrStreamReader

# ==============================================================================
# 1. 文件头分派 (File Header Dispatch)
# ==============================================================================

@dataclass(frozen=True)
class AbrHeader:
    version: int
    # Brush count for v1/v2, subversion for v6
    count_or_subversion: int


def read_header(reader):
    try:
        version = reader.read_u2("Major Ver")
        minor = reader.read_u2("Minor Ver")
    except TruncatedBrush as e:
        raise TruncatedFile(f"File too short for an ABR header: {e}") from e
    return AbrHeader(version, minor)


def open_abr(stream, verbose=False):
    """Reads the ABR header from ``stream`` and returns ``(header, decoder)``."""
    reader = AbrStreamReader(stream, verbose=verbose)
    header = read_header(reader)
    if header.version in LEGACY_VERSIONS:
        return header, open_abr12(reader, header.version, header.count_or_subversion)
    if header.version == 6:
        return header, open_abr6(reader, header.count_or_subversion)
    raise UnsupportedVersion(header.version)


# ==============================================================================
# 2. 图像输出 (Image Output)
# ==============================================================================

def brush_to_array(brush):
    """[Algorithm] Row-major 8-bit samples -> (h, w) array"""
    return np.frombuffer(brush.data, dtype='>u1').reshape((brush.height, brush.width))


def save_brush(brush, path):
    if brush.width == 0 or brush.height == 0:
        raise ValueError(f"Empty brush ({brush.width}x{brush.height}) can't be saved")
    img = Image.fromarray(brush_to_array(brush))
    img.save(path, format="PNG")


def save_brushes(decoder, out_dir="output"):
    """
    Drains ``decoder`` into ``out_dir/brush_{idx}.png``.
    Returns ``(saved, failed)`` counts.
    """
    if not os.path.exists(out_dir): os.makedirs(out_dir)
    saved = 0
    failed = 0
    idx = 0
    while True:
        try:
            brush = decoder.next_brush()
        except (AbrError, OSError) as e:
            print(f"    [Err] Brush #{idx}: {e}")
            failed += 1
            idx += 1
            continue
        if brush is None:
            break

        fname = os.path.join(out_dir, f"brush_{idx}.png")
        try:
            save_brush(brush, fname)
            print(f"    [Info] Brush #{idx}: {brush.width}x{brush.height} -> {fname}")
            saved += 1
        except (ValueError, OSError) as e:
            print(f"    [Err] Saving {fname}: {e}")
            failed += 1
        idx += 1
    return saved, failed


# ==============================================================================
# 3. 命令行 (Command Line)
# ==============================================================================

def make_parser():
    parser = argparse.ArgumentParser(
        prog="abr2png",
        description="Extract the sampled brushes of an ABR file as PNG images.",
    )
    parser.add_argument("input", metavar="INPUT", help="ABR file to read")
    parser.add_argument("-o", "--output", metavar="DIR",
                        help="set output directory (will be created)")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="print every field as it is read")
    return parser


def guess_output_dir(input_path):
    """mybrushes.abr => ./mybrushes"""
    stem = os.path.splitext(os.path.basename(input_path))[0]
    return stem or None


def main(argv=None):
    args = make_parser().parse_args(argv)

    out_dir = args.output or guess_output_dir(args.input)
    if not out_dir:
        print(f"[Err] Couldn't guess an output directory from '{args.input}', use -o DIR")
        return 1

    print(f"\n{'='*80}\nStart Parsing: {args.input}\n{'='*80}\n")
    try:
        with open(args.input, 'rb') as f:
            header, decoder = open_abr(f, verbose=args.verbose)
            print(f"[Info] ABR version: {header.version}, count/subversion: {header.count_or_subversion}")
            saved, failed = save_brushes(decoder, out_dir)
    except (AbrError, OSError) as e:
        print(f"[Err] Failed to read {args.input}: {e}")
        return 1

    print(f"\n{'='*80}")
    if failed:
        print(f"[Warn] Saved {saved} brushes to {out_dir}, {failed} failed")
        return 1
    print(f"[Success] Saved {saved} brushes to {out_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
