"""Exceptions raised while decoding ABR brush libraries."""


class AbrError(Exception):
    """Base class for every ABR decoding failure"""


# ==============================================================================
# 1. Open errors (no decoder is produced)
# ==============================================================================

class OpenError(AbrError):
    pass


class UnsupportedVersion(OpenError):
    def __init__(self, version, subversion=None):
        self.version = version
        self.subversion = subversion
        if subversion is None:
            msg = f"Unsupported ABR version: {version}"
        else:
            msg = f"Unsupported ABR v{version} subversion: {subversion}"
        super().__init__(msg)


class SampleSectionNotFound(OpenError):
    def __init__(self):
        super().__init__("Found '8bim' block before the 'samp' section; file has no brushes")


class TruncatedFile(OpenError, EOFError):
    pass


# ==============================================================================
# 2. Brush errors (local to one brush unless raised while locating the next one)
# ==============================================================================

class BrushError(AbrError):
    pass


class UnsupportedBrushType(BrushError):
    def __init__(self, ty):
        self.ty = ty
        super().__init__(f"Unsupported brush type: {ty}")


class UnsupportedBitDepth(BrushError):
    def __init__(self, depth):
        self.depth = depth
        super().__init__(f"Unsupported bit depth: {depth}")


class InvalidBounds(BrushError):
    def __init__(self, top, left, bottom, right):
        self.rect = (top, left, bottom, right)
        super().__init__(f"Invalid brush bounds: Rect:({left},{top},{right},{bottom})")


class RleError(BrushError):
    pass


class TruncatedBrush(BrushError, EOFError):
    pass
