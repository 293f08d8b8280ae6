"""Error types raised by the mask codec."""


class NiftiMaskError(Exception):
    """Base class for all codec errors surfaced to callers."""


class FormatError(NiftiMaskError):
    """Malformed or unsupported NIfTI data.

    Attributes:
        reason: Short description of the violated rule.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class CompressionError(NiftiMaskError):
    """Gzip magic present but the stream is corrupt or truncated."""


class SerializationError(NiftiMaskError):
    """Mask and layout do not agree at export time."""


class SessionError(NiftiMaskError):
    """Operation requires a loaded volume."""
