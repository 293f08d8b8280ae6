"""Volumetric mask codec for NIfTI-1 files."""

from .errors import (
    NiftiMaskError,
    FormatError,
    CompressionError,
    SerializationError,
    SessionError,
)
from .gzip_codec import is_gzip, compress, decompress
from .header import NiftiHeader, parse_header, read_image
from .layout import SliceLayout, compute_layout
from .mask_store import MaskCache, create_mask, restore_mask, set_all
from .slice_codec import plane_view, voxel_indices, read_slice, write_slice
from .serializer import build_nifti, masked_filename
from .volume import NiftiVolume, load_volume
from .session import GenerationCounter, MaskFile, MaskingSession

__all__ = [
    "NiftiMaskError",
    "FormatError",
    "CompressionError",
    "SerializationError",
    "SessionError",
    "is_gzip",
    "compress",
    "decompress",
    "NiftiHeader",
    "parse_header",
    "read_image",
    "SliceLayout",
    "compute_layout",
    "MaskCache",
    "create_mask",
    "restore_mask",
    "set_all",
    "plane_view",
    "voxel_indices",
    "read_slice",
    "write_slice",
    "build_nifti",
    "masked_filename",
    "NiftiVolume",
    "load_volume",
    "GenerationCounter",
    "MaskFile",
    "MaskingSession",
]
