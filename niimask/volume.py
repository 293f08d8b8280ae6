"""Decoded NIfTI volume: header, voxel payload and geometry."""

import logging
from dataclasses import dataclass, field

from .gzip_codec import decompress
from .header import NiftiHeader, parse_header, read_image
from .layout import SliceLayout, compute_layout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NiftiVolume:
    """Lightweight wrapper for one parsed NIfTI file.

    The voxel payload is kept as opaque bytes; only its length and element
    size matter to the mask codec.
    """

    header: NiftiHeader
    image: bytes = field(repr=False)
    data: bytes = field(repr=False)
    layout: SliceLayout
    was_gzipped: bool = False

    @property
    def shape(self):
        """Spatial shape (nx, ny, nz)."""
        return self.header.shape

    @property
    def total_voxels(self) -> int:
        return self.layout.total_voxels


def load_volume(raw: bytes) -> NiftiVolume:
    """Run the decode pipeline: gunzip, parse header, slice payload, layout.

    Args:
        raw: File bytes as read from disk or storage (.nii or .nii.gz)

    Returns:
        NiftiVolume

    Raises:
        CompressionError: Corrupt gzip stream
        FormatError: Malformed or unsupported NIfTI content
    """
    data, was_gzipped = decompress(raw)
    header = parse_header(data)
    image = read_image(header, data)
    layout = compute_layout(header)
    logger.info(
        "Loaded NIfTI %dx%dx%d (nt=%d, datatype=%d, gzip=%s)",
        layout.nx, layout.ny, layout.nz, layout.nt, header.datatype, was_gzipped,
    )
    return NiftiVolume(
        header=header, image=image, data=data, layout=layout, was_gzipped=was_gzipped
    )
