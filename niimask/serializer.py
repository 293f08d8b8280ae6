"""Rebuild a NIfTI-1 file with the mask burned into the image."""

import logging
import re
from typing import Optional

import numpy as np

import config
from .errors import SerializationError
from .gzip_codec import compress
from .header import DIM_OFFSET, NiftiHeader
from .layout import compute_layout

logger = logging.getLogger(__name__)

_NIFTI_SUFFIX = re.compile(r"\.nii(\.gz)?$", re.IGNORECASE)


def _fill_value(dtype: np.dtype, value: float):
    """Clip value into the representable range of dtype."""
    if dtype.kind in "iu":
        info = np.iinfo(dtype)
        return int(min(max(value, info.min), info.max))
    return float(value)


def _header_bytes(original_bytes: bytes, header: NiftiHeader) -> bytes:
    """Header region to emit.

    3D input is passed through verbatim. For a time series only one phase is
    written, so dim[0] becomes 3 and dim[4..7] become 1.
    """
    head = bytes(original_bytes[:header.vox_offset])
    if header.dim[0] < 4:
        return head

    dim = list(header.dim)
    dim[0] = 3
    for i in range(4, 8):
        dim[i] = 1
    packed = np.array(dim, dtype=np.dtype("i2").newbyteorder(header.byte_order)).tobytes()
    return head[:DIM_OFFSET] + packed + head[DIM_OFFSET + len(packed):]


def build_nifti(
    original_bytes: bytes,
    header: NiftiHeader,
    image: bytes,
    mask: np.ndarray,
    compress_output: bool = False,
    phase_index: int = 0,
    fill_value: float = config.MASK_FILL_VALUE,
) -> bytes:
    """Build a single-file NIfTI-1 with masked voxels overwritten.

    Voxels where mask is 1 are set to fill_value (clipped to the voxel type);
    all other voxels are copied unchanged from the selected phase.

    Args:
        original_bytes: Decompressed bytes of the source file
        header: Header parsed from original_bytes
        image: Voxel payload of the source file
        mask: Flat 3D mask of layout.total_voxels bytes
        compress_output: Gzip the result
        phase_index: Time point to export for 4D input
        fill_value: Intensity written into masked voxels

    Returns:
        Bytes of the rebuilt file

    Raises:
        SerializationError: If mask or phase_index do not match the layout,
            or the buffers are shorter than the header requires
    """
    layout = compute_layout(header)
    mask = np.asarray(mask)

    if mask.size != layout.total_voxels:
        raise SerializationError(
            f"Mask has {mask.size} voxels, volume has {layout.total_voxels}"
        )
    if not 0 <= phase_index < layout.nt:
        raise SerializationError(f"Phase index {phase_index} out of range [0, {layout.nt})")
    if len(original_bytes) < header.vox_offset:
        raise SerializationError(
            f"Original data shorter than vox_offset ({len(original_bytes)} < {header.vox_offset})"
        )
    if len(image) < layout.phase_bytes * layout.nt:
        raise SerializationError(
            f"Image buffer has {len(image)} bytes, layout needs {layout.phase_bytes * layout.nt}"
        )

    dtype = header.numpy_dtype
    voxels = np.frombuffer(
        image,
        dtype=dtype,
        count=layout.total_voxels,
        offset=phase_index * layout.phase_bytes,
    ).copy()
    voxels[mask.reshape(-1) != 0] = _fill_value(dtype, fill_value)

    out = _header_bytes(original_bytes, header) + voxels.tobytes()
    logger.info(
        "Built NIfTI of %d bytes (phase %d/%d, %d masked voxels)",
        len(out), phase_index, layout.nt, int(np.count_nonzero(mask)),
    )

    if compress_output:
        return compress(out)
    return out


def masked_filename(name: Optional[str], compressed: bool) -> str:
    """Suggested download name: ``<stem>_masked.nii`` or ``.nii.gz``."""
    ext = ".nii.gz" if compressed else ".nii"
    if not name:
        return config.DEFAULT_EXPORT_STEM + ext
    return _NIFTI_SUFFIX.sub("", name) + config.MASKED_SUFFIX + ext
