"""NIfTI-1 header decoding.

The 348-byte header is decoded with nibabel's ``Nifti1Header``. Only the
fields the codec needs are lifted into ``NiftiHeader``; everything before
``vox_offset`` (including reserved fields and extensions) is kept verbatim in
``NiftiHeader.raw``.
"""

import io
from dataclasses import dataclass, field
from typing import Tuple

import numpy as np
from nibabel.nifti1 import Nifti1Header, data_type_codes, header_dtype

import config
from .errors import FormatError

DIM_OFFSET = header_dtype.fields["dim"][1]
MAGIC_OFFSET = header_dtype.fields["magic"][1]


@dataclass(frozen=True)
class NiftiHeader:
    """Decoded NIfTI-1 header.

    ``raw`` holds bytes ``[0, vox_offset)`` of the decoded file so the header
    can be written back without re-encoding any field.
    """

    sizeof_hdr: int
    dim: Tuple[int, ...]
    datatype: int
    bitpix: int
    pixdim: Tuple[float, ...]
    vox_offset: int
    scl_slope: float
    scl_inter: float
    cal_min: float
    cal_max: float
    magic: bytes
    byte_order: str = "<"
    raw: bytes = field(default=b"", repr=False)

    @property
    def shape(self) -> Tuple[int, int, int]:
        """Spatial extents (nx, ny, nz)."""
        return (self.dim[1], self.dim[2], self.dim[3])

    @property
    def bytes_per_voxel(self) -> int:
        return self.bitpix // 8

    @property
    def numpy_dtype(self) -> np.dtype:
        """Voxel element type in the file's byte order."""
        return data_type_codes.dtype[self.datatype].newbyteorder(self.byte_order)


def detect_byte_order(data: bytes) -> str:
    """Return '<' or '>' depending on which byte order gives sizeof_hdr == 348.

    Raises:
        FormatError: If neither byte order matches
    """
    head = bytes(data[:4])
    if int.from_bytes(head, "little") == config.NIFTI1_HEADER_SIZE:
        return "<"
    if int.from_bytes(head, "big") == config.NIFTI1_HEADER_SIZE:
        return ">"
    raise FormatError(f"sizeof_hdr is not {config.NIFTI1_HEADER_SIZE}")


def _check_dims(dim: Tuple[int, ...]) -> None:
    if not 1 <= dim[0] <= config.MAX_DIMENSIONS:
        raise FormatError(f"dim[0] out of range: {dim[0]}")
    for axis in (1, 2, 3):
        if dim[axis] <= 0:
            raise FormatError(f"Non-positive dimension dim[{axis}]={dim[axis]}")
    if dim[0] >= 4 and dim[4] <= 0:
        raise FormatError(f"Non-positive dimension dim[4]={dim[4]}")


def _check_datatype(hdr: Nifti1Header) -> None:
    datatype = int(hdr["datatype"])
    bitpix = int(hdr["bitpix"])
    if datatype not in config.SUPPORTED_DATATYPE_CODES:
        raise FormatError(f"Unsupported datatype: {datatype}")
    expected_bitpix = hdr.get_data_dtype().itemsize * 8
    if bitpix != expected_bitpix:
        raise FormatError(
            f"bitpix {bitpix} does not match datatype {datatype} "
            f"(expected {expected_bitpix})"
        )


def parse_header(data: bytes) -> NiftiHeader:
    """Decode and validate the NIfTI-1 header at the front of data.

    Args:
        data: Decompressed file bytes

    Returns:
        Immutable NiftiHeader

    Raises:
        FormatError: On a short buffer, bad magic, non-positive dimension,
            unsupported datatype/bitpix or invalid vox_offset
    """
    size = config.NIFTI1_HEADER_SIZE
    if len(data) < size:
        raise FormatError(f"Buffer too short for a NIfTI-1 header: {len(data)} < {size} bytes")

    byte_order = detect_byte_order(data)

    magic = bytes(data[MAGIC_OFFSET:MAGIC_OFFSET + 4])
    if magic not in config.NIFTI_SINGLE_FILE_MAGICS:
        raise FormatError(f"Bad magic: {magic!r}")

    # Extensions stay in ``raw``; nibabel only sees the fixed-size block
    hdr = Nifti1Header.from_fileobj(
        io.BytesIO(bytes(data[:size])), endianness=byte_order, check=False
    )

    dim = tuple(int(v) for v in hdr["dim"])
    _check_dims(dim)
    _check_datatype(hdr)

    vox_offset = float(hdr["vox_offset"])
    if not vox_offset.is_integer() or vox_offset < size:
        raise FormatError(f"Invalid vox_offset: {vox_offset}")
    vox_offset = int(vox_offset)
    if vox_offset > len(data):
        raise FormatError(f"vox_offset {vox_offset} beyond end of buffer ({len(data)} bytes)")

    return NiftiHeader(
        sizeof_hdr=int(hdr["sizeof_hdr"]),
        dim=dim,
        datatype=int(hdr["datatype"]),
        bitpix=int(hdr["bitpix"]),
        pixdim=tuple(float(v) for v in hdr["pixdim"]),
        vox_offset=vox_offset,
        scl_slope=float(hdr["scl_slope"]),
        scl_inter=float(hdr["scl_inter"]),
        cal_min=float(hdr["cal_min"]),
        cal_max=float(hdr["cal_max"]),
        magic=magic,
        byte_order=hdr.endianness,
        raw=bytes(data[:vox_offset]),
    )


def expected_image_size(header: NiftiHeader) -> int:
    """Byte length of the voxel payload implied by the header."""
    nx, ny, nz = header.shape
    nt = header.dim[4] if header.dim[0] >= 4 else 1
    return nx * ny * nz * nt * header.bytes_per_voxel


def read_image(header: NiftiHeader, data: bytes) -> bytes:
    """Extract the voxel payload that starts at vox_offset.

    Trailing bytes past the expected payload are ignored.

    Raises:
        FormatError: If data is shorter than the header requires
    """
    n_bytes = expected_image_size(header)
    end = header.vox_offset + n_bytes
    if len(data) < end:
        raise FormatError(
            f"Truncated voxel data: need {n_bytes} bytes from offset "
            f"{header.vox_offset}, have {len(data) - header.vox_offset}"
        )
    return bytes(data[header.vox_offset:end])
