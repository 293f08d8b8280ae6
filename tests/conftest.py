"""
Pytest configuration and fixtures for niimask tests.
"""
import gzip
import os
import struct

import numpy as np
import pytest

# Qt must not try to open a display when the loader tests run headless
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

# NIfTI datatype code -> (struct-compatible numpy type, bitpix)
DATATYPES = {
    2: ("u1", 8),
    4: ("i2", 16),
    8: ("i4", 32),
    16: ("f4", 32),
    64: ("f8", 64),
    512: ("u2", 16),
}

VOX_OFFSET = 352
DB_NAME = b"reserved-bytes"
EXTENSION_BYTES = b"\x00\x00\x00\x00"


def make_header(
    shape=(4, 4, 4),
    nt=None,
    datatype=4,
    bitpix=None,
    byte_order="<",
    magic=b"n+1\x00",
    pixdim=(1.0, 0.5, 0.75, 2.0, 1.0, 1.0, 1.0, 1.0),
    scl_slope=1.0,
    scl_inter=0.0,
    vox_offset=VOX_OFFSET,
    descrip=b"synthetic test volume",
    dim=None,
):
    """
    Build the first vox_offset bytes of a single-file NIfTI-1.

    Fields are written with struct at their standard offsets, independently
    of the parser under test. Reserved db_name and the extension flag bytes
    carry recognizable content so pass-through can be checked.
    """
    if dim is None:
        nx, ny, nz = shape
        if nt is None:
            dim = (3, nx, ny, nz, 1, 1, 1, 1)
        else:
            dim = (4, nx, ny, nz, nt, 1, 1, 1)
    if bitpix is None:
        bitpix = DATATYPES[datatype][1]

    buf = bytearray(max(vox_offset, 348))
    o = byte_order
    struct.pack_into(o + "i", buf, 0, 348)
    struct.pack_into("18s", buf, 14, DB_NAME)
    struct.pack_into(o + "8h", buf, 40, *dim)
    struct.pack_into(o + "h", buf, 70, datatype)
    struct.pack_into(o + "h", buf, 72, bitpix)
    struct.pack_into(o + "8f", buf, 76, *pixdim)
    struct.pack_into(o + "f", buf, 108, float(vox_offset))
    struct.pack_into(o + "f", buf, 112, scl_slope)
    struct.pack_into(o + "f", buf, 116, scl_inter)
    struct.pack_into("80s", buf, 148, descrip)
    struct.pack_into("4s", buf, 344, magic)
    if vox_offset >= 352:
        buf[348:352] = EXTENSION_BYTES
    return bytes(buf)


def make_image(shape=(4, 4, 4), nt=None, datatype=4, byte_order="<", seed=0):
    """Deterministic voxel payload as a numpy array in (t, z, y, x) order."""
    nx, ny, nz = shape
    phases = nt or 1
    rng = np.random.default_rng(seed)
    values = rng.integers(0, 100, size=(phases, nz, ny, nx))
    dtype = np.dtype(DATATYPES[datatype][0]).newbyteorder(byte_order)
    return values.astype(dtype)


def make_nifti(shape=(4, 4, 4), nt=None, datatype=4, byte_order="<", gz=False, seed=0, **kwargs):
    """
    Build complete NIfTI-1 file bytes.

    Returns:
        Tuple of (file bytes, voxel array in (t, z, y, x) order)
    """
    header = make_header(shape=shape, nt=nt, datatype=datatype, byte_order=byte_order, **kwargs)
    image = make_image(shape=shape, nt=nt, datatype=datatype, byte_order=byte_order, seed=seed)
    data = header + image.tobytes()
    if gz:
        data = gzip.compress(data)
    return data, image


@pytest.fixture
def nifti_bytes():
    """4x4x4 int16 little-endian volume."""
    data, _ = make_nifti()
    return data


@pytest.fixture
def nifti_gz_bytes():
    data, _ = make_nifti(gz=True)
    return data


@pytest.fixture
def nifti_4d_bytes():
    """3x4x5 int16 volume with 3 phases."""
    data, _ = make_nifti(shape=(3, 4, 5), nt=3)
    return data
