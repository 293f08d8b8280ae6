"""
Unit tests for niimask.header: NIfTI-1 header decoding and validation.
"""
import struct

import nibabel as nib
import numpy as np
import pytest
from nibabel.nifti1 import Nifti1Extension, data_type_codes

from niimask.errors import FormatError
from niimask.header import expected_image_size, parse_header, read_image

from conftest import DB_NAME, VOX_OFFSET, make_header, make_nifti


class TestParseHeader:
    """Field decoding."""

    def test_basic_fields(self, nifti_bytes):
        header = parse_header(nifti_bytes)
        assert header.sizeof_hdr == 348
        assert header.dim[:4] == (3, 4, 4, 4)
        assert header.shape == (4, 4, 4)
        assert header.datatype == 4
        assert header.bitpix == 16
        assert header.bytes_per_voxel == 2
        assert header.vox_offset == VOX_OFFSET
        assert header.magic == b"n+1\x00"
        assert header.byte_order == "<"

    def test_pixdim_and_scaling(self):
        data, _ = make_nifti(scl_slope=2.5, scl_inter=-10.0)
        header = parse_header(data)
        assert header.pixdim[1:4] == pytest.approx((0.5, 0.75, 2.0))
        assert header.scl_slope == pytest.approx(2.5)
        assert header.scl_inter == pytest.approx(-10.0)

    def test_raw_covers_header_region(self, nifti_bytes):
        header = parse_header(nifti_bytes)
        assert header.raw == nifti_bytes[:VOX_OFFSET]
        assert DB_NAME in header.raw

    def test_big_endian(self):
        data, _ = make_nifti(shape=(2, 3, 4), byte_order=">")
        header = parse_header(data)
        assert header.byte_order == ">"
        assert header.shape == (2, 3, 4)
        assert header.numpy_dtype == np.dtype(">i2")

    def test_4d_dims(self, nifti_4d_bytes):
        header = parse_header(nifti_4d_bytes)
        assert header.dim[0] == 4
        assert header.dim[4] == 3

    def test_header_is_immutable(self, nifti_bytes):
        header = parse_header(nifti_bytes)
        with pytest.raises(AttributeError):
            header.bitpix = 8


class TestParseHeaderErrors:
    """FormatError scenarios."""

    def test_ten_byte_buffer(self):
        with pytest.raises(FormatError) as exc_info:
            parse_header(b"\x00" * 10)
        assert "short" in exc_info.value.reason

    def test_bad_sizeof_hdr(self, nifti_bytes):
        data = bytearray(nifti_bytes)
        struct.pack_into("<i", data, 0, 540)
        with pytest.raises(FormatError):
            parse_header(bytes(data))

    def test_bad_magic(self):
        with pytest.raises(FormatError):
            parse_header(make_header(magic=b"ni1\x00"))

    def test_zero_dimension(self):
        header = make_header(dim=(3, 0, 4, 4, 1, 1, 1, 1))
        with pytest.raises(FormatError):
            parse_header(header)

    def test_negative_dimension(self):
        with pytest.raises(FormatError):
            parse_header(make_header(dim=(3, 4, -2, 4, 1, 1, 1, 1)))

    def test_zero_time_dimension(self):
        with pytest.raises(FormatError):
            parse_header(make_header(dim=(4, 4, 4, 4, 0, 1, 1, 1)))

    def test_bad_dim0(self):
        with pytest.raises(FormatError):
            parse_header(make_header(dim=(9, 4, 4, 4, 1, 1, 1, 1)))

    def test_unsupported_datatype(self):
        # RGB24
        with pytest.raises(FormatError):
            parse_header(make_header(datatype=128, bitpix=24))

    def test_bitpix_mismatch(self):
        with pytest.raises(FormatError):
            parse_header(make_header(datatype=16, bitpix=16))

    def test_vox_offset_inside_header(self):
        data = bytearray(make_header())
        struct.pack_into("<f", data, 108, 100.0)
        with pytest.raises(FormatError):
            parse_header(bytes(data))

    def test_fractional_vox_offset(self):
        data = bytearray(make_header())
        struct.pack_into("<f", data, 108, 352.5)
        with pytest.raises(FormatError):
            parse_header(bytes(data))


class TestReadImage:
    """Voxel payload extraction."""

    def test_payload_matches(self):
        data, image = make_nifti(shape=(3, 4, 5))
        header = parse_header(data)
        payload = read_image(header, data)
        assert payload == image.tobytes()
        assert len(payload) == expected_image_size(header) == 3 * 4 * 5 * 2

    def test_payload_4d(self):
        data, image = make_nifti(shape=(3, 4, 5), nt=2, datatype=16)
        header = parse_header(data)
        assert read_image(header, data) == image.tobytes()

    def test_trailing_bytes_ignored(self, nifti_bytes):
        header = parse_header(nifti_bytes)
        assert read_image(header, nifti_bytes + b"junk") == read_image(header, nifti_bytes)

    def test_truncated_payload(self, nifti_bytes):
        header = parse_header(nifti_bytes)
        with pytest.raises(FormatError):
            read_image(header, nifti_bytes[:-1])


class TestNibabelAgreement:
    """Headers written by nibabel decode to the same fields."""

    def test_image_with_extension(self):
        voxels = np.arange(60, dtype=np.int16).reshape(3, 4, 5)
        img = nib.Nifti1Image(voxels, np.diag([0.8, 0.9, 2.5, 1.0]))
        img.header.extensions.append(Nifti1Extension("comment", b"kept verbatim"))
        data = img.to_bytes()

        header = parse_header(data)
        reference = nib.Nifti1Image.from_bytes(data).header
        assert header.shape == (3, 4, 5)
        assert header.dim == tuple(int(v) for v in reference["dim"])
        assert header.vox_offset == int(reference["vox_offset"]) > VOX_OFFSET
        assert header.numpy_dtype == reference.get_data_dtype()
        assert b"kept verbatim" in header.raw
        assert read_image(header, data) == voxels.tobytes(order="F")

    @pytest.mark.parametrize("datatype", [2, 4, 8, 16, 64, 256, 512, 768, 1024, 1280])
    def test_dtype_for_every_supported_code(self, datatype):
        expected = data_type_codes.dtype[datatype]
        header = parse_header(make_header(datatype=datatype, bitpix=expected.itemsize * 8))
        assert header.numpy_dtype == expected.newbyteorder("<")
        assert header.bytes_per_voxel == expected.itemsize

    def test_unknown_datatype_code(self):
        with pytest.raises(FormatError):
            parse_header(make_header(datatype=9999, bitpix=16))
