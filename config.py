"""Configuration constants for the NIfTI mask codec."""

from typing import Tuple

# NIfTI-1 header
NIFTI1_HEADER_SIZE = 348
NIFTI_SINGLE_FILE_MAGICS: Tuple[bytes, ...] = (b"n+1\x00",)
MAX_DIMENSIONS = 7

# NIfTI datatype codes accepted for masking (integer and real scalars);
# numpy types and widths come from nibabel.nifti1.data_type_codes
SUPPORTED_DATATYPE_CODES: Tuple[int, ...] = (2, 4, 8, 16, 64, 256, 512, 768, 1024, 1280)

# Gzip settings
GZIP_MAGIC = b"\x1f\x8b"
GZIP_COMPRESSLEVEL = 6

# Slice planes
AXES: Tuple[str, ...] = ("axial", "coronal", "sagittal")

# Value written into masked voxels on export (clipped to the voxel type)
MASK_FILL_VALUE = 255

# File patterns
NIFTI_EXTENSIONS: Tuple[str, ...] = (".nii.gz", ".nii")
MASKED_SUFFIX = "_masked"
DEFAULT_EXPORT_STEM = "masked"

# Prefix for generated file ids
FILE_ID_PREFIX = "nii-"
