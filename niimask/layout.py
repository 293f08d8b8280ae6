"""Voxel-grid geometry derived from a NIfTI header."""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .errors import FormatError
from .header import NiftiHeader

# Largest buffer the platform can address
MAX_BUFFER_BYTES = int(np.iinfo(np.intp).max)


@dataclass(frozen=True)
class SliceLayout:
    """Read-only geometry of one volume.

    Voxels are addressed x-fastest: ``idx = x + y*nx + z*nx*ny``.
    ``total_voxels`` counts a single 3D phase.
    """

    nx: int
    ny: int
    nz: int
    nt: int = 1
    bytes_per_voxel: int = 1

    @property
    def total_voxels(self) -> int:
        return self.nx * self.ny * self.nz

    @property
    def phase_bytes(self) -> int:
        """Byte length of one 3D phase of image data."""
        return self.total_voxels * self.bytes_per_voxel

    def slice_shape(self, plane: str) -> Tuple[int, int]:
        """Get shape of slices for given plane.

        Args:
            plane: One of 'axial', 'coronal', 'sagittal'

        Returns:
            Tuple of (height, width)
        """
        if plane == "axial":
            return (self.ny, self.nx)
        elif plane == "coronal":
            return (self.nz, self.nx)
        elif plane == "sagittal":
            return (self.nz, self.ny)
        else:
            raise ValueError(f"Unknown plane: {plane}")

    def plane_size(self, plane: str) -> int:
        """Number of pixels in one slice of the given plane."""
        height, width = self.slice_shape(plane)
        return height * width

    def slice_count(self, plane: str) -> int:
        """Number of slices along the axis fixed by the given plane."""
        if plane == "axial":
            return self.nz
        elif plane == "coronal":
            return self.ny
        elif plane == "sagittal":
            return self.nx
        else:
            raise ValueError(f"Unknown plane: {plane}")

    def slice_range(self, plane: str) -> Tuple[int, int]:
        """Get (min, max) valid slice index for given plane."""
        return (0, self.slice_count(plane) - 1)


def compute_layout(header: NiftiHeader) -> SliceLayout:
    """Derive slice geometry from header.dim.

    Raises:
        FormatError: If any extent is not positive, or the volume would not
            fit in an addressable buffer
    """
    dim = header.dim
    nx, ny, nz = dim[1], dim[2], dim[3]
    nt = dim[4] if dim[0] >= 4 else 1

    for name, value in (("nx", nx), ("ny", ny), ("nz", nz), ("nt", nt)):
        if value <= 0:
            raise FormatError(f"Non-positive extent {name}={value}")

    # Python ints do not wrap, so compare against the platform limit directly
    total_bytes = nx * ny * nz * nt * header.bytes_per_voxel
    if total_bytes > MAX_BUFFER_BYTES:
        raise FormatError(
            f"Volume {nx}x{ny}x{nz}x{nt} ({total_bytes} bytes) exceeds addressable size"
        )

    return SliceLayout(nx=nx, ny=ny, nz=nz, nt=nt, bytes_per_voxel=header.bytes_per_voxel)
