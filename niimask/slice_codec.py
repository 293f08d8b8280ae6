"""Translation between 2D slice pixels and 3D mask voxels.

A slice is a (height, width) array; its flat index ``p + q*width`` maps to
voxel ``idx(x, y, z) = x + y*nx + z*nx*ny`` as follows:

    axial     z = index   (q, p) = (y, x)
    coronal   y = index   (q, p) = (z, x)
    sagittal  x = index   (q, p) = (z, y)

The flat mask reshaped to (nz, ny, nx) makes these plain numpy views, and both
directions go through ``plane_view`` so reading and writing can never disagree
about which voxel a pixel belongs to.
"""

import numpy as np

from .layout import SliceLayout


def plane_view(array: np.ndarray, layout: SliceLayout, plane: str, index: int) -> np.ndarray:
    """View of one slice of a flat voxel array.

    Args:
        array: Flat, contiguous array of layout.total_voxels elements
        layout: Volume geometry
        plane: One of 'axial', 'coronal', 'sagittal'
        index: Slice index along the plane's fixed axis

    Returns:
        2D view of shape layout.slice_shape(plane) sharing memory with array

    Raises:
        IndexError: If index is outside [0, slice_count)
        ValueError: If plane is unknown
    """
    count = layout.slice_count(plane)
    if not 0 <= index < count:
        raise IndexError(f"{plane} slice index {index} out of range [0, {count})")

    volume = array.reshape(layout.nz, layout.ny, layout.nx)
    if plane == "axial":
        return volume[index, :, :]
    elif plane == "coronal":
        return volume[:, index, :]
    else:
        return volume[:, :, index]


def voxel_indices(layout: SliceLayout, plane: str, index: int) -> np.ndarray:
    """Linear voxel index for every pixel of a slice.

    Returns:
        2D integer array of shape layout.slice_shape(plane)
    """
    flat = np.arange(layout.total_voxels, dtype=np.intp)
    return plane_view(flat, layout, plane, index).copy()


def _check_mask(mask: np.ndarray, layout: SliceLayout) -> None:
    if mask.ndim != 1 or mask.size != layout.total_voxels:
        raise ValueError(
            f"Mask has {mask.size} voxels, layout expects {layout.total_voxels}"
        )


def read_slice(mask: np.ndarray, layout: SliceLayout, plane: str, index: int) -> np.ndarray:
    """Get 2D mask slice for given plane.

    Args:
        mask: Flat 3D mask of layout.total_voxels bytes
        layout: Volume geometry
        plane: One of 'axial', 'coronal', 'sagittal'
        index: Slice index

    Returns:
        New uint8 array of shape layout.slice_shape(plane)
    """
    _check_mask(mask, layout)
    return plane_view(mask, layout, plane, index).astype(np.uint8)


def write_slice(
    mask: np.ndarray, layout: SliceLayout, plane: str, index: int, slice_data: np.ndarray
) -> None:
    """Set 2D mask slice for given plane.

    Non-zero pixels are stored as 1.

    Args:
        mask: Flat 3D mask, modified in place
        layout: Volume geometry
        plane: One of 'axial', 'coronal', 'sagittal'
        index: Slice index
        slice_data: Flat or (height, width) array with plane_size elements
    """
    _check_mask(mask, layout)
    view = plane_view(mask, layout, plane, index)
    slice_data = np.asarray(slice_data)
    if slice_data.size != view.size:
        raise ValueError(
            f"{plane} slice has {slice_data.size} pixels, expected {view.size}"
        )
    view[...] = slice_data.reshape(view.shape) != 0
