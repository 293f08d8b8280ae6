"""Dense 3D mask buffers and the per-file mask cache."""

import logging
import threading
from typing import Dict, Optional

import numpy as np

logger = logging.getLogger(__name__)


def create_mask(total_voxels: int) -> np.ndarray:
    """Create a zero-filled mask with one byte per voxel."""
    if total_voxels < 0:
        raise ValueError(f"Negative voxel count: {total_voxels}")
    return np.zeros(total_voxels, dtype=np.uint8)


def restore_mask(cached: Optional[np.ndarray], total_voxels: int) -> np.ndarray:
    """Reuse a cached mask when it still fits the volume.

    Args:
        cached: Previously cached mask for this file, or None
        total_voxels: Voxel count of the currently loaded header

    Returns:
        A copy of cached if its length equals total_voxels, otherwise a new
        zero mask. Mismatched caches are discarded, never truncated or padded.
    """
    if cached is None:
        return create_mask(total_voxels)
    if cached.size != total_voxels:
        logger.info(
            "Discarding cached mask of %d voxels (volume has %d)", cached.size, total_voxels
        )
        return create_mask(total_voxels)
    return np.array(cached, dtype=np.uint8).reshape(-1)


def set_all(mask: np.ndarray, value: int) -> None:
    """Fill the whole mask with 0 or 1."""
    if value not in (0, 1):
        raise ValueError(f"Mask value must be 0 or 1, got {value}")
    mask.fill(value)


class MaskCache:
    """Keyed store of masks by file id.

    Stores and hands out copies so a mask held by one session is never
    aliased by another. Access is serialized with a lock.
    """

    def __init__(self):
        self._masks: Dict[str, np.ndarray] = {}
        self._lock = threading.Lock()

    def get(self, file_id: str) -> Optional[np.ndarray]:
        """Return a copy of the cached mask for file_id, or None."""
        with self._lock:
            cached = self._masks.get(file_id)
            return None if cached is None else cached.copy()

    def put(self, file_id: str, mask: np.ndarray) -> None:
        """Cache a copy of mask under file_id, replacing any previous one."""
        with self._lock:
            self._masks[file_id] = np.array(mask, dtype=np.uint8)

    def evict(self, file_id: str) -> bool:
        """Drop the mask for file_id.

        Returns:
            True if a mask was removed
        """
        with self._lock:
            return self._masks.pop(file_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._masks.clear()

    def __contains__(self, file_id: str) -> bool:
        with self._lock:
            return file_id in self._masks

    def __len__(self) -> int:
        with self._lock:
            return len(self._masks)
