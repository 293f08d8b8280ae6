"""Editing session over a list of NIfTI files.

One file is active at a time. Its mask is the "hot" mask; every edit is also
written to the per-file cache so that selecting the file again later restores
the work in progress.
"""

import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np

import config
from .errors import SessionError
from .header import NiftiHeader
from .mask_store import MaskCache, create_mask, restore_mask, set_all
from .serializer import build_nifti, masked_filename
from .slice_codec import read_slice, write_slice
from .volume import NiftiVolume, load_volume

logger = logging.getLogger(__name__)

Source = Union[bytes, str, Path]


def generate_file_id() -> str:
    """Create a unique id for a file list entry."""
    return f"{config.FILE_ID_PREFIX}{uuid.uuid4().hex}"


class GenerationCounter:
    """Monotonically increasing activation token.

    Every change of the active file advances it; a volume decoded for an
    older token is stale and must not be activated.
    """

    def __init__(self):
        self._current = 0

    @property
    def current(self) -> int:
        return self._current

    def advance(self) -> int:
        """Start a new generation and return its token."""
        self._current += 1
        return self._current

    def is_current(self, token: int) -> bool:
        return token == self._current


@dataclass
class MaskFile:
    """Entry in the session's file list.

    ``source`` is either the file's bytes or a local path; it is read again
    whenever the file is reselected.
    """

    file_id: str
    name: str
    source: Source = field(repr=False)
    completed: bool = False
    header: Optional[NiftiHeader] = field(default=None, repr=False)

    def read_bytes(self) -> bytes:
        if isinstance(self.source, (bytes, bytearray, memoryview)):
            return bytes(self.source)
        return Path(self.source).read_bytes()

    def get_display_name(self) -> str:
        """Get display name for the file list."""
        name = self.name
        if self.completed:
            name += " ✓"
        return name


class MaskingSession:
    """Holds the file list, the active volume and the mask cache."""

    def __init__(self, cache: Optional[MaskCache] = None):
        self.files: List[MaskFile] = []
        self.cache = cache if cache is not None else MaskCache()
        self.generations = GenerationCounter()
        self.selected_id: Optional[str] = None
        self.volume: Optional[NiftiVolume] = None
        self.mask: Optional[np.ndarray] = None
        self.modified = False

    # -- file list -----------------------------------------------------------

    def get_file(self, file_id: str) -> MaskFile:
        item = self._find_file(file_id)
        if item is not None:
            return item
        raise KeyError(f"Unknown file id: {file_id}")

    @property
    def selected_file(self) -> Optional[MaskFile]:
        if self.selected_id is None:
            return None
        return self.get_file(self.selected_id)

    @property
    def is_loaded(self) -> bool:
        return self.volume is not None and self.mask is not None

    def add_file(self, name: str, source: Source) -> str:
        """Load a new file, append it to the list and select it.

        The file starts with an empty mask.

        Returns:
            Generated file id

        Raises:
            CompressionError, FormatError: If the file cannot be decoded
        """
        item = MaskFile(file_id=generate_file_id(), name=name, source=source)
        volume = load_volume(item.read_bytes())
        self.files.append(item)
        self.generations.advance()
        self._activate(item, volume, create_mask(volume.total_voxels))
        logger.info("Added %s as %s", name, item.file_id)
        return item.file_id

    def select(self, file_id: str) -> None:
        """Switch to another file in the list, restoring its cached mask."""
        if file_id == self.selected_id:
            return
        item = self.get_file(file_id)
        volume = load_volume(item.read_bytes())
        self.open_volume(file_id, volume, self.generations.advance())

    def request_select(self, file_id: str, loader) -> int:
        """Switch to another file, decoding it on a background loader.

        The loader must share this session's ``generations`` and have its
        ``volume_ready`` connected to ``open_volume``.

        Returns:
            Generation token of the request
        """
        item = self.get_file(file_id)
        return loader.request(file_id, item.read_bytes())

    def open_volume(
        self, file_id: str, volume: NiftiVolume, generation: Optional[int] = None
    ) -> None:
        """Make an already decoded volume the active one.

        The mask comes from the cache when its length still matches. A volume
        for a removed file, or one decoded for a generation that has since
        been superseded, is dropped.
        """
        if generation is not None and not self.generations.is_current(generation):
            logger.debug("Dropping stale volume for %s (generation %d)", file_id, generation)
            return
        item = self._find_file(file_id)
        if item is None:
            logger.debug("Dropping volume for unknown file %s", file_id)
            return
        mask = restore_mask(self.cache.get(file_id), volume.total_voxels)
        self._activate(item, volume, mask)

    def remove_file(self, file_id: str) -> None:
        """Delete a file from the list and evict its cached mask."""
        item = self.get_file(file_id)
        self.files.remove(item)
        self.cache.evict(file_id)
        if self.selected_id == file_id:
            self._unload()
        logger.info("Removed %s", file_id)

    def complete(self, file_id: Optional[str] = None) -> None:
        """Mark a file as done, caching the current mask if it is active."""
        file_id = file_id or self.selected_id
        if file_id is None:
            raise SessionError("No file selected")
        item = self.get_file(file_id)
        if file_id == self.selected_id and self.mask is not None:
            self.cache.put(file_id, self.mask)
        item.completed = True

    def close(self) -> None:
        """End the session and drop all cached masks."""
        self.cache.clear()
        self.files.clear()
        self._unload()

    # -- mask editing --------------------------------------------------------

    def read_slice(self, plane: str, index: int) -> np.ndarray:
        """Read a 2D mask slice of the active volume."""
        volume, mask = self._require_loaded()
        return read_slice(mask, volume.layout, plane, index)

    def write_slice(self, plane: str, index: int, slice_data: np.ndarray) -> None:
        """Write a painted 2D mask slice into the active volume's mask."""
        volume, mask = self._require_loaded()
        write_slice(mask, volume.layout, plane, index, slice_data)
        self.cache.put(self.selected_id, mask)
        self.modified = True

    def clear_mask(self) -> None:
        """Reset every voxel of the active mask to 0."""
        _, mask = self._require_loaded()
        set_all(mask, 0)
        self.cache.put(self.selected_id, mask)
        self.modified = True

    def slice_range(self, plane: str) -> Tuple[int, int]:
        volume, _ = self._require_loaded()
        return volume.layout.slice_range(plane)

    # -- export --------------------------------------------------------------

    def export(
        self, compress_output: Optional[bool] = None, phase_index: int = 0
    ) -> Tuple[str, bytes]:
        """Build the masked file for download.

        Args:
            compress_output: Gzip the output; defaults to the source file's state
            phase_index: Time point to export for 4D input

        Returns:
            Tuple of (suggested filename, file bytes)
        """
        volume, mask = self._require_loaded()
        if compress_output is None:
            compress_output = volume.was_gzipped
        payload = build_nifti(
            volume.data,
            volume.header,
            volume.image,
            mask,
            compress_output=compress_output,
            phase_index=phase_index,
        )
        item = self.selected_file
        filename = masked_filename(item.name if item else None, compress_output)
        self.modified = False
        return filename, payload

    # -- internals -----------------------------------------------------------

    def _activate(self, item: MaskFile, volume: NiftiVolume, mask: np.ndarray) -> None:
        item.header = volume.header
        self.selected_id = item.file_id
        self.volume = volume
        self.mask = mask
        self.modified = False

    def _find_file(self, file_id: str) -> Optional[MaskFile]:
        for item in self.files:
            if item.file_id == file_id:
                return item
        return None

    def _unload(self) -> None:
        self.generations.advance()
        self.selected_id = None
        self.volume = None
        self.mask = None
        self.modified = False

    def _require_loaded(self) -> Tuple[NiftiVolume, np.ndarray]:
        if self.volume is None or self.mask is None:
            raise SessionError("No volume loaded")
        return self.volume, self.mask
