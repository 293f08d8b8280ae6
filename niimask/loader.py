"""Background decoding of NIfTI files.

Decoding a large ``.nii.gz`` is CPU bound, so it runs on a worker thread.
Every request takes a new token from a ``GenerationCounter``, normally the
one owned by the ``MaskingSession`` so that synchronous activations advance it
too. A result that arrives for an older generation is dropped, so a slow load
of file A can never overwrite state created for file B.
"""

import logging
from typing import Dict, Optional

from PySide6.QtCore import QObject, QThread, Signal, Slot

from .errors import NiftiMaskError
from .session import GenerationCounter
from .volume import load_volume

logger = logging.getLogger(__name__)


class LoadWorker(QThread):
    """Thread decoding one file's bytes."""

    loaded = Signal(int, str, object)  # generation, file_id, NiftiVolume
    failed = Signal(int, str, object)  # generation, file_id, exception

    def __init__(self, generation: int, file_id: str, data: bytes, parent=None):
        super().__init__(parent)
        self.generation = generation
        self.file_id = file_id
        self.data = data

    def run(self):
        try:
            volume = load_volume(self.data)
        except NiftiMaskError as e:
            self.failed.emit(self.generation, self.file_id, e)
            return
        self.loaded.emit(self.generation, self.file_id, volume)


class VolumeLoader(QObject):
    """Runs load_volume off the UI thread and delivers only the latest result.

    Results are delivered on the thread that owns the loader.
    """

    volume_ready = Signal(str, object, int)  # file_id, NiftiVolume, generation
    load_failed = Signal(str, object)   # file_id, exception

    def __init__(self, generations: Optional[GenerationCounter] = None, parent=None):
        super().__init__(parent)
        self.generations = generations if generations is not None else GenerationCounter()
        # Keep workers referenced until their thread finishes
        self._workers: Dict[int, LoadWorker] = {}

    @property
    def is_busy(self) -> bool:
        return bool(self._workers)

    def request(self, file_id: str, data: bytes) -> int:
        """Start decoding data for file_id.

        Any load still in flight becomes stale.

        Returns:
            Generation token of this request
        """
        generation = self.generations.advance()
        worker = LoadWorker(generation, file_id, data)
        worker.loaded.connect(self._on_loaded)
        worker.failed.connect(self._on_failed)
        worker.finished.connect(self._on_worker_finished)
        self._workers[generation] = worker
        worker.start()
        logger.debug("Requested load of %s (generation %d)", file_id, generation)
        return generation

    def wait(self, msecs: int = -1) -> None:
        """Block until every running worker has finished."""
        for worker in list(self._workers.values()):
            if msecs < 0:
                worker.wait()
            else:
                worker.wait(msecs)

    @Slot(int, str, object)
    def _on_loaded(self, generation: int, file_id: str, volume) -> None:
        if not self.generations.is_current(generation):
            logger.debug("Dropping stale load of %s (generation %d)", file_id, generation)
            return
        self.volume_ready.emit(file_id, volume, generation)

    @Slot(int, str, object)
    def _on_failed(self, generation: int, file_id: str, error) -> None:
        if not self.generations.is_current(generation):
            logger.debug("Dropping stale failure of %s (generation %d)", file_id, generation)
            return
        logger.warning("Failed to load %s: %s", file_id, error)
        self.load_failed.emit(file_id, error)

    @Slot()
    def _on_worker_finished(self) -> None:
        worker = self.sender()
        if self._workers.pop(getattr(worker, "generation", None), None) is not None:
            worker.deleteLater()
