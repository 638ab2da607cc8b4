"""Background worker threads for annotation import and export."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

from PyQt6.QtCore import QThread, pyqtSignal

from ..core.annotation_io import ImageAnnotationLoader, ImageAnnotationSaver
from ..core.format_registry import AnnotationFormatType
from ..core.models import ImageAnnotationData, ObjectCategory
from ..core.results import ImageAnnotationExportResult, ImageAnnotationImportResult

logger = logging.getLogger(__name__)


class AnnotationImportWorker(QThread):
    """
    Background thread loading annotations.

    Emits the processed fraction while running and the import result when
    done. The category dictionary passed in is extended in place.
    """

    # Signal emitted when the processed fraction changes (0.0 - 1.0)
    progress = pyqtSignal(float)

    # Signal emitted with the ImageAnnotationImportResult when done
    completed = pyqtSignal(object)

    def __init__(
        self,
        fmt: Union[AnnotationFormatType, str],
        source: Path,
        eligible_filenames: Iterable[str],
        categories: Optional[Dict[str, ObjectCategory]] = None,
        max_workers: Optional[int] = None
    ) -> None:
        """
        Initialize the import worker.

        Args:
            fmt: Annotation format to load
            source: Annotation directory or file
            eligible_filenames: Names of the currently loaded image files
            categories: Existing name to category mapping, extended in place
            max_workers: Maximum number of I/O threads
        """
        super().__init__()
        self.source = Path(source)
        self.eligible_filenames = frozenset(eligible_filenames)
        self.categories = categories if categories is not None else {}
        self.loader = ImageAnnotationLoader(fmt, max_workers)
        self.loader.progress.add_callback(self.progress.emit)
        self.result: Optional[ImageAnnotationImportResult] = None

    def run(self) -> None:
        """Load the annotations."""
        self.result = self.loader.load(self.source, self.eligible_filenames, self.categories)
        self.completed.emit(self.result)

    def stop(self) -> None:
        """Request the import to stop; files already being processed are finished."""
        logger.info(f"Stopping annotation import from {self.source}")
        self.loader.cancel()


class AnnotationExportWorker(QThread):
    """Background thread saving annotations."""

    # Signal emitted when the processed fraction changes (0.0 - 1.0)
    progress = pyqtSignal(float)

    # Signal emitted with the ImageAnnotationExportResult when done
    completed = pyqtSignal(object)

    def __init__(
        self,
        fmt: Union[AnnotationFormatType, str],
        annotation_data: ImageAnnotationData,
        destination: Path,
        max_workers: Optional[int] = None
    ) -> None:
        """
        Initialize the export worker.

        Args:
            fmt: Annotation format to save
            annotation_data: Annotations to save
            destination: Target directory or file
            max_workers: Maximum number of I/O threads
        """
        super().__init__()
        self.annotation_data = annotation_data
        self.destination = Path(destination)
        self.saver = ImageAnnotationSaver(fmt, max_workers)
        self.saver.progress.add_callback(self.progress.emit)
        self.result: Optional[ImageAnnotationExportResult] = None

    def run(self) -> None:
        """Save the annotations."""
        self.result = self.saver.save(self.annotation_data, self.destination)
        self.completed.emit(self.result)

    def stop(self) -> None:
        """Request the export to stop; files already being written are finished."""
        logger.info(f"Stopping annotation export to {self.destination}")
        self.saver.cancel()
