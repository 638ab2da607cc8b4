"""Result types of annotation import and export operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List

from .models import ImageAnnotationData


class OperationType(str, Enum):
    """Kind of I/O operation a result belongs to."""

    ANNOTATION_IMPORT = "annotation_import"
    ANNOTATION_EXPORT = "annotation_export"


@dataclass(frozen=True)
class IOErrorInfoEntry:
    """
    A single problem encountered during an I/O operation.

    Attributes:
        source: Name of the file (or image) the problem relates to
        message: Human readable description of the problem
    """

    source: str
    message: str

    def __str__(self) -> str:
        return f"{self.source}: {self.message}"


@dataclass
class IOResult:
    """
    Aggregate outcome of an I/O operation.

    Errors are never raised to the caller; they are collected here together
    with the number of successfully processed items.
    """

    success_count: int = 0
    errors: List[IOErrorInfoEntry] = field(default_factory=list)
    elapsed_millis: int = 0
    cancelled: bool = False

    @property
    def operation_type(self) -> OperationType:
        raise NotImplementedError

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


@dataclass
class ImageAnnotationImportResult(IOResult):
    """Result of loading annotations, including the loaded data."""

    image_annotation_data: ImageAnnotationData = field(default_factory=ImageAnnotationData.empty)

    @property
    def operation_type(self) -> OperationType:
        return OperationType.ANNOTATION_IMPORT


@dataclass
class ImageAnnotationExportResult(IOResult):
    """Result of saving annotations."""

    @property
    def operation_type(self) -> OperationType:
        return OperationType.ANNOTATION_EXPORT
