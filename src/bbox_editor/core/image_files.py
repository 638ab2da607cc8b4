"""Discovery of image files and reading of their metadata."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List

from PyQt6.QtGui import QImage, QImageIOHandler, QImageReader, QPixelFormat

from .models import ImageMetaData

logger = logging.getLogger(__name__)

# Supported image extensions
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".gif", ".webp"}

# Qt image transformation value to EXIF orientation
_TRANSFORMATION_TO_ORIENTATION: Dict[int, int] = {
    0: 1,  # none
    1: 2,  # mirror
    3: 3,  # rotate 180
    2: 4,  # flip
    6: 5,  # flip and rotate 90
    4: 6,  # rotate 90
    5: 7,  # mirror and rotate 90
    7: 8,  # rotate 270
}


def get_image_files(directory: Path) -> List[str]:
    """
    List the image files located directly in a directory.

    Args:
        directory: Directory to scan (not recursive)

    Returns:
        Sorted list of image file names
    """
    directory = Path(directory)
    return sorted(
        entry.name for entry in directory.iterdir()
        if entry.is_file() and entry.suffix.lower() in IMAGE_EXTENSIONS
    )


def orientation_from_transformation(transformation: QImageIOHandler.Transformation) -> int:
    """Return the EXIF orientation (1-8) matching a Qt image transformation."""
    return _TRANSFORMATION_TO_ORIENTATION.get(transformation.value, 1)


def _depth_of(image_format: QImage.Format) -> int:
    """Return the number of color channels of an image format."""
    if image_format == QImage.Format.Format_Invalid:
        return 3
    if image_format in (QImage.Format.Format_Mono, QImage.Format.Format_MonoLSB):
        return 1

    pixel_format = QImage.toPixelFormat(image_format)
    if pixel_format.colorModel() == QPixelFormat.ColorModel.Grayscale:
        return 1
    if pixel_format.alphaUsage() == QPixelFormat.AlphaUsage.UsesAlpha:
        return 4
    return 3


def read_image_meta_data(image_path: Path) -> ImageMetaData:
    """
    Read size, channel count and EXIF orientation of an image without decoding it.

    The returned width and height are those of the stored pixel grid, before
    the orientation is applied. If the image cannot be read, only the file
    name related fields are set.

    Args:
        image_path: Path to the image file

    Returns:
        ImageMetaData for the image
    """
    image_path = Path(image_path)
    meta = ImageMetaData(
        file_name=image_path.name,
        folder_name=image_path.parent.name,
        url=image_path.absolute().as_uri(),
    )

    reader = QImageReader(str(image_path))
    reader.setAutoTransform(False)
    size = reader.size()

    if not size.isValid():
        logger.warning(f"Could not read size of image {image_path}: {reader.errorString()}")
        return meta

    meta.width = float(size.width())
    meta.height = float(size.height())
    meta.depth = _depth_of(reader.imageFormat())
    meta.orientation = orientation_from_transformation(reader.transformation())
    return meta
