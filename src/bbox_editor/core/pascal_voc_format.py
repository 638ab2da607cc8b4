"""Pascal VOC annotation format reading and writing."""

from __future__ import annotations

import logging
import math
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import FrozenSet, Iterable, List, Optional
from xml.dom import minidom
from xml.parsers.expat import ExpatError

from .annotation_format import (
    AnnotationAssociationError,
    AnnotationFormat,
    AnnotationIOError,
    FileLoadResult,
    InvalidAnnotationFormatError,
)
from .categories import CategoryRegistry
from .geometry import format_decimal, is_ratio, to_relative
from .models import (
    BoundingBoxData,
    BoundingFreehandShapeData,
    BoundingPolygonData,
    BoundingShape,
    ImageAnnotation,
    ImageAnnotationData,
    ImageMetaData,
    ShapeType,
)
from .progress import IOProgress
from .results import (
    ImageAnnotationExportResult,
    ImageAnnotationImportResult,
    IOErrorInfoEntry,
)

logger = logging.getLogger(__name__)

ANNOTATION_FILE_SUFFIX = "_A"
DECIMAL_PLACES = 2

MISSING_ELEMENT_PREFIX = "Missing element: "
DUPLICATE_GEOMETRY_ERROR = 'Invalid "object"-element: Contains "bndbox"- and "polygon"-elements.'
MISSING_GEOMETRY_ERROR = 'Invalid "object"-element: Missing "bndbox"- or "polygon"-element.'
NOT_LOADED_IMAGE_ERROR = "The image file does not belong to the currently loaded images."

FLAG_TAGS = ("difficult", "occluded", "truncated")
POSE_TAG_PREFIX = "pose:"
ACTION_TAG_PREFIX = "action:"
UNSPECIFIED_POSE = "Unspecified"

GEOMETRY_ELEMENT_NAMES = {
    ShapeType.POLYGON: "polygon",
    ShapeType.FREEHAND: "path",
}


class PascalVOCAnnotationFormat(AnnotationFormat):
    """
    Pascal VOC annotation format handler.

    Pascal VOC format stores annotations in XML files with one file per image.
    Besides bounding boxes, polygons and freehand paths are stored as lists
    of alternating x/y elements. Nested shapes are written as "part" elements.

    XML structure:
    <annotation>
        <folder>images</folder>
        <filename>image.jpg</filename>
        <size>
            <width>1920</width>
            <height>1080</height>
            <depth>3</depth>
        </size>
        <object>
            <name>cat</name>
            <difficult>0</difficult>
            <occluded>0</occluded>
            <pose>Unspecified</pose>
            <truncated>0</truncated>
            <bndbox>
                <xmin>100</xmin>
                <xmax>200</xmax>
                <ymin>100</ymin>
                <ymax>200</ymax>
            </bndbox>
            <part>...</part>
        </object>
    </annotation>

    An annotation file is assigned to the image named in its "filename"
    element, independent of its own file name.
    """

    @property
    def format_name(self) -> str:
        """Return the format name."""
        return "pascal_voc"

    @property
    def display_name(self) -> str:
        return "Pascal VOC"

    @property
    def is_per_image(self) -> bool:
        """Pascal VOC uses one .xml file per image."""
        return True

    @property
    def file_extension(self) -> str:
        """Pascal VOC uses .xml files."""
        return ".xml"

    @staticmethod
    def get_annotation_file_name(image_file_name: str) -> str:
        """Return the name of the annotation file written for an image."""
        return image_file_name.replace(".", "_") + ANNOTATION_FILE_SUFFIX + ".xml"

    # === Loading ===

    def load(
        self,
        source: Path,
        eligible_filenames: Iterable[str],
        categories: CategoryRegistry,
        progress: IOProgress
    ) -> ImageAnnotationImportResult:
        """
        Load all Pascal VOC files located directly in a directory.

        Args:
            source: Directory containing the .xml files
            eligible_filenames: Names of the currently loaded image files
            categories: Registry that is extended with new categories
            progress: Progress tracker

        Returns:
            Import result
        """
        source = Path(source)
        eligible = frozenset(eligible_filenames)
        xml_files = self._list_files(source)

        result = self._load_files(
            lambda path: self._load_file(path, eligible, categories),
            xml_files,
            categories,
            progress
        )
        logger.info(
            f"Loaded {result.success_count} Pascal VOC annotations from {source} "
            f"({len(result.errors)} errors)"
        )
        return result

    def _load_file(
        self,
        xml_path: Path,
        eligible: FrozenSet[str],
        categories: CategoryRegistry
    ) -> FileLoadResult:
        result = FileLoadResult()

        try:
            root = ET.parse(xml_path).getroot()
            meta = self._parse_image_meta_data(root)

            if meta.file_name not in eligible:
                raise AnnotationAssociationError(NOT_LOADED_IMAGE_ERROR)
        except ET.ParseError as e:
            result.add_error(xml_path.name, f"Invalid XML: {e}")
            return result
        except (OSError, AnnotationIOError) as e:
            result.add_error(xml_path.name, str(e))
            return result

        shapes: List[BoundingShape] = []
        for obj in root.findall("object"):
            shape = self._parse_object_or_report(obj, meta, categories, result, xml_path.name)
            if shape is not None:
                shapes.append(shape)

        if shapes:
            result.annotation = ImageAnnotation(meta, shapes)
        else:
            logger.debug(f"No valid objects in {xml_path}")
        return result

    def _parse_image_meta_data(self, root: ET.Element) -> ImageMetaData:
        file_name = self._find_required(root, "filename").text or ""
        size = self._find_required(root, "size")
        width = self._parse_float(size, "width")
        height = self._parse_float(size, "height")

        if not (math.isfinite(width) and math.isfinite(height)) or width <= 0 or height <= 0:
            raise InvalidAnnotationFormatError("Invalid image size.")

        depth_element = size.find("depth")
        depth = self._parse_int(depth_element) if depth_element is not None else 0
        folder_element = root.find("folder")
        folder = (folder_element.text or "").strip() if folder_element is not None else ""

        return ImageMetaData(
            file_name=file_name.strip(),
            folder_name=folder,
            width=width,
            height=height,
            depth=depth,
        )

    def _parse_object_or_report(
        self,
        element: ET.Element,
        meta: ImageMetaData,
        categories: CategoryRegistry,
        result: FileLoadResult,
        source: str
    ) -> Optional[BoundingShape]:
        try:
            return self._parse_object(element, meta, categories, result, source)
        except AnnotationIOError as e:
            result.add_error(source, str(e))
            return None

    def _parse_object(
        self,
        element: ET.Element,
        meta: ImageMetaData,
        categories: CategoryRegistry,
        result: FileLoadResult,
        source: str
    ) -> BoundingShape:
        """
        Parse an "object" or "part" element.

        All non-part children are validated first; nested parts are only
        parsed once the enclosing shape is known to be valid.
        """
        name: Optional[str] = None
        tags: List[str] = []
        geometry: List[ET.Element] = []

        for child in element:
            if child.tag == "part":
                continue

            text = (child.text or "").strip()

            if child.tag == "name":
                if not text:
                    raise InvalidAnnotationFormatError("Blank object name.")
                name = text
            elif child.tag in ("bndbox", "polygon", "path"):
                geometry.append(child)
            elif child.tag in FLAG_TAGS:
                if self._parse_int(child) == 1:
                    tags.append(child.tag)
            elif child.tag == "pose":
                if text and text.lower() != UNSPECIFIED_POSE.lower():
                    tags.append(POSE_TAG_PREFIX + text)
            elif child.tag == "actions":
                for action in child:
                    if self._parse_int(action) == 1:
                        tags.append(ACTION_TAG_PREFIX + action.tag)

        if name is None:
            raise InvalidAnnotationFormatError(MISSING_ELEMENT_PREFIX + "name")
        if len(geometry) > 1:
            raise InvalidAnnotationFormatError(DUPLICATE_GEOMETRY_ERROR)
        if not geometry:
            raise InvalidAnnotationFormatError(MISSING_GEOMETRY_ERROR)

        geometry_element = geometry[0]

        if geometry_element.tag == "bndbox":
            x_min = self._parse_float(geometry_element, "xmin")
            x_max = self._parse_float(geometry_element, "xmax")
            y_min = self._parse_float(geometry_element, "ymin")
            y_max = self._parse_float(geometry_element, "ymax")
            bounds = to_relative([x_min, y_min, x_max, y_max], meta.width, meta.height)

            if not all(is_ratio(v) for v in bounds) or bounds[0] > bounds[2] or bounds[1] > bounds[3]:
                raise InvalidAnnotationFormatError('Invalid "bndbox"-element: Coordinates out of image bounds.')

            shape: BoundingShape = BoundingBoxData(categories.resolve(name), *bounds, tags=tags)
        else:
            points = to_relative(self._parse_points(geometry_element), meta.width, meta.height)

            if not all(is_ratio(v) for v in points):
                raise InvalidAnnotationFormatError(
                    f'Invalid "{geometry_element.tag}"-element: Coordinates out of image bounds.'
                )

            if geometry_element.tag == "polygon":
                shape = BoundingPolygonData(categories.resolve(name), points, tags=tags)
            else:
                shape = BoundingFreehandShapeData(categories.resolve(name), points, tags=tags)

        result.counts[name] += 1

        for part in element.findall("part"):
            part_shape = self._parse_object_or_report(part, meta, categories, result, source)
            if part_shape is not None:
                shape.parts.append(part_shape)

        return shape

    def _parse_points(self, element: ET.Element) -> List[float]:
        x_elements = element.findall("x")
        y_elements = element.findall("y")

        if len(x_elements) < 3 or len(x_elements) != len(y_elements):
            raise InvalidAnnotationFormatError(f'Invalid "{element.tag}"-element.')

        points: List[float] = []
        for x_element, y_element in zip(x_elements, y_elements):
            points.append(self._to_float(x_element))
            points.append(self._to_float(y_element))
        return points

    @staticmethod
    def _find_required(parent: ET.Element, tag: str) -> ET.Element:
        element = parent.find(tag)
        if element is None:
            raise InvalidAnnotationFormatError(MISSING_ELEMENT_PREFIX + tag)
        return element

    def _parse_float(self, parent: ET.Element, tag: str) -> float:
        return self._to_float(self._find_required(parent, tag))

    @staticmethod
    def _to_float(element: ET.Element) -> float:
        try:
            return float((element.text or "").strip())
        except ValueError:
            raise InvalidAnnotationFormatError(f"Invalid value for element: {element.tag}") from None

    @staticmethod
    def _parse_int(element: ET.Element) -> int:
        try:
            return int((element.text or "").strip())
        except ValueError:
            raise InvalidAnnotationFormatError(f"Invalid value for element: {element.tag}") from None

    # === Saving ===

    def save(
        self,
        annotation_data: ImageAnnotationData,
        destination: Path,
        progress: IOProgress
    ) -> ImageAnnotationExportResult:
        """
        Write one Pascal VOC file per annotated image.

        Args:
            annotation_data: Annotations to save
            destination: Target directory, created if missing
            progress: Progress tracker

        Returns:
            Export result
        """
        destination = Path(destination)
        try:
            destination.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return self._fatal_export(destination.name, str(e))

        outcomes = self._map_parallel(
            lambda annotation: self._save_annotation(annotation, destination),
            annotation_data.image_annotations,
            progress
        )

        errors = [error for outcome in outcomes for error in outcome]
        success_count = sum(1 for outcome in outcomes if not outcome)
        logger.info(f"Saved {success_count} Pascal VOC files to {destination}")

        return ImageAnnotationExportResult(
            success_count=success_count,
            errors=errors,
            cancelled=progress.is_cancelled,
        )

    def _save_annotation(self, annotation: ImageAnnotation, destination: Path) -> List[IOErrorInfoEntry]:
        xml_path = destination / self.get_annotation_file_name(annotation.image_file_name)

        try:
            self._require_dimensions(annotation.image_meta_data)
            root = self._create_document(annotation)

            # Pretty print with minidom
            xml_str = ET.tostring(root, encoding="unicode")
            pretty_xml = minidom.parseString(xml_str).toprettyxml(indent="    ", encoding="UTF-8")

            with open(xml_path, "wb") as f:
                f.write(pretty_xml)
        except (OSError, AnnotationIOError, ExpatError, ValueError) as e:
            logger.error(f"Error writing Pascal VOC file {xml_path}: {e}")
            return [IOErrorInfoEntry(annotation.image_file_name, str(e))]

        logger.debug(f"Saved {len(annotation.bounding_shape_data)} objects to {xml_path}")
        return []

    def _create_document(self, annotation: ImageAnnotation) -> ET.Element:
        meta = annotation.image_meta_data
        root = ET.Element("annotation")

        ET.SubElement(root, "folder").text = meta.folder_name
        ET.SubElement(root, "filename").text = meta.file_name

        size = ET.SubElement(root, "size")
        ET.SubElement(size, "width").text = format_decimal(meta.width, DECIMAL_PLACES)
        ET.SubElement(size, "height").text = format_decimal(meta.height, DECIMAL_PLACES)
        ET.SubElement(size, "depth").text = str(meta.depth)

        for shape in annotation.bounding_shape_data:
            root.append(self._create_shape_element("object", shape, meta))

        return root

    def _create_shape_element(self, tag: str, shape: BoundingShape, meta: ImageMetaData) -> ET.Element:
        element = ET.Element(tag)
        ET.SubElement(element, "name").text = shape.category_name

        flags = {flag: 0 for flag in FLAG_TAGS}
        pose = UNSPECIFIED_POSE
        actions: List[str] = []

        for shape_tag in shape.tags:
            lower_tag = shape_tag.lower()
            if lower_tag.startswith(POSE_TAG_PREFIX):
                pose = shape_tag[len(POSE_TAG_PREFIX):].strip() or UNSPECIFIED_POSE
            elif lower_tag.startswith(ACTION_TAG_PREFIX):
                action = shape_tag[len(ACTION_TAG_PREFIX):].strip()
                if action and action not in actions:
                    actions.append(action)
            elif lower_tag in flags:
                flags[lower_tag] = 1

        ET.SubElement(element, "difficult").text = str(flags["difficult"])
        ET.SubElement(element, "occluded").text = str(flags["occluded"])
        ET.SubElement(element, "pose").text = pose
        ET.SubElement(element, "truncated").text = str(flags["truncated"])

        if actions:
            actions_element = ET.SubElement(element, "actions")
            for action in actions:
                ET.SubElement(actions_element, action).text = "1"

        element.append(self._create_geometry_element(shape, meta.width, meta.height))

        for part in shape.parts:
            element.append(self._create_shape_element("part", part, meta))

        return element

    @staticmethod
    def _create_geometry_element(shape: BoundingShape, width: float, height: float) -> ET.Element:
        if isinstance(shape, BoundingBoxData):
            element = ET.Element("bndbox")
            x_min, y_min, x_max, y_max = shape.absolute_bounds(width, height)
            ET.SubElement(element, "xmin").text = format_decimal(x_min, DECIMAL_PLACES)
            ET.SubElement(element, "xmax").text = format_decimal(x_max, DECIMAL_PLACES)
            ET.SubElement(element, "ymin").text = format_decimal(y_min, DECIMAL_PLACES)
            ET.SubElement(element, "ymax").text = format_decimal(y_max, DECIMAL_PLACES)
        elif isinstance(shape, (BoundingPolygonData, BoundingFreehandShapeData)):
            element = ET.Element(GEOMETRY_ELEMENT_NAMES[shape.shape_type])
            points = shape.absolute_points(width, height)
            for x, y in zip(points[0::2], points[1::2]):
                ET.SubElement(element, "x").text = format_decimal(x, DECIMAL_PLACES)
                ET.SubElement(element, "y").text = format_decimal(y, DECIMAL_PLACES)
        else:
            raise TypeError(f"Unsupported shape type: {type(shape).__name__}")
        return element
