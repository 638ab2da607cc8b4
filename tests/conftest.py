"""Pytest configuration and fixtures."""

import os
import pytest
import sys
from pathlib import Path

# Allow Qt to run without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))


@pytest.fixture(scope="session")
def qapp():
    """Create a QApplication for tests that need it."""
    from PyQt6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is None:
        app = QApplication([])

    yield app


@pytest.fixture
def temp_dir(tmp_path):
    """Provide a temporary directory for tests."""
    return tmp_path


@pytest.fixture
def voc_annotation_dir(tmp_path):
    """Create a directory with one Pascal VOC file containing nested parts."""
    directory = tmp_path / "voc"
    directory.mkdir()
    (directory / "boat_jpg_A.xml").write_text(
        "<annotation>\n"
        "    <folder>images</folder>\n"
        "    <filename>boat.jpg</filename>\n"
        "    <size>\n"
        "        <width>500</width>\n"
        "        <height>400</height>\n"
        "        <depth>3</depth>\n"
        "    </size>\n"
        "    <object>\n"
        "        <name>Boat</name>\n"
        "        <difficult>1</difficult>\n"
        "        <occluded>0</occluded>\n"
        "        <pose>Left</pose>\n"
        "        <truncated>0</truncated>\n"
        "        <actions>\n"
        "            <sailing>1</sailing>\n"
        "            <docking>0</docking>\n"
        "        </actions>\n"
        "        <bndbox>\n"
        "            <xmin>50</xmin>\n"
        "            <xmax>450</xmax>\n"
        "            <ymin>100</ymin>\n"
        "            <ymax>300</ymax>\n"
        "        </bndbox>\n"
        "        <part>\n"
        "            <name>Sail</name>\n"
        "            <polygon>\n"
        "                <x>100</x>\n"
        "                <y>120</y>\n"
        "                <x>200</x>\n"
        "                <y>120</y>\n"
        "                <x>150</x>\n"
        "                <y>200</y>\n"
        "            </polygon>\n"
        "        </part>\n"
        "    </object>\n"
        "    <object>\n"
        "        <name>Flag</name>\n"
        "        <bndbox>\n"
        "            <xmin>10</xmin>\n"
        "            <xmax>20</xmax>\n"
        "            <ymin>10</ymin>\n"
        "            <ymax>40</ymax>\n"
        "        </bndbox>\n"
        "    </object>\n"
        "</annotation>\n",
        encoding="utf-8"
    )
    return directory


@pytest.fixture
def yolo_annotation_dir(tmp_path):
    """Create a directory with a YOLO manifest and one annotation file."""
    directory = tmp_path / "yolo"
    directory.mkdir()
    (directory / "object.data").write_text("Boat\nSail\n\nFlag\n", encoding="utf-8")
    (directory / "boat.txt").write_text(
        "0 0.5 0.5 0.2 0.4\n"
        "1 0.1 0.1 0.3 0.1 0.2 0.3\n",
        encoding="utf-8"
    )
    return directory
