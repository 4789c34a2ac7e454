"""
Tests for magic-byte file type detection.
"""

import pytest

from conftest import MINIMAL_PDF, MINIMAL_PSD, write_image
from preflight.utils import file_types
from preflight.utils.file_types import detect_file_type, file_type_label, sniff_bytes


class TestDetectFileType:
    """Detection must depend on content, never on the file name."""

    def test_png_renamed_to_jpg(self, tmp_path):
        path = write_image(tmp_path / "design.png", size=(20, 20))
        renamed = path.rename(tmp_path / "design.jpg")
        assert detect_file_type(renamed) == file_types.PNG

    def test_jpeg_renamed_to_pdf(self, tmp_path):
        path = write_image(tmp_path / "photo.jpg", size=(20, 20), image_format="JPEG")
        renamed = path.rename(tmp_path / "photo.pdf")
        assert detect_file_type(renamed) == file_types.JPEG

    def test_pdf_without_extension(self, tmp_path):
        path = tmp_path / "artwork"
        path.write_bytes(MINIMAL_PDF)
        assert detect_file_type(path) == file_types.PDF

    def test_psd_renamed_to_png(self, tmp_path):
        path = tmp_path / "layers.png"
        path.write_bytes(MINIMAL_PSD)
        assert detect_file_type(path) == file_types.PSD

    def test_tiff_both_byte_orders(self, tmp_path):
        path = write_image(tmp_path / "scan.tif", size=(20, 20), image_format="TIFF", dpi=None)
        assert detect_file_type(path) == file_types.TIFF
        assert sniff_bytes(b"MM\x00*\x00\x00\x00\x08") == file_types.TIFF

    def test_webp(self, tmp_path):
        path = write_image(tmp_path / "image.bin", size=(20, 20), image_format="WEBP", dpi=None)
        assert detect_file_type(path) == file_types.WEBP

    def test_gif(self):
        assert sniff_bytes(b"GIF89a\x01\x00\x01\x00") == file_types.GIF

    @pytest.mark.parametrize(
        "header",
        [
            b"%!PS-Adobe-3.0 EPSF-3.0\n%%BoundingBox: 0 0 100 100\n",
            b"%!PS-Adobe-3.0\n%%Creator: Adobe Illustrator(R) 24.0\n",
            b"\xc5\xd0\xd3\xc6\x1e\x00\x00\x00",
        ],
    )
    def test_postscript_family(self, header):
        assert sniff_bytes(header) == file_types.POSTSCRIPT

    @pytest.mark.parametrize(
        "header",
        [
            b'<svg xmlns="http://www.w3.org/2000/svg"></svg>',
            b'<?xml version="1.0" encoding="UTF-8"?>\n<svg width="10" height="10"></svg>',
            b'\xef\xbb\xbf  <svg></svg>',
        ],
    )
    def test_svg(self, header):
        assert sniff_bytes(header) == file_types.SVG

    def test_plain_xml_is_not_svg(self):
        assert sniff_bytes(b'<?xml version="1.0"?><catalog></catalog>') == file_types.UNKNOWN

    def test_unknown_content(self, tmp_path):
        path = tmp_path / "notes.png"
        path.write_text("just some text pretending to be an image")
        assert detect_file_type(path) == file_types.UNKNOWN

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.pdf"
        path.write_bytes(b"")
        assert detect_file_type(path) == file_types.UNKNOWN

    def test_missing_file_does_not_raise(self, tmp_path):
        assert detect_file_type(tmp_path / "missing.png") == file_types.UNKNOWN

    def test_detection_is_repeatable(self, tmp_path):
        path = tmp_path / "artwork.pdf"
        path.write_bytes(MINIMAL_PDF)
        assert detect_file_type(path) == detect_file_type(path)
        assert path.read_bytes() == MINIMAL_PDF


class TestFileTypeLabel:
    """Short labels shown on placeholder thumbnails."""

    @pytest.mark.parametrize(
        "mime_type,label",
        [
            (file_types.PDF, "PDF"),
            (file_types.PSD, "PSD"),
            (file_types.POSTSCRIPT, "AI/EPS"),
            (file_types.TIFF, "TIFF"),
            (file_types.UNKNOWN, "FILE"),
        ],
    )
    def test_labels(self, mime_type, label):
        assert file_type_label(mime_type) == label

    def test_raster_types(self):
        assert file_types.is_raster(file_types.PNG)
        assert file_types.is_raster(file_types.JPEG)
        assert not file_types.is_raster(file_types.PDF)
        assert not file_types.is_raster(file_types.PSD)
