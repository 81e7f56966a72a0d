"""Tests for PDF page rendering."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
from PIL import Image

from refundai.ocr.pdf_handler import PDFHandler


def _mock_pil_image(width: int = 300, height: int = 200) -> Image.Image:
    """Create a mock PIL image."""
    return Image.fromarray(np.zeros((height, width, 3), dtype=np.uint8))


class TestPDFHandler:
    """Tests for the PDFHandler class."""

    def test_default_dpi_from_scale(self) -> None:
        handler = PDFHandler()
        assert handler.dpi == 108
        assert handler.max_pages == 3

    def test_custom_scale(self) -> None:
        assert PDFHandler(scale=2.0).dpi == 144

    @patch("refundai.ocr.pdf_handler.convert_from_path")
    def test_pdf_to_images_from_path(self, mock_convert: MagicMock) -> None:
        mock_convert.return_value = [_mock_pil_image(), _mock_pil_image()]
        handler = PDFHandler(scale=1.5, max_pages=3)

        with patch.object(Path, "exists", return_value=True):
            images = handler.pdf_to_images(Path("/fake/doc.pdf"))

        assert len(images) == 2
        assert all(isinstance(img, np.ndarray) for img in images)
        mock_convert.assert_called_once_with(
            "/fake/doc.pdf", dpi=108, first_page=1, last_page=3
        )

    @patch("refundai.ocr.pdf_handler.convert_from_bytes")
    def test_pdf_to_images_from_bytes(self, mock_convert: MagicMock) -> None:
        mock_convert.return_value = [_mock_pil_image()]
        images = PDFHandler().pdf_to_images(b"%PDF-1.4 fake content")

        assert len(images) == 1
        assert images[0].shape == (200, 300, 3)

    @patch("refundai.ocr.pdf_handler.convert_from_bytes")
    def test_page_limit(self, mock_convert: MagicMock) -> None:
        mock_convert.return_value = [_mock_pil_image() for _ in range(5)]
        images = PDFHandler(max_pages=3).pdf_to_images(b"%PDF")
        assert len(images) == 3

    def test_pdf_to_images_file_not_found(self) -> None:
        with pytest.raises(FileNotFoundError):
            PDFHandler().pdf_to_images(Path("/nonexistent/file.pdf"))

    @patch("refundai.ocr.pdf_handler.convert_from_bytes")
    def test_conversion_error(self, mock_convert: MagicMock) -> None:
        mock_convert.side_effect = Exception("poppler missing")
        with pytest.raises(RuntimeError, match="PDF conversion failed"):
            PDFHandler().pdf_to_images(b"%PDF")
