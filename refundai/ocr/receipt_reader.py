"""Receipt text recognition for uploaded images and PDFs.

Routes an uploaded file to the right loader, preprocesses every page and
runs OCR on it, producing a single text blob for field parsing.
"""

import io
from dataclasses import dataclass, field
from pathlib import Path

from refundai.preprocessing.pipeline import (
    PreprocessingPipeline,
    load_image,
    preprocess_image,
)
from refundai.utils.config import AppConfig
from refundai.utils.logger import get_logger

from .pdf_handler import PDFHandler
from .tesseract_engine import OCRResult, TesseractEngine

logger = get_logger(__name__)

NO_TEXT_MESSAGE = "No text could be extracted from the file."
UNSUPPORTED_MESSAGE = (
    "Unsupported file type. Please upload an image (PNG, JPG) or a PDF."
)
_IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".gif", ".bmp", ".tif", ".tiff", ".webp"}


class UnsupportedFileError(ValueError):
    """Raised when an uploaded file is neither an image nor a PDF."""


@dataclass
class ReadResult:
    """Text recognized from one uploaded file."""

    source_file: str
    kind: str
    text: str
    has_text: bool
    pages: list[OCRResult] = field(default_factory=list)
    thresholds: list[int | None] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def confidence(self) -> float:
        if not self.pages:
            return 0.0
        return sum(p.confidence for p in self.pages) / len(self.pages)


def page_separator(page_number: int) -> str:
    """Separator inserted after ``page_number`` when joining PDF pages."""
    return f"\n\n--- End of Page {page_number} ---\n\n"


def detect_kind(
    filename: str, content_type: str | None = None, head: bytes = b""
) -> str:
    """Classify an upload as ``"image"`` or ``"pdf"``.

    Args:
        filename: Original file name.
        content_type: MIME type reported by the client, if any.
        head: Leading bytes of the file for magic-number sniffing.

    Returns:
        ``"image"`` or ``"pdf"``.

    Raises:
        UnsupportedFileError: For any other kind of file.
    """
    content_type = (content_type or "").lower()
    suffix = Path(filename).suffix.lower()

    if content_type.startswith("image/") or suffix in _IMAGE_SUFFIXES:
        return "image"
    if suffix == ".pdf" or content_type == "application/pdf" or head[:4] == b"%PDF":
        return "pdf"
    raise UnsupportedFileError(UNSUPPORTED_MESSAGE)


class ReceiptReader:
    """Loads receipts, preprocesses them and runs OCR.

    Args:
        config: Application configuration object.
    """

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.preprocessing = PreprocessingPipeline(config.preprocessing)
        self.pdf_handler = PDFHandler(
            scale=config.ocr.pdf_scale, max_pages=config.ocr.pdf_max_pages
        )
        self.ocr_engine = TesseractEngine(
            tesseract_cmd=config.ocr.tesseract_cmd,
            default_lang=config.ocr.default_lang,
            psm=config.ocr.psm,
        )

    def read(
        self,
        source: Path | bytes,
        filename: str | None = None,
        content_type: str | None = None,
    ) -> ReadResult:
        """Recognize the text of a receipt image or PDF.

        Args:
            source: Path to the file, or raw file bytes.
            filename: Display name, used for type detection of bytes input.
            content_type: MIME type reported by the uploader.

        Returns:
            Recognized text and per-page OCR results.
        """
        data = source if isinstance(source, bytes) else Path(source).read_bytes()
        if filename is None:
            filename = "document" if isinstance(source, bytes) else Path(source).name

        kind = detect_kind(filename, content_type, data[:8])
        logger.info("Reading %s as %s", filename, kind)

        if kind == "pdf":
            pages, thresholds, text = self._read_pdf(data)
        else:
            processed = self.preprocessing.process(load_image(data))
            page = self.ocr_engine.extract_text(processed.image)
            pages, thresholds, text = [page], [processed.threshold], page.text

        text = text.strip()
        has_text = bool(text)
        if not has_text:
            logger.warning("No text recognized in %s", filename)

        return ReadResult(
            source_file=filename,
            kind=kind,
            text=text if has_text else NO_TEXT_MESSAGE,
            has_text=has_text,
            pages=pages,
            thresholds=thresholds,
        )

    def _read_pdf(
        self, data: bytes
    ) -> tuple[list[OCRResult], list[int | None], str]:
        """OCR the leading pages of a PDF and join their text."""
        images = self.pdf_handler.pdf_to_images(data)
        pages: list[OCRResult] = []
        thresholds: list[int | None] = []
        buf = io.StringIO()

        for i, image in enumerate(images, 1):
            processed = preprocess_image(image, self.config.preprocessing)
            page = self.ocr_engine.extract_text(processed.image)
            pages.append(page)
            thresholds.append(processed.threshold)
            buf.write(page.text)
            if i < len(images):
                buf.write(page_separator(i))

        return pages, thresholds, buf.getvalue()
