"""PDF page rendering for receipt OCR.

Only the first few pages of a PDF are rendered, at a modest scale, since
order confirmations and invoices keep the useful details up front.
"""

from pathlib import Path

import numpy as np
from pdf2image import convert_from_bytes, convert_from_path

from refundai.utils.logger import get_logger

logger = get_logger(__name__)

# pdf2image renders at 72 DPI for a 1.0 scale.
_BASE_DPI = 72


class PDFHandler:
    """Renders PDF pages to images.

    Args:
        scale: Rendering scale relative to 72 DPI.
        max_pages: Maximum number of leading pages to render.
    """

    def __init__(self, scale: float = 1.5, max_pages: int = 3) -> None:
        self.scale = scale
        self.max_pages = max_pages

    @property
    def dpi(self) -> int:
        """Rendering resolution derived from the scale."""
        return round(_BASE_DPI * self.scale)

    def pdf_to_images(self, pdf_source: Path | bytes) -> list[np.ndarray]:
        """Render the leading pages of a PDF.

        Args:
            pdf_source: Path to a PDF file or raw PDF bytes.

        Returns:
            List of RGB page images, at most ``max_pages`` long.

        Raises:
            FileNotFoundError: If a path is given and the file does not exist.
            RuntimeError: If PDF conversion fails.
        """
        options = {"dpi": self.dpi, "first_page": 1, "last_page": self.max_pages}
        try:
            if isinstance(pdf_source, str | Path):
                path = Path(pdf_source)
                if not path.exists():
                    raise FileNotFoundError(f"PDF file not found: {path}")
                pil_images = convert_from_path(str(path), **options)
            else:
                pil_images = convert_from_bytes(pdf_source, **options)
        except FileNotFoundError:
            raise
        except Exception as exc:
            raise RuntimeError(f"PDF conversion failed: {exc}") from exc

        images = [np.array(img.convert("RGB")) for img in pil_images[: self.max_pages]]
        logger.info("Rendered %d PDF pages at %d DPI", len(images), self.dpi)
        return images
