"""Receipt image preprocessing pipeline for OCR.

Resizes the image into a size band that suits Tesseract, converts it to
grayscale, binarizes it with Otsu's threshold and encodes the result as
a high quality JPEG, tracking quality metrics before and after.
"""

import base64
import io
from dataclasses import dataclass

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from refundai.utils.config import PreprocessingConfig
from refundai.utils.logger import get_logger

from .binarize import binarize_otsu, to_grayscale

logger = get_logger(__name__)


@dataclass
class QualityMetrics:
    """Before/after image quality measurements."""

    sharpness_before: float
    sharpness_after: float
    contrast_before: float
    contrast_after: float


@dataclass
class PreprocessResult:
    """Output of the preprocessing pipeline."""

    image: np.ndarray
    threshold: int | None
    scale: float
    metrics: QualityMetrics
    jpeg: bytes | None = None

    @property
    def data_url(self) -> str | None:
        if self.jpeg is None:
            return None
        return to_data_url(self.jpeg)


def calculate_sharpness(image: np.ndarray) -> float:
    """Calculate image sharpness using Laplacian variance.

    Args:
        image: Input image (RGB or grayscale).

    Returns:
        Sharpness score (higher means sharper).
    """
    return float(cv2.Laplacian(to_grayscale(image), cv2.CV_64F).var())


def calculate_contrast(image: np.ndarray) -> float:
    """Calculate image contrast as the standard deviation of pixel intensities.

    Args:
        image: Input image (RGB or grayscale).

    Returns:
        Contrast score (higher means more contrast).
    """
    return float(to_grayscale(image).std())


def compute_scale(
    width: int, height: int, min_dim: int = 1200, max_dim: int = 2000
) -> float:
    """Compute the resize factor that brings the largest side into range.

    Small images are enlarged until their largest side reaches ``min_dim``
    and large ones are shrunk so it does not exceed ``max_dim``.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.
        min_dim: Target minimum for the largest side.
        max_dim: Cap for the largest side.

    Returns:
        Scale factor (1.0 when already in range).
    """
    largest = max(width, height)
    if largest <= 0:
        return 1.0
    if largest < min_dim:
        return min_dim / largest
    if largest > max_dim:
        return max_dim / largest
    return 1.0


def load_image(data: bytes) -> np.ndarray:
    """Decode image bytes into an RGB numpy array.

    Args:
        data: Raw image file contents (PNG, JPEG, ...).

    Returns:
        RGB ``uint8`` image.

    Raises:
        ValueError: If the bytes are not a decodable image.
    """
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ValueError("Failed to load image") from exc
    return np.array(img.convert("RGB"))


def encode_jpeg(image: np.ndarray, quality: int = 95) -> bytes:
    """Encode an RGB or grayscale image as JPEG.

    Args:
        image: Image to encode.
        quality: JPEG quality (0-100).

    Returns:
        JPEG file bytes.
    """
    if image.ndim == 3:
        image = cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
    ok, buf = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        raise RuntimeError("JPEG encoding failed")
    return buf.tobytes()


def to_data_url(jpeg: bytes) -> str:
    """Wrap JPEG bytes in a ``data:`` URL."""
    return "data:image/jpeg;base64," + base64.b64encode(jpeg).decode("ascii")


class PreprocessingPipeline:
    """Receipt image preprocessing pipeline.

    Args:
        config: Preprocessing configuration controlling which steps to apply.
    """

    def __init__(self, config: PreprocessingConfig) -> None:
        self.config = config

    def resize(self, image: np.ndarray) -> tuple[np.ndarray, float]:
        """Resize an image so its largest side falls in the configured band.

        Args:
            image: Input image.

        Returns:
            Tuple of (resized image, scale factor).
        """
        height, width = image.shape[:2]
        scale = compute_scale(
            width, height, self.config.min_dimension, self.config.max_dimension
        )
        if scale == 1.0:
            return image, scale

        out_w = max(1, round(width * scale))
        out_h = max(1, round(height * scale))
        interpolation = cv2.INTER_CUBIC if scale > 1.0 else cv2.INTER_AREA
        resized = cv2.resize(image, (out_w, out_h), interpolation=interpolation)
        logger.debug("Resized %dx%d -> %dx%d", width, height, out_w, out_h)
        return resized, scale

    def process(self, image: np.ndarray, resize: bool = True) -> PreprocessResult:
        """Run the preprocessing pipeline on an image.

        Args:
            image: Input image (RGB or grayscale).
            resize: Whether to apply the size band. Rendered PDF pages
                are binarized at their rendered size.

        Returns:
            Preprocessing result with the processed image and metrics.
        """
        metrics = QualityMetrics(
            sharpness_before=calculate_sharpness(image),
            contrast_before=calculate_contrast(image),
            sharpness_after=0.0,
            contrast_after=0.0,
        )

        result = image
        scale = 1.0
        threshold = None

        if resize and self.config.resize_enabled:
            result, scale = self.resize(result)

        if self.config.binarize_enabled:
            result, threshold = binarize_otsu(result)
        else:
            result = to_grayscale(result)

        metrics.sharpness_after = calculate_sharpness(result)
        metrics.contrast_after = calculate_contrast(result)

        logger.info(
            "Preprocessing complete: scale %.2f, threshold %s, "
            "sharpness %.1f->%.1f, contrast %.1f->%.1f",
            scale,
            threshold,
            metrics.sharpness_before,
            metrics.sharpness_after,
            metrics.contrast_before,
            metrics.contrast_after,
        )
        return PreprocessResult(
            image=result, threshold=threshold, scale=scale, metrics=metrics
        )

    def process_bytes(self, data: bytes) -> PreprocessResult:
        """Preprocess image file bytes and encode the result as JPEG.

        Args:
            data: Raw image file contents.

        Returns:
            Preprocessing result carrying the encoded JPEG.
        """
        result = self.process(load_image(data))
        result.jpeg = encode_jpeg(result.image, self.config.jpeg_quality)
        return result


def preprocess_for_ocr(
    data: bytes, config: PreprocessingConfig | None = None
) -> PreprocessResult:
    """Decode, resize, binarize and JPEG-encode receipt image bytes.

    Args:
        data: Raw image file contents.
        config: Preprocessing configuration (defaults when omitted).

    Returns:
        Result with the binary image, threshold, metrics and JPEG; its
        ``data_url`` is the ``data:image/jpeg;base64,...`` form.

    Raises:
        ValueError: If the bytes are not a decodable image.
    """
    return PreprocessingPipeline(config or PreprocessingConfig()).process_bytes(data)


def preprocess_image(
    image: np.ndarray, config: PreprocessingConfig | None = None
) -> PreprocessResult:
    """Grayscale and binarize an already decoded image without resizing."""
    pipeline = PreprocessingPipeline(config or PreprocessingConfig())
    return pipeline.process(image, resize=False)
