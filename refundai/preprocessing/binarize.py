"""Grayscale conversion and Otsu binarization for receipt images.

The threshold is computed from the intensity histogram by maximizing the
between-class variance, then applied so that pixels strictly brighter
than the threshold become white and everything else black.
"""

import cv2
import numpy as np

from refundai.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_THRESHOLD = 127
_LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert an RGB(A) image to 8-bit luma.

    Uses ``Y = 0.299 R + 0.587 G + 0.114 B`` rounded to the nearest
    integer. Grayscale input is returned unchanged.

    Args:
        image: Input image (RGB, RGBA or grayscale).

    Returns:
        Grayscale ``uint8`` image.
    """
    if image.ndim == 2:
        return image
    luma = image[..., :3].astype(np.float64) @ _LUMA_WEIGHTS
    return np.clip(np.floor(luma + 0.5), 0, 255).astype(np.uint8)


def otsu_threshold(gray: np.ndarray) -> int:
    """Compute Otsu's threshold for a grayscale image.

    Args:
        gray: Grayscale ``uint8`` image.

    Returns:
        Threshold in ``0..255``. Images with a single intensity level
        have no valid split and get ``DEFAULT_THRESHOLD``.
    """
    hist = np.bincount(gray.ravel(), minlength=256).astype(np.float64)
    levels = np.arange(256, dtype=np.float64)
    total = hist.sum()
    weighted_total = float((hist * levels).sum())

    w_b = np.cumsum(hist)
    w_f = total - w_b
    sum_b = np.cumsum(hist * levels)

    valid = (w_b > 0) & (w_f > 0)
    m_b = np.divide(sum_b, w_b, out=np.zeros_like(sum_b), where=w_b > 0)
    m_f = np.divide(
        weighted_total - sum_b, w_f, out=np.zeros_like(sum_b), where=w_f > 0
    )
    between = np.where(valid, w_b * w_f * (m_b - m_f) ** 2, 0.0)

    if not between.any():
        return DEFAULT_THRESHOLD
    # argmax keeps the first maximum, i.e. the lowest threshold on ties.
    return int(np.argmax(between))


def binarize_otsu(image: np.ndarray) -> tuple[np.ndarray, int]:
    """Binarize an image using Otsu's automatic thresholding.

    Args:
        image: Input image (RGB, RGBA or grayscale).

    Returns:
        Tuple of (binary image with values 0 or 255, threshold used).
    """
    gray = to_grayscale(image)
    threshold = otsu_threshold(gray)
    _, binary = cv2.threshold(gray, threshold, 255, cv2.THRESH_BINARY)
    logger.debug("Applied Otsu binarization (threshold=%d)", threshold)
    return binary, threshold
