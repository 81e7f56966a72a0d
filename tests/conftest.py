"""Shared test fixtures for the REFUND.AI test suite."""

import io
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from refundai.utils.config import AppConfig


@pytest.fixture
def sample_image() -> np.ndarray:
    """Create a simple synthetic grayscale test image."""
    image = np.zeros((200, 300), dtype=np.uint8)
    image[50:150, 50:250] = 255
    return image


@pytest.fixture
def sample_color_image() -> np.ndarray:
    """Create a simple synthetic RGB test image."""
    image = np.zeros((200, 300, 3), dtype=np.uint8)
    image[50:150, 50:250] = (255, 255, 255)
    return image


@pytest.fixture
def png_bytes() -> bytes:
    """Create a small PNG with a white box on a black background."""
    image = np.zeros((100, 200, 3), dtype=np.uint8)
    image[25:75, 50:150] = 255
    buf = io.BytesIO()
    Image.fromarray(image).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def app_config() -> AppConfig:
    """Default configuration, independent of configs/config.yaml."""
    return AppConfig()


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config_dir(project_root: Path) -> Path:
    """Return the configs directory path."""
    return project_root / "configs"
