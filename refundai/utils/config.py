"""Configuration management for the refund service.

Loads and validates YAML configuration with sensible defaults for image
preprocessing, OCR, the hosted LLM, the remote refund service and the
company lookup endpoints. Secrets are read from the environment (and a
local ``.env`` file), never from the YAML file.
"""

import logging
import os
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

load_dotenv()


class PreprocessingConfig(BaseModel):
    """Configuration for receipt image preprocessing."""

    resize_enabled: bool = True
    min_dimension: int = 1200
    max_dimension: int = 2000
    binarize_enabled: bool = True
    jpeg_quality: int = 95


class OCRConfig(BaseModel):
    """Configuration for Tesseract OCR and PDF rendering."""

    tesseract_cmd: str | None = None
    default_lang: str = "eng"
    psm: int = 3
    pdf_max_pages: int = 3
    pdf_scale: float = 1.5


class LLMConfig(BaseModel):
    """Configuration for the hosted chat-completion API."""

    base_url: str = "https://api.openai.com/v1"
    api_key_env: str = "OPENAI_API_KEY"
    model: str = "gpt-4o-mini"
    vision_model: str = "gpt-4o-mini"
    parse_temperature: float = 0.1
    email_temperature: float = 0.4
    vision_max_tokens: int = 300
    timeout: float = 30.0
    app_title: str = "REFUND.AI"
    referer: str | None = None

    @property
    def api_key(self) -> str | None:
        """Return the API key from the configured environment variable."""
        return os.getenv(self.api_key_env) or None


class ServiceConfig(BaseModel):
    """Configuration for the remote refund generation endpoint."""

    functions_url: str | None = None
    anon_key_env: str = "REFUNDAI_ANON_KEY"
    timeout: float = 30.0

    @property
    def anon_key(self) -> str | None:
        """Return the anonymous service key from the environment."""
        return os.getenv(self.anon_key_env) or None


class CompaniesConfig(BaseModel):
    """Configuration for company autocomplete and logo lookups."""

    suggest_url: str = "https://autocomplete.clearbit.com/v1/companies/suggest"
    logo_url: str = "https://logo.clearbit.com"
    timeout: float = 3.0
    min_query_length: int = 2
    max_query_length: int = 64


class ServerConfig(BaseModel):
    """Bind address of the API server."""

    host: str = "0.0.0.0"
    port: int = 8000


class AppConfig(BaseModel):
    """Top-level application configuration."""

    preprocessing: PreprocessingConfig = Field(default_factory=PreprocessingConfig)
    ocr: OCRConfig = Field(default_factory=OCRConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    service: ServiceConfig = Field(default_factory=ServiceConfig)
    companies: CompaniesConfig = Field(default_factory=CompaniesConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    default_locale: str = "en"
    log_level: str = "INFO"


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.
            Defaults to ``$REFUNDAI_CONFIG`` or configs/config.yaml.

    Returns:
        Validated application configuration.
    """
    if path is None:
        path = Path(os.getenv("REFUNDAI_CONFIG", "configs/config.yaml"))

    if path.exists():
        logger.info("Loading configuration from %s", path)
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        return AppConfig(**raw)

    logger.info("No config file found at %s, using defaults", path)
    return AppConfig()
