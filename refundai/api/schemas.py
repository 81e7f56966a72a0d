"""Pydantic request/response schemas for the FastAPI endpoints.

Request bodies are permissive (``Any``) where the endpoint answers a
missing or malformed field with its own 400 message rather than a
generic validation error.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class HealthResponse(BaseModel):
    """Response schema for the health check endpoint."""

    status: str
    version: str
    tesseract_available: bool
    llm_configured: bool


class ParseOcrTextRequest(BaseModel):
    """Request body of ``/parse-ocr-text``."""

    text: Any = None


class OcrAnalyzeRequest(BaseModel):
    """Request body of ``/ocr-analyze``."""

    model_config = ConfigDict(populate_by_name=True)

    image_base64: Any = Field(None, alias="imageBase64")
    language: str = "en"


class CompanySearchRequest(BaseModel):
    """Request body of ``/company-search``."""

    query: Any = None


class TestOpenAIRequest(BaseModel):
    """Request body of ``/test-openai``."""

    prompt: Any = None
    model: str | None = None


class RefundRequest(BaseModel):
    """Request body of ``/refund``: raw form values plus the UI locale."""

    form: dict[str, Any] = Field(default_factory=dict)
    locale: str = "en"


class ValidationResultResponse(BaseModel):
    """Response schema for a validation check result."""

    field_name: str
    is_valid: bool
    message: str
    rule_name: str


class ExtractionResponse(BaseModel):
    """Response schema for a receipt extraction request."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    source_file: str
    text: str
    fields: dict[str, Any]
    source: str
    warnings: list[str]
    page_count: int
    confidence: float
    threshold: int | None = None
    processing_time_ms: float


class IssueReasonsResponse(BaseModel):
    """Localized issue reasons of one category."""

    category: str
    locale: str
    reasons: list[str]
