"""FastAPI application for the REFUND.AI service.

Provides the receipt OCR and parsing endpoints, refund email
generation, company lookups and the small helpers the web form uses.
Every error is returned as ``{"error": message}``.
"""

import shutil
import time
from dataclasses import dataclass
from typing import Annotated

import httpx
from fastapi import FastAPI, File, Header, HTTPException, Query, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from refundai import __version__
from refundai.companies import (
    LogoNotFoundError,
    UpstreamError,
    UpstreamTimeoutError,
    fetch_logo,
    search_companies,
)
from refundai.extraction.llm_parser import LLMFieldParser
from refundai.extraction.receipt_extractor import ReceiptExtractor
from refundai.extraction.vision import VisionAnalyzer
from refundai.i18n import (
    ISSUE_CATEGORIES,
    issue_reasons,
    locale_from_accept_language,
    normalize_locale,
)
from refundai.llm.client import LLMClient, LLMConfigurationError, LLMServiceError
from refundai.preprocessing.pipeline import preprocess_for_ocr
from refundai.refund.client import RefundClient
from refundai.refund.generator import RefundGenerator
from refundai.refund.models import GenerateRefundRequest
from refundai.utils.config import AppConfig, load_config
from refundai.utils.logger import get_logger
from refundai.validation.form_rules import FormValidator, to_generate_request

from .schemas import (
    CompanySearchRequest,
    ExtractionResponse,
    HealthResponse,
    IssueReasonsResponse,
    OcrAnalyzeRequest,
    ParseOcrTextRequest,
    RefundRequest,
    TestOpenAIRequest,
    ValidationResultResponse,
)

logger = get_logger(__name__)

app = FastAPI(
    title="REFUND.AI API",
    description="Read receipts and write refund request emails",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

LOGO_CACHE_CONTROL = "public, max-age=86400"


@dataclass
class Components:
    """Shared service objects built from one configuration."""

    config: AppConfig
    llm_client: LLMClient
    extractor: ReceiptExtractor
    refund_client: RefundClient


def _get_components() -> Components:
    """Initialize and return shared processing components."""
    config = load_config()
    llm_client = LLMClient(config.llm)
    return Components(
        config=config,
        llm_client=llm_client,
        extractor=ReceiptExtractor(config, llm_client=llm_client),
        refund_client=RefundClient(
            config,
            generator=RefundGenerator(llm_client, config.llm.email_temperature),
        ),
    )


def _error(status_code: int, message: str, **extra: object) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return _error(422, "Invalid request body.", details=jsonable_encoder(exc.errors()))


@app.exception_handler(Exception)
async def unhandled_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return _error(500, "Internal server error")


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Return system health status."""
    components = _get_components()
    return HealthResponse(
        status="healthy",
        version=__version__,
        tesseract_available=shutil.which("tesseract") is not None,
        llm_configured=components.llm_client.is_configured,
    )


@app.post("/generate-refund")
def generate_refund(request: GenerateRefundRequest) -> JSONResponse:
    """Generate a refund email with the LLM.

    Args:
        request: Normalized form data.

    Returns:
        Email subject and body with the support contacts.
    """
    components = _get_components()
    generator = RefundGenerator(
        components.llm_client, components.config.llm.email_temperature
    )
    try:
        response = generator.generate(request)
    except (LLMConfigurationError, LLMServiceError) as exc:
        logger.error("Refund generation failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return JSONResponse(content=response.to_json())


@app.post("/refund")
def refund(body: RefundRequest) -> JSONResponse:
    """Validate the refund form and generate the email with fallbacks.

    Returns:
        The email response plus the tier that produced it, or 422 with
        the localized validation results.
    """
    locale = normalize_locale(body.locale)
    report = FormValidator(locale).validate(body.form)
    if not report.all_valid or report.form is None:
        failed = [
            ValidationResultResponse(
                field_name=r.field_name,
                is_valid=r.is_valid,
                message=r.message,
                rule_name=r.rule_name,
            ).model_dump()
            for r in report.results
            if not r.is_valid
        ]
        return _error(422, failed[0]["message"], validation=failed)

    components = _get_components()
    request = to_generate_request(report.form, locale)
    outcome = components.refund_client.generate(request)
    return JSONResponse(
        content={
            **outcome.response.to_json(),
            "tier": outcome.tier,
            "errors": outcome.errors,
        }
    )


@app.post("/parse-ocr-text")
def parse_ocr_text(body: ParseOcrTextRequest) -> JSONResponse:
    """Parse OCR text into form fields with the LLM."""
    components = _get_components()
    parser = LLMFieldParser(
        components.llm_client, components.config.llm.parse_temperature
    )
    try:
        parsed = parser.parse(body.text)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except (LLMConfigurationError, LLMServiceError) as exc:
        logger.error("OCR text parsing failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return JSONResponse(content=parsed.to_json())


@app.post("/ocr-analyze")
def ocr_analyze(body: OcrAnalyzeRequest) -> JSONResponse:
    """Read order fields straight from a receipt image with a vision model."""
    components = _get_components()
    llm = components.config.llm
    analyzer = VisionAnalyzer(
        components.llm_client, model=llm.vision_model, max_tokens=llm.vision_max_tokens
    )
    try:
        data = analyzer.analyze(body.image_base64, body.language)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except (LLMConfigurationError, LLMServiceError) as exc:
        logger.error("Vision analysis failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return JSONResponse(
        content={"success": True, "data": data.model_dump(by_alias=True)}
    )


@app.post("/extract", response_model=ExtractionResponse)
async def extract_receipt(
    file: Annotated[UploadFile, File(...)],
    use_llm: Annotated[bool, Query()] = True,
) -> ExtractionResponse:
    """Extract form fields from an uploaded receipt.

    Args:
        file: Uploaded receipt (PNG, JPEG or PDF).
        use_llm: Whether to try LLM parsing before the regex rules.

    Returns:
        Recognized text, parsed fields and the parser that produced them.
    """
    start_time = time.time()
    content = await file.read()
    components = _get_components()

    try:
        result = components.extractor.extract(
            content,
            filename=file.filename or "document",
            content_type=file.content_type,
            use_llm=use_llm,
        )
    except ValueError as exc:
        logger.info("Rejected upload %s: %s", file.filename, exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RuntimeError as exc:
        logger.error("Extraction failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    read = result.read
    return ExtractionResponse(
        success=bool(read and read.has_text),
        source_file=read.source_file if read else (file.filename or "document"),
        text=result.text,
        fields=result.fields.to_json(),
        source=result.source,
        warnings=result.warnings,
        page_count=read.page_count if read else 0,
        confidence=read.confidence if read else 0.0,
        threshold=result.threshold,
        processing_time_ms=(time.time() - start_time) * 1000,
    )


@app.post("/preprocess")
async def preprocess_upload(file: Annotated[UploadFile, File(...)]) -> Response:
    """Return the binarized JPEG of an uploaded image."""
    content = await file.read()
    config = _get_components().config.preprocessing
    try:
        result = preprocess_for_ocr(content, config)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    headers = {}
    if result.threshold is not None:
        headers["X-Otsu-Threshold"] = str(result.threshold)
    return Response(
        content=result.jpeg,
        media_type="image/jpeg",
        headers=headers,
    )


@app.post("/company-search")
def company_search(body: CompanySearchRequest) -> JSONResponse:
    """Suggest companies matching a partial name."""
    config = _get_components().config.companies
    try:
        suggestions = search_companies(body.query, config)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except UpstreamTimeoutError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except (UpstreamError, httpx.HTTPError) as exc:
        logger.error("Company search failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return JSONResponse(content=suggestions)


@app.get("/logo-proxy")
def logo_proxy(domain: Annotated[str, Query()] = "") -> Response:
    """Proxy a company logo so the browser can cache it."""
    config = _get_components().config.companies
    try:
        content, content_type = fetch_logo(domain, config)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except (LogoNotFoundError, httpx.HTTPError) as exc:
        logger.info("No logo for %s: %s", domain, exc)
        raise HTTPException(status_code=404, detail="Logo not found") from exc
    return Response(
        content=content,
        media_type=content_type,
        headers={"Cache-Control": LOGO_CACHE_CONTROL},
    )


@app.get("/user-location")
async def user_location(
    x_country_code: Annotated[str | None, Header()] = None,
) -> JSONResponse:
    """Return the caller's country as reported by the edge proxy."""
    if not x_country_code or not x_country_code.strip():
        raise HTTPException(status_code=404, detail="Country not found")
    return JSONResponse(content={"country": x_country_code.strip().upper()})


@app.post("/test-openai")
def test_openai(body: TestOpenAIRequest) -> JSONResponse:
    """Send a raw prompt to the LLM and return the full completion."""
    if not body.prompt or not isinstance(body.prompt, str):
        raise HTTPException(status_code=400, detail="Missing or invalid 'prompt'.")
    components = _get_components()
    try:
        response = components.llm_client.create(
            [{"role": "user", "content": body.prompt}], model=body.model
        )
    except (LLMConfigurationError, LLMServiceError) as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return JSONResponse(content=jsonable_encoder(response.model_dump()))


@app.get("/issue-reasons", response_model=IssueReasonsResponse)
async def list_issue_reasons(
    category: Annotated[str, Query()] = "product",
    locale: Annotated[str | None, Query()] = None,
    accept_language: Annotated[str | None, Header()] = None,
) -> IssueReasonsResponse:
    """List the localized issue reasons of a category."""
    if category not in ISSUE_CATEGORIES:
        raise HTTPException(
            status_code=400, detail=f"Unknown issue category: {category}"
        )
    if locale:
        resolved = normalize_locale(locale)
    else:
        resolved = locale_from_accept_language(accept_language)
    return IssueReasonsResponse(
        category=category,
        locale=resolved,
        reasons=issue_reasons(category, resolved),
    )
