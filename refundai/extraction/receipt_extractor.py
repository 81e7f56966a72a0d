"""Receipt extraction pipeline: file -> OCR text -> structured fields.

The LLM parser is preferred; when it is not configured or its call
fails, the regex extractor takes over so the form still gets whatever
can be read locally.
"""

from dataclasses import dataclass, field
from pathlib import Path

from refundai.llm.client import LLMClient, LLMConfigurationError, LLMServiceError
from refundai.ocr.receipt_reader import ReadResult, ReceiptReader
from refundai.utils.config import AppConfig
from refundai.utils.logger import get_logger

from .fields import ParsedFormData
from .llm_parser import LLMFieldParser
from .rule_extractor import RuleExtractor

logger = get_logger(__name__)


@dataclass
class ExtractionResult:
    """Outcome of running the extraction pipeline on one file."""

    text: str
    fields: ParsedFormData
    source: str
    warnings: list[str] = field(default_factory=list)
    read: ReadResult | None = None

    @property
    def threshold(self) -> int | None:
        if self.read is None or not self.read.thresholds:
            return None
        return self.read.thresholds[0]


class ReceiptExtractor:
    """Runs OCR on a receipt and parses the recognized text.

    Args:
        config: Application configuration.
        llm_client: LLM client; built from the configuration if omitted.
        reader: Receipt reader; built from the configuration if omitted.
    """

    def __init__(
        self,
        config: AppConfig,
        llm_client: LLMClient | None = None,
        reader: ReceiptReader | None = None,
    ) -> None:
        self.config = config
        self.reader = reader or ReceiptReader(config)
        self.llm_parser = LLMFieldParser(
            llm_client or LLMClient(config.llm),
            temperature=config.llm.parse_temperature,
        )
        self.rule_extractor = RuleExtractor()

    def extract(
        self,
        source: Path | bytes,
        filename: str | None = None,
        content_type: str | None = None,
        use_llm: bool = True,
    ) -> ExtractionResult:
        """Extract form fields from a receipt image or PDF.

        Args:
            source: Path to the file or raw bytes.
            filename: Display name of the upload.
            content_type: MIME type reported by the uploader.
            use_llm: Whether to try the LLM parser before the regex rules.

        Returns:
            Recognized text, parsed fields and the parser that produced them.
        """
        read = self.reader.read(source, filename, content_type)
        if not read.has_text:
            return ExtractionResult(
                text=read.text,
                fields=ParsedFormData(),
                source="none",
                warnings=[read.text],
                read=read,
            )

        result = self.parse_text(read.text, use_llm=use_llm)
        result.read = read
        return result

    def parse_text(self, text: str, use_llm: bool = True) -> ExtractionResult:
        """Parse already recognized text, falling back to regex rules."""
        warnings: list[str] = []

        if use_llm:
            try:
                fields = self.llm_parser.parse(text)
                return ExtractionResult(text=text, fields=fields, source="llm")
            except (LLMConfigurationError, LLMServiceError) as exc:
                logger.warning("LLM parsing unavailable, using rules: %s", exc)
                warnings.append(f"LLM parsing unavailable: {exc}")

        fields = self.rule_extractor.extract(text)
        return ExtractionResult(
            text=text, fields=fields, source="rules", warnings=warnings
        )
