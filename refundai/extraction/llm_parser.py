"""LLM-based parsing of OCR text into receipt fields."""

from refundai.llm.client import LLMClient
from refundai.utils.logger import get_logger

from .fields import ParsedFormData

logger = get_logger(__name__)

PARSING_SYSTEM_PROMPT = """\
You are an expert at extracting structured information from OCR text of receipts and invoices.
Your task is to analyze the text and return a valid JSON object containing the extracted data.
The JSON object should have the following possible keys: "productName", "productValue" (as a number), "currency" (3-letter code), "orderNumber", "purchaseDate" (in YYYY-MM-DD format), "company", "otherCompany", "firstName", "lastName", "issueType", "description".
- Use the "company" key for well-known company names.
- If you find a website domain instead of a name, use the "otherCompany" key for the domain (e.g., "example.com").
- The "issueType" and "description" fields are unlikely to be on a standard receipt. Only populate them if the document explicitly describes a problem or reason for return.
- Pay close attention to shipping or billing address sections, as they often contain the customer's "firstName" and "lastName". Extract these if present.
If a piece of information is not found, omit the key from the JSON object.
Your response must be ONLY the valid JSON object, with no extra text, explanations, or markdown formatting."""


def build_parsing_prompt(ocr_text: str) -> tuple[str, str]:
    """Build the system and user prompts for receipt field parsing.

    Args:
        ocr_text: Text recognized on the receipt.

    Returns:
        Tuple of (system prompt, user prompt).
    """
    user = (
        "Here is the OCR text from a receipt/invoice. Please extract the "
        "information and return it as a JSON object.\n\n"
        f'"""\n{ocr_text}\n"""'
    )
    return PARSING_SYSTEM_PROMPT, user


class LLMFieldParser:
    """Parses OCR text into :class:`ParsedFormData` with a chat model.

    Args:
        client: LLM client.
        temperature: Sampling temperature; kept low for extraction.
    """

    def __init__(self, client: LLMClient, temperature: float = 0.1) -> None:
        self.client = client
        self.temperature = temperature

    def parse(self, text: object) -> ParsedFormData:
        """Parse receipt text into structured fields.

        Args:
            text: OCR text.

        Returns:
            Parsed, coerced fields.

        Raises:
            ValueError: If the text is missing or not a string.
            LLMConfigurationError: If the LLM is not configured.
            LLMServiceError: If the call fails or returns invalid JSON.
        """
        if not text or not isinstance(text, str):
            raise ValueError("Missing or invalid 'text' in request body.")

        system, user = build_parsing_prompt(text)
        raw = self.client.complete_json(
            [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            temperature=self.temperature,
            json_mode=True,
        )
        parsed = ParsedFormData.model_validate(raw)
        logger.info(
            "LLM parsing returned %d of %d keys",
            len(parsed.model_dump(exclude_none=True)),
            len(raw),
        )
        return parsed
