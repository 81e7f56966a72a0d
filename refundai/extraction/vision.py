"""Direct receipt analysis with a vision-capable chat model.

Skips local OCR entirely: the (preprocessed) image is sent as a data URL
and the model returns the five order fields the form needs most.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from refundai.i18n import normalize_locale
from refundai.llm.client import LLMClient
from refundai.utils.logger import get_logger

from .fields import coerce_amount

logger = get_logger(__name__)

_PROMPTS = {
    "en": (
        "Analyze this receipt or screenshot image. Extract in structured JSON:\n"
        '- company: company name or domain (e.g., "Amazon" or "amazon.com")\n'
        "- productName: product/service name\n"
        "- productValue: value as number (e.g., 49.99)\n"
        "- orderNumber: order number\n"
        "- purchaseDate: purchase date in ISO format (YYYY-MM-DD)\n"
        "Respond ONLY with valid JSON, no extra text. Use null for missing info."
    ),
    "fr": (
        "Analysez cette image de reçu ou capture d'écran. Extrayez en JSON structuré:\n"
        '- company: nom de l\'entreprise ou domaine (ex: "Amazon" ou "amazon.com")\n'
        "- productName: nom du produit/service\n"
        "- productValue: valeur en nombre (ex: 49.99)\n"
        "- orderNumber: numéro de commande\n"
        "- purchaseDate: date d'achat au format ISO (YYYY-MM-DD)\n"
        "Répondez UNIQUEMENT avec un JSON valide, sans texte supplémentaire. "
        "Si une info manque, mettez null."
    ),
}


class OcrExtractedData(BaseModel):
    """Order fields read from a receipt image; missing ones are ``None``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    company: str | None = None
    product_name: str | None = None
    product_value: float | None = None
    order_number: str | None = None
    purchase_date: str | None = None


def vision_prompt(language: str) -> str:
    """Return the extraction prompt for a language (``en`` or ``fr``)."""
    return _PROMPTS[normalize_locale(language)]


def _text_or_none(value: Any) -> str | None:
    return str(value) if value else None


class VisionAnalyzer:
    """Extracts order fields from receipt images with a vision model.

    Args:
        client: LLM client.
        model: Vision-capable model name.
        max_tokens: Completion token cap.
    """

    def __init__(
        self, client: LLMClient, model: str | None = None, max_tokens: int = 300
    ) -> None:
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    def analyze(self, image_data_url: object, language: str = "en") -> OcrExtractedData:
        """Analyze a receipt image.

        Args:
            image_data_url: Image as a ``data:`` URL (or any URL the model
                can fetch).
            language: Prompt language, ``en`` or ``fr``.

        Returns:
            Extracted order fields.

        Raises:
            ValueError: If the image is missing or not a string.
            LLMConfigurationError: If the LLM is not configured.
            LLMServiceError: If the call fails or returns invalid JSON.
        """
        if not image_data_url or not isinstance(image_data_url, str):
            raise ValueError("Missing or invalid imageBase64")

        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": vision_prompt(language)},
                    {"type": "image_url", "image_url": {"url": image_data_url}},
                ],
            }
        ]
        # An empty reply means nothing was recognized.
        raw = self.client.complete_json(
            messages,
            model=self.model,
            json_mode=False,
            max_tokens=self.max_tokens,
            allow_empty=True,
        )

        value = raw.get("productValue")
        result = OcrExtractedData(
            company=_text_or_none(raw.get("company")),
            product_name=_text_or_none(raw.get("productName")),
            product_value=coerce_amount(value) if value else None,
            order_number=_text_or_none(raw.get("orderNumber")),
            purchase_date=_text_or_none(raw.get("purchaseDate")),
        )
        logger.info(
            "Vision analysis extracted %s",
            sorted(result.model_dump(exclude_none=True)),
        )
        return result
