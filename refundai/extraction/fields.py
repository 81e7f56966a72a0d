"""Structured receipt fields and their merge into the refund form.

``ParsedFormData`` is the flat record produced by field parsing. Every
field is optional and values are coerced at the boundary, so whatever
the LLM or the regex fallback returns, the form only ever receives
clean strings, floats and ISO dates.
"""

import math
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from refundai.companies import find_popular_company, looks_like_domain
from refundai.i18n import parse_iso_date
from refundai.utils.logger import get_logger

logger = get_logger(__name__)

_CURRENCY_SYMBOLS = {"$": "USD", "€": "EUR", "£": "GBP", "¥": "JPY"}
_CURRENCY_TOKEN = re.compile(
    r"[$€£¥]|(?<![A-Za-z])(?:USD|EUR|GBP|JPY|CAD|CHF|AUD)(?![A-Za-z])",
    re.IGNORECASE,
)
# Optional sign, then digits and separators only; anything else is not an amount.
_AMOUNT_TEXT = re.compile(r"-?[\d.,]+")


def coerce_amount(value: Any) -> float | None:
    """Coerce a number or a formatted amount string into a float.

    Handles currency symbols and codes, thousands separators and a comma
    used as decimal separator (``"1.234,56"``, ``"49,99"``).

    Returns:
        The amount, or ``None`` when the value is not numeric.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value) if math.isfinite(value) else None

    text = re.sub(r"\s+", "", _CURRENCY_TOKEN.sub("", str(value)))
    if not _AMOUNT_TEXT.fullmatch(text) or not re.search(r"\d", text):
        return None

    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        head, _, tail = text.rpartition(",")
        if text.count(",") == 1 and len(tail) in (1, 2):
            text = f"{head}.{tail}"
        else:
            text = text.replace(",", "")
    elif text.count(".") > 1:
        text = text.replace(".", "")

    try:
        amount = float(text)
    except ValueError:
        return None
    return amount if math.isfinite(amount) else None


def coerce_currency(value: Any) -> str | None:
    """Normalize a currency to an upper-case 3-letter code."""
    if value is None:
        return None
    text = str(value).strip()
    if text in _CURRENCY_SYMBOLS:
        return _CURRENCY_SYMBOLS[text]
    text = text.upper()
    return text if re.fullmatch(r"[A-Z]{3}", text) else None


class ParsedFormData(BaseModel):
    """Optional fields extracted from a receipt or invoice."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    product_name: str | None = None
    product_value: float | None = None
    currency: str | None = None
    order_number: str | None = None
    purchase_date: str | None = None
    company: str | None = None
    other_company: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    issue_type: str | None = None
    description: str | None = None

    @field_validator(
        "product_name",
        "order_number",
        "company",
        "other_company",
        "first_name",
        "last_name",
        "issue_type",
        "description",
        mode="before",
    )
    @classmethod
    def _clean_text(cls, value: Any) -> str | None:
        if value is None or isinstance(value, dict | list):
            return None
        text = str(value).strip()
        return text or None

    @field_validator("product_value", mode="before")
    @classmethod
    def _clean_amount(cls, value: Any) -> float | None:
        return coerce_amount(value)

    @field_validator("currency", mode="before")
    @classmethod
    def _clean_currency(cls, value: Any) -> str | None:
        return coerce_currency(value)

    @field_validator("purchase_date", mode="before")
    @classmethod
    def _clean_date(cls, value: Any) -> str | None:
        if value is None or not str(value).strip():
            return None
        try:
            return parse_iso_date(str(value)).isoformat()
        except ValueError:
            logger.debug("Dropping unparseable purchase date %r", value)
            return None

    def to_json(self) -> dict[str, Any]:
        """Serialize with camelCase keys, omitting missing fields."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


def apply_to_form(form: dict[str, Any], parsed: ParsedFormData) -> list[str]:
    """Auto-fill form values from parsed receipt fields.

    Only fields that were actually extracted overwrite the form. A
    website domain (``other_company``, or a ``company`` that looks like a
    domain) selects the ``"other"`` company; a known company name is
    normalized to its canonical spelling.

    Args:
        form: Mutable form values keyed by snake_case field name.
        parsed: Parsed receipt fields.

    Returns:
        Names of the form fields that were filled.
    """
    filled: list[str] = []

    def _set(name: str, value: Any) -> None:
        form[name] = value
        filled.append(name)

    if parsed.other_company:
        _set("company", "other")
        _set("other_company", parsed.other_company.lower())
    elif parsed.company:
        popular = find_popular_company(parsed.company)
        if popular is not None:
            _set("company", popular.name)
        elif looks_like_domain(parsed.company):
            _set("company", "other")
            _set("other_company", parsed.company.lower())
        else:
            _set("company", parsed.company)

    for name in (
        "first_name",
        "last_name",
        "product_name",
        "order_number",
        "currency",
        "issue_type",
        "description",
    ):
        value = getattr(parsed, name)
        if value:
            _set(name, value)

    if parsed.product_value is not None:
        _set("product_value", parsed.product_value)
    if parsed.purchase_date:
        _set("purchase_date", parse_iso_date(parsed.purchase_date))

    logger.info("Auto-filled %d form fields", len(filled))
    return filled
