"""Rule-based receipt field extraction using regex patterns.

Offline fallback for when the LLM parser is unavailable. Finds the order
number, purchase date, total amount with its currency, and the merchant
(a known company name or a website domain) in OCR text.
"""

import re
from datetime import date, datetime

from refundai.companies import POPULAR_COMPANIES
from refundai.utils.logger import get_logger

from .fields import ParsedFormData, coerce_amount, coerce_currency

logger = get_logger(__name__)

_AMOUNT = r"(\d{1,3}(?:[.,\s]\d{3})+[.,]\d{2}|\d+[.,]\d{2})"
_CURRENCY = r"([$€£]|USD|EUR|GBP|CAD)"

# Pattern definitions: (regex, flags). Earlier patterns win.
_ORDER_PATTERNS: list[tuple[str, int]] = [
    (
        r"(?:Order|Commande|Invoice|Facture|Receipt|Reçu)\s*"
        r"(?:#|No\.?|Nr\.?|Number|Num[ée]ro|n°|ID)?\s*(?:de\s+commande\s*)?[:#]?\s*"
        r"([A-Z0-9][A-Z0-9\-]{3,})",
        re.IGNORECASE,
    ),
    (r"#\s*([A-Z0-9][A-Z0-9\-]{4,})", re.IGNORECASE),
]

_TOTAL_PATTERNS: list[tuple[str, int]] = [
    (
        r"(?:Grand\s*Total|Order\s*Total|Total\s*Due|Amount\s*Due|Balance\s*Due"
        r"|Total\s*TTC|Montant\s*total|Total\s*pay[ée])"
        rf"[:\s]*{_CURRENCY}?\s*{_AMOUNT}\s*{_CURRENCY}?",
        re.IGNORECASE,
    ),
    (rf"\bTotal\b[:\s]*{_CURRENCY}?\s*{_AMOUNT}\s*{_CURRENCY}?", re.IGNORECASE),
    (rf"{_CURRENCY}\s*{_AMOUNT}()", 0),
    (rf"(){_AMOUNT}\s*{_CURRENCY}", 0),
]

_DATE_PATTERNS: list[tuple[str, int]] = [
    (r"\b(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})\b", 0),
    (r"\b(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})\b", 0),
    (r"\b(\d{1,2})\s+([A-Za-zéû]{3,9})\.?,?\s+(\d{4})\b", 0),
    (r"\b([A-Za-z]{3,9})\.?\s+(\d{1,2}),?\s+(\d{4})\b", 0),
]

_DOMAIN_PATTERN = re.compile(
    r"\b(?:www\.)?((?:[a-z0-9-]+\.)+(?:com|net|org|io|fr|de|es|it|ca|co\.uk|eu))\b",
    re.IGNORECASE,
)

_MONTHS: dict[str, int] = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
    "janv": 1, "fév": 2, "fev": 2, "mars": 3, "avr": 4, "mai": 5, "juin": 6,
    "juil": 7, "août": 8, "aout": 8, "sept": 9, "déc": 12,
}

_FRENCH_MONTHS = {
    "janvier": 1, "février": 2, "fevrier": 2, "avril": 4, "juillet": 7,
    "septembre": 9, "octobre": 10, "novembre": 11, "décembre": 12,
    "decembre": 12,
}


def _month_number(name: str) -> int | None:
    key = name.lower().rstrip(".")
    if key in _FRENCH_MONTHS:
        return _FRENCH_MONTHS[key]
    for length in (5, 4, 3):
        if key[:length] in _MONTHS:
            return _MONTHS[key[:length]]
    return None


def _safe_date(year: int, month: int, day: int) -> date | None:
    if year < 100:
        year += 2000
    try:
        return date(year, month, day)
    except ValueError:
        return None


class RuleExtractor:
    """Regex-based extractor for the receipt fields of the refund form.

    Args:
        today: Reference date; dates after it are ignored as unlikely
            purchase dates (delivery estimates, card expiry, ...).
    """

    def __init__(self, today: date | None = None) -> None:
        self.today = today

    def extract(self, text: str) -> ParsedFormData:
        """Extract receipt fields from OCR text.

        Args:
            text: OCR text to search.

        Returns:
            Parsed fields; anything not found is left empty.
        """
        value, currency = self.find_total(text)
        company, domain = self.find_company(text)
        parsed = ParsedFormData(
            order_number=self.find_order_number(text),
            purchase_date=self.find_purchase_date(text),
            product_value=value,
            currency=currency,
            company=company,
            other_company=domain if company is None else None,
        )
        found = len(parsed.model_dump(exclude_none=True))
        logger.info("Rule extraction found %d fields", found)
        return parsed

    def find_order_number(self, text: str) -> str | None:
        """Find the order, invoice or receipt number."""
        for pattern, flags in _ORDER_PATTERNS:
            for match in re.finditer(pattern, text, flags):
                candidate = match.group(1).strip("-")
                if re.search(r"\d", candidate):
                    logger.debug("Found order number: %s", candidate)
                    return candidate
        return None

    def find_purchase_date(self, text: str) -> str | None:
        """Find the first plausible purchase date, as ``YYYY-MM-DD``."""
        today = self.today or datetime.now().date()
        for index, (pattern, flags) in enumerate(_DATE_PATTERNS):
            for match in re.finditer(pattern, text, flags):
                for candidate in self._date_candidates(index, match.groups()):
                    if candidate is not None and candidate <= today:
                        return candidate.isoformat()
        return None

    @staticmethod
    def _date_candidates(index: int, groups: tuple[str, ...]) -> list[date | None]:
        a, b, c = groups
        if index == 0:
            return [_safe_date(int(a), int(b), int(c))]
        if index == 1:
            # Month-first first, then day-first for European receipts.
            return [
                _safe_date(int(c), int(a), int(b)),
                _safe_date(int(c), int(b), int(a)),
            ]
        if index == 2:
            month = _month_number(b)
            return [_safe_date(int(c), month, int(a))] if month else []
        month = _month_number(a)
        return [_safe_date(int(c), month, int(b))] if month else []

    def find_total(self, text: str) -> tuple[float | None, str | None]:
        """Find the total amount and its currency."""
        for pattern, flags in _TOTAL_PATTERNS:
            match = re.search(pattern, text, flags)
            if not match:
                continue
            before, amount, after = match.groups()
            value = coerce_amount(amount)
            if value is None:
                continue
            currency = coerce_currency(before or after) if (before or after) else None
            logger.debug("Found total amount: %s %s", value, currency)
            return value, currency
        return None, None

    def find_company(self, text: str) -> tuple[str | None, str | None]:
        """Find a known company name, else the first website domain.

        Returns:
            Tuple of (company name, domain); at most one is set.
        """
        for company in POPULAR_COMPANIES:
            if re.search(rf"\b{re.escape(company.name)}\b", text, re.IGNORECASE):
                return company.name, None

        match = _DOMAIN_PATTERN.search(text)
        if match:
            domain = match.group(1).lower()
            for company in POPULAR_COMPANIES:
                if domain.endswith(company.domain):
                    return company.name, None
            return None, domain
        return None, None
