"""Localization for the refund service.

English and French message catalogues are YAML files under ``locales/``.
Keys are dotted paths (``issue.reasons.product.other``); lookups fall back
to English and then to the key itself. Also provides the locale-aware
date and number formatting used in generated emails.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from refundai.utils.logger import get_logger

logger = get_logger(__name__)

SUPPORTED_LOCALES = ("en", "fr")
DEFAULT_LOCALE = "en"
ISSUE_CATEGORIES = ("product", "service", "subscription")
ISSUE_REASON_KEYS: dict[str, tuple[str, ...]] = {
    "product": (
        "not_received",
        "late_delivery",
        "wrong_or_not_as_described",
        "damaged_or_defective",
        "other",
    ),
    "service": (
        "not_provided",
        "delayed_or_rescheduled",
        "not_as_described_or_poor_quality",
        "access_issues",
        "other",
    ),
    "subscription": (
        "unwanted_renewal",
        "service_inaccessible",
        "features_missing",
        "incorrect_billing",
        "other",
    ),
}

_LOCALES_DIR = Path(__file__).parent / "locales"

_MONTHS = {
    "en": (
        "January", "February", "March", "April", "May", "June", "July",
        "August", "September", "October", "November", "December",
    ),
    "fr": (
        "janvier", "février", "mars", "avril", "mai", "juin", "juillet",
        "août", "septembre", "octobre", "novembre", "décembre",
    ),
}
# fr-FR groups thousands with a narrow no-break space.
_FR_GROUP = "\u202f"


def normalize_locale(value: str | None) -> str:
    """Reduce a locale tag to a supported language code.

    ``"fr-FR"`` and ``"fr_CA"`` become ``"fr"``; anything unsupported
    becomes the default locale.
    """
    if not value:
        return DEFAULT_LOCALE
    language = value.strip().replace("_", "-").split("-")[0].lower()
    return language if language in SUPPORTED_LOCALES else DEFAULT_LOCALE


def locale_from_accept_language(header: str | None) -> str:
    """Pick the best supported locale from an ``Accept-Language`` header."""
    if not header:
        return DEFAULT_LOCALE

    candidates: list[tuple[float, int, str]] = []
    for position, part in enumerate(header.split(",")):
        tag, _, params = part.strip().partition(";")
        quality = 1.0
        if params.strip().startswith("q="):
            try:
                quality = float(params.strip()[2:])
            except ValueError:
                quality = 0.0
        language = tag.strip().replace("_", "-").split("-")[0].lower()
        if language in SUPPORTED_LOCALES and quality > 0:
            candidates.append((-quality, position, language))

    return min(candidates)[2] if candidates else DEFAULT_LOCALE


@lru_cache(maxsize=None)
def load_catalog(locale: str) -> dict[str, Any]:
    """Load the message catalogue of a locale."""
    path = _LOCALES_DIR / f"{locale}.yaml"
    if not path.exists():
        logger.warning("No message catalogue for locale %s", locale)
        return {}
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _lookup(catalog: dict[str, Any], key: str) -> Any:
    node: Any = catalog
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def translate(key: str, locale: str = DEFAULT_LOCALE, **params: Any) -> str:
    """Translate a dotted message key.

    Args:
        key: Dotted key into the catalogue.
        locale: Target locale (any tag accepted by :func:`normalize_locale`).
        **params: Values for ``{name}`` placeholders.

    Returns:
        The localized message, the English one, or the key itself.
    """
    locale = normalize_locale(locale)
    message = _lookup(load_catalog(locale), key)
    if not isinstance(message, str) and locale != DEFAULT_LOCALE:
        message = _lookup(load_catalog(DEFAULT_LOCALE), key)
    if not isinstance(message, str):
        return key
    return message.format(**params) if params else message


def issue_reasons(category: str, locale: str = DEFAULT_LOCALE) -> list[str]:
    """Return the localized issue reasons offered for a category.

    Unknown categories get the product reasons.
    """
    if category not in ISSUE_REASON_KEYS:
        category = "product"
    return [
        translate(f"issue.reasons.{category}.{key}", locale)
        for key in ISSUE_REASON_KEYS[category]
    ]


def parse_iso_date(value: str | date) -> date:
    """Parse ``YYYY-MM-DD`` or a full ISO timestamp into a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = value.strip()
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return date.fromisoformat(text[:10])


def format_date(value: str | date, locale: str = DEFAULT_LOCALE) -> str:
    """Format a date in long form for a locale.

    ``2024-01-15`` becomes ``January 15, 2024`` in English and
    ``15 janvier 2024`` in French. Unparseable input is returned as is.
    """
    locale = normalize_locale(locale)
    try:
        day = parse_iso_date(value)
    except (ValueError, TypeError):
        logger.warning("Could not parse date %r", value)
        return str(value)

    month = _MONTHS[locale][day.month - 1]
    if locale == "fr":
        return f"{day.day} {month} {day.year}"
    return f"{month} {day.day}, {day.year}"


def format_value(value: float | int | None, locale: str = DEFAULT_LOCALE) -> str:
    """Format an amount with at most two fraction digits for a locale.

    Returns an empty string when there is no value.
    """
    if value is None:
        return ""
    try:
        amount = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return ""

    text = f"{amount:,.2f}".rstrip("0").rstrip(".")
    if normalize_locale(locale) == "fr":
        integer, _, fraction = text.partition(".")
        integer = integer.replace(",", _FR_GROUP)
        return f"{integer},{fraction}" if fraction else integer
    return text
