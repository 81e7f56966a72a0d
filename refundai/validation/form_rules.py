"""Validation rules for the refund request form.

Each field is checked independently and every failure carries a
message in the user's language. A valid form is turned into the
``GenerateRefundRequest`` sent for email generation.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from refundai.companies import resolve_company
from refundai.extraction.fields import coerce_amount
from refundai.i18n import ISSUE_CATEGORIES, normalize_locale, parse_iso_date, translate
from refundai.refund.models import GenerateRefundRequest
from refundai.utils.logger import get_logger

logger = get_logger(__name__)

MIN_DESCRIPTION_LENGTH = 10
MIN_PURCHASE_DATE = date(1900, 1, 1)
REQUIRED_FIELDS = (
    "company",
    "country",
    "first_name",
    "last_name",
    "product_name",
    "order_number",
    "issue_type",
)


class RefundForm(BaseModel):
    """Values of the refund request form.

    Input is lenient: blank or malformed amounts and dates become
    ``None`` so the validator can report them instead of failing to parse.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    company: str = ""
    other_company: str = ""
    country: str = ""
    first_name: str = ""
    last_name: str = ""
    product_name: str = ""
    product_value: float | None = None
    currency: str | None = None
    order_number: str = ""
    purchase_date: date | None = None
    issue_category: str = "product"
    issue_type: str = ""
    description: str = ""
    tone: int = 50
    has_image: bool = False

    @field_validator(
        "company",
        "other_company",
        "country",
        "first_name",
        "last_name",
        "product_name",
        "order_number",
        "issue_category",
        "issue_type",
        "description",
        mode="before",
    )
    @classmethod
    def _text(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("product_value", mode="before")
    @classmethod
    def _amount(cls, value: Any) -> float | None:
        if isinstance(value, str) and not value.strip():
            return None
        return coerce_amount(value)

    @field_validator("purchase_date", mode="before")
    @classmethod
    def _date(cls, value: Any) -> date | None:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        try:
            return parse_iso_date(value)
        except (AttributeError, TypeError, ValueError):
            return None

    @field_validator("tone", mode="before")
    @classmethod
    def _tone(cls, value: Any) -> int:
        try:
            return round(float(value))
        except (OverflowError, TypeError, ValueError):
            return 50


@dataclass
class ValidationResult:
    """Result of a single field validation check."""

    field_name: str
    is_valid: bool
    message: str
    rule_name: str


@dataclass
class ValidationReport:
    """Aggregated validation report for a form."""

    all_valid: bool
    results: list[ValidationResult]
    form: RefundForm | None = None

    @property
    def errors(self) -> dict[str, str]:
        """First failure message per field."""
        errors: dict[str, str] = {}
        for result in self.results:
            if not result.is_valid:
                errors.setdefault(result.field_name, result.message)
        return errors


class FormValidator:
    """Validates refund form values with localized messages.

    Args:
        locale: Language of the error messages.
    """

    def __init__(self, locale: str = "en") -> None:
        self.locale = normalize_locale(locale)

    def _result(
        self, field_name: str, ok: bool, rule: str, **params: Any
    ) -> ValidationResult:
        message = "" if ok else translate(f"validation.{rule}", self.locale, **params)
        return ValidationResult(field_name, ok, message, rule)

    def validate(
        self, values: RefundForm | dict[str, Any], today: date | None = None
    ) -> ValidationReport:
        """Validate form values.

        Args:
            values: Form model or raw values (camelCase or snake_case keys).
            today: Reference date for the purchase date checks.

        Returns:
            Report with one result per check and the parsed form.
        """
        if isinstance(values, RefundForm):
            form = values
        else:
            form = RefundForm.model_validate(values)
        today = today or date.today()

        results = [
            self._result(name, bool(getattr(form, name)), f"{name}_required")
            for name in REQUIRED_FIELDS
        ]
        if form.company == "other":
            results.append(
                self._result(
                    "other_company", bool(form.other_company), "other_company_required"
                )
            )

        results.extend(
            [
                self._result(
                    "product_value",
                    form.product_value is None or form.product_value >= 0,
                    "product_value_invalid",
                ),
                self._result(
                    "issue_category",
                    form.issue_category in ISSUE_CATEGORIES,
                    "issue_category_invalid",
                ),
                self._result(
                    "description",
                    len(form.description) >= MIN_DESCRIPTION_LENGTH,
                    "description_too_short",
                    min_length=MIN_DESCRIPTION_LENGTH,
                ),
                self._result("tone", 0 <= form.tone <= 100, "tone_out_of_range"),
            ]
        )
        results.extend(self._check_purchase_date(form.purchase_date, today))

        all_valid = all(r.is_valid for r in results)
        logger.info(
            "Form validation: %s (%d checks)",
            "PASSED" if all_valid else "FAILED",
            len(results),
        )
        return ValidationReport(all_valid=all_valid, results=results, form=form)

    def _check_purchase_date(
        self, value: date | None, today: date
    ) -> list[ValidationResult]:
        if value is None:
            return [self._result("purchase_date", False, "purchase_date_required")]
        return [
            self._result("purchase_date", value <= today, "purchase_date_future"),
            self._result(
                "purchase_date", value >= MIN_PURCHASE_DATE, "purchase_date_too_old"
            ),
        ]


def change_category(form: RefundForm, category: str) -> RefundForm:
    """Switch the issue category, clearing the now stale issue type."""
    return form.model_copy(update={"issue_category": category, "issue_type": ""})


def to_generate_request(form: RefundForm, locale: str) -> GenerateRefundRequest:
    """Build the email generation request from a validated form."""
    domain, display_name = resolve_company(form.company, form.other_company)
    return GenerateRefundRequest(
        company_domain=domain,
        company_display_name=display_name,
        locale=normalize_locale(locale),
        country=form.country,
        first_name=form.first_name,
        last_name=form.last_name,
        product_name=form.product_name,
        product_value=form.product_value,
        order_number=form.order_number,
        purchase_date_iso=form.purchase_date.isoformat() if form.purchase_date else "",
        issue_category=form.issue_category,
        issue_type=form.issue_type,
        description=form.description,
        tone=form.tone,
        has_image=form.has_image,
    )
