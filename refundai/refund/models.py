"""Request and response contracts of refund email generation.

Both travel as camelCase JSON; Python code uses the snake_case names.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

IssueCategory = Literal["product", "service", "subscription"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class GenerateRefundRequest(_CamelModel):
    """Normalized form data sent for email generation."""

    company_domain: str = ""
    company_display_name: str = ""
    locale: str = "en"
    country: str = ""
    first_name: str = ""
    last_name: str = ""
    product_name: str = ""
    product_value: float | None = None
    order_number: str = ""
    purchase_date_iso: str = Field("", alias="purchaseDateISO")
    issue_category: IssueCategory = "product"
    issue_type: str = ""
    description: str = ""
    tone: int = 50
    has_image: bool = False

    @field_validator("tone", mode="before")
    @classmethod
    def _clamp_tone(cls, value: Any) -> int:
        try:
            tone = round(float(value))
        except (OverflowError, TypeError, ValueError):
            return 50
        return max(0, min(100, tone))


class PremiumContact(_CamelModel):
    """Locked contact shown only with its number masked."""

    phone_masked: str | None = None


class GenerateRefundResponse(_CamelModel):
    """Generated email plus the contacts to send it to."""

    best_email: str
    ranked: list[str] = Field(default_factory=list)
    forms: list[str] = Field(default_factory=list)
    links: list[str] = Field(default_factory=list)
    subject: str
    body: str
    has_image: bool = False
    phones: list[str] = Field(default_factory=list)
    premium_contacts: list[PremiumContact] = Field(default_factory=list)
    company_display_name: str
    country_code: str = ""
