"""Refund email generation with the hosted LLM.

Normalizes the request, localizes the date and amount, asks the model
for a JSON ``{"subject", "body"}`` pair in the requested tone, and wraps
it with the guessed support contacts.
"""

from typing import Literal

from refundai.companies import normalize_domain
from refundai.i18n import format_date, format_value
from refundai.llm.client import LLMClient, LLMServiceError
from refundai.utils.logger import get_logger

from .contacts import email_fallbacks, phones_for_country, premium_masks
from .models import GenerateRefundRequest, GenerateRefundResponse

logger = get_logger(__name__)

Style = Literal["empathic", "formal", "firm"]


def map_tone_to_style(tone: int) -> Style:
    """Map the 0-100 tone slider to a writing style."""
    if tone <= 33:
        return "empathic"
    if tone <= 66:
        return "formal"
    return "firm"


def normalize_request(request: GenerateRefundRequest) -> GenerateRefundRequest:
    """Apply defaults to the company and locale of a request."""
    return request.model_copy(
        update={
            "company_domain": normalize_domain(request.company_domain),
            "company_display_name": request.company_display_name.strip()
            or "The Company",
            "locale": "fr" if request.locale == "fr" else "en",
        }
    )


def build_messages(
    request: GenerateRefundRequest, formatted_date: str, formatted_value: str
) -> list[dict[str, str]]:
    """Build the chat messages for email generation.

    Args:
        request: Normalized request.
        formatted_date: Purchase date localized for the request locale.
        formatted_value: Product value localized for the request locale.

    Returns:
        System and user messages.
    """
    style = map_tone_to_style(request.tone)
    language = request.locale

    system = f"""\
You are a Customer Service assistant specialized in writing refund request emails for consumers.
Objectives:
- Maximize the chance of response and refund while staying polite, professional, and precise.
- Output MUST be in the target language and ONLY as JSON with two fields: "subject" and "body".
- Do not invent data; use only the provided information.
- No legal threats or internal references that were not provided.
Language:
- Target language: {language}.
Tone:
- Style: {style}. (0-33 empathic, 34-66 formal, 67-100 firm)
Content requirements:
- Include order context: product, value, order number, purchase date (already localized).
- Include the issue category and specific reason (already human-readable).
- Make a clear refund request or appropriate resolution.
- Mention that evidence can be provided upon request (if hasImage is true, remind politely that a screenshot is available).
- Use short paragraphs and optionally 3-5 bullet points for facts.
- Keep the subject concise (~70-90 chars), informative, without excessive capitalization.
Output:
- JSON only, exactly: {{"subject":"...","body":"..."}}
No extra keys, no preamble, no code fences."""

    user = f"""\
Data:
- Company: {request.company_display_name} ({request.company_domain})
- Country: {request.country}
- First/Last name: {request.first_name} {request.last_name}
- Product: {request.product_name}
- Product value (localized): {formatted_value}
- Order number: {request.order_number}
- Purchase date (localized): {formatted_date}
- Issue category: {request.issue_category}
- Issue type: {request.issue_type}
- Description: {request.description}
- Has image: {str(request.has_image).lower()}
- Tone (0-100): {request.tone}
- Locale: {request.locale}

Please return JSON with "subject" and "body" for an email the user will send to the company's support team in {language}."""

    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


def build_response(
    request: GenerateRefundRequest, subject: str, body: str
) -> GenerateRefundResponse:
    """Wrap an email with the contacts for the request's company and country."""
    contacts = email_fallbacks(request.company_domain)
    return GenerateRefundResponse(
        best_email=contacts.best_email,
        ranked=contacts.ranked,
        forms=contacts.forms,
        links=contacts.links,
        subject=subject,
        body=body,
        has_image=request.has_image,
        phones=phones_for_country(request.country),
        premium_contacts=premium_masks(request.country),
        company_display_name=request.company_display_name,
        country_code=request.country,
    )


class RefundGenerator:
    """Generates refund request emails with the LLM.

    Args:
        client: LLM client.
        temperature: Sampling temperature for the email text.
    """

    def __init__(self, client: LLMClient, temperature: float = 0.4) -> None:
        self.client = client
        self.temperature = temperature

    def generate(self, request: GenerateRefundRequest) -> GenerateRefundResponse:
        """Generate the email for a refund request.

        Raises:
            LLMConfigurationError: If the LLM is not configured.
            LLMServiceError: If the call fails or the reply lacks a
                subject or body.
        """
        request = normalize_request(request)
        formatted_date = format_date(request.purchase_date_iso, request.locale)
        formatted_value = format_value(request.product_value, request.locale)
        messages = build_messages(request, formatted_date, formatted_value)

        logger.info(
            "Generating %s refund email for %s (%s)",
            request.locale,
            request.company_display_name,
            map_tone_to_style(request.tone),
        )
        parsed = self.client.complete_json(
            messages, temperature=self.temperature, json_mode=False
        )
        subject = str(parsed.get("subject") or "").strip()
        body = str(parsed.get("body") or "").strip()
        if not subject or not body:
            raise LLMServiceError("Invalid OpenAI response structure.")

        return build_response(request, subject, body)
