"""Locally rendered refund email, used when remote generation fails."""

from refundai.i18n import format_date, format_value, translate
from refundai.utils.logger import get_logger

from .generator import build_response, normalize_request
from .models import GenerateRefundRequest, GenerateRefundResponse

logger = get_logger(__name__)


def render_email(request: GenerateRefundRequest) -> tuple[str, str]:
    """Render the subject and body of the template email.

    Args:
        request: Normalized request.

    Returns:
        Tuple of (subject, body).
    """
    locale = request.locale

    def t(key: str, **params: object) -> str:
        return translate(f"template.{key}", locale, **params)

    details = [
        t("product", product=request.product_name),
        t("order_number", order_number=request.order_number),
        t(
            "purchase_date",
            purchase_date=format_date(request.purchase_date_iso, locale),
        ),
    ]
    value = format_value(request.product_value, locale)
    if value:
        details.insert(1, t("value", value=value))

    paragraphs = [
        t("greeting", company=request.company_display_name),
        t("intro"),
        "\n".join([t("details_heading"), *(f"- {line}" for line in details)]),
        t("issue", issue=request.issue_type),
    ]
    if request.description.strip():
        paragraphs.append(request.description.strip())
    if request.has_image:
        paragraphs.append(t("evidence"))
    paragraphs.extend(
        [
            t("request"),
            t("thanks"),
            f"{t('sign_off')}\n{request.first_name} {request.last_name}".rstrip(),
        ]
    )

    subject = t("subject", order_number=request.order_number)
    return subject, "\n\n".join(paragraphs)


def render_local_template(request: GenerateRefundRequest) -> GenerateRefundResponse:
    """Build a complete response from the local template."""
    request = normalize_request(request)
    subject, body = render_email(request)
    logger.info(
        "Rendered local %s template for %s",
        request.locale,
        request.company_display_name,
    )
    return build_response(request, subject, body)
