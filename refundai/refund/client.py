"""Three-tier refund email client.

Tries the in-process LLM generator first, then the deployed refund
service over HTTP, and finally renders the local template. Each tier
runs once; the first success wins and earlier failures are reported
alongside the response.
"""

from dataclasses import dataclass, field
from typing import Literal

import httpx
from pydantic import ValidationError

from refundai.llm.client import LLMClient, LLMConfigurationError, LLMServiceError
from refundai.utils.config import AppConfig
from refundai.utils.logger import get_logger

from .generator import RefundGenerator
from .models import GenerateRefundRequest, GenerateRefundResponse
from .template import render_local_template

logger = get_logger(__name__)

Tier = Literal["sdk", "http", "template"]


class RefundServiceError(RuntimeError):
    """Raised when the remote refund service cannot produce an email."""


@dataclass
class RefundOutcome:
    """Response of the tier that succeeded plus the errors of those before it."""

    response: GenerateRefundResponse
    tier: Tier
    errors: list[str] = field(default_factory=list)


class RefundClient:
    """Generates refund emails with graceful degradation.

    Args:
        config: Application configuration.
        generator: In-process generator; built from the configuration if omitted.
        http_client: httpx client for the remote service tier.
    """

    def __init__(
        self,
        config: AppConfig,
        generator: RefundGenerator | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.config = config
        self.generator = generator or RefundGenerator(
            LLMClient(config.llm), temperature=config.llm.email_temperature
        )
        self.http_client = http_client

    def generate(self, request: GenerateRefundRequest) -> RefundOutcome:
        """Generate an email, falling through the tiers until one succeeds."""
        errors: list[str] = []

        try:
            return RefundOutcome(self.generator.generate(request), "sdk", errors)
        except (LLMConfigurationError, LLMServiceError) as exc:
            logger.warning("SDK tier failed: %s", exc)
            errors.append(f"sdk: {exc}")

        try:
            return RefundOutcome(self.call_service(request), "http", errors)
        except (RefundServiceError, httpx.HTTPError) as exc:
            logger.warning("HTTP tier failed: %s", exc)
            errors.append(f"http: {exc}")

        logger.info("Falling back to the local template")
        return RefundOutcome(render_local_template(request), "template", errors)

    def call_service(self, request: GenerateRefundRequest) -> GenerateRefundResponse:
        """POST the request to the deployed refund service.

        Raises:
            RefundServiceError: If the service URL is not configured, the
                service answers with a non-2xx status, or the body is not
                a valid response.
        """
        service = self.config.service
        url = service.functions_url
        if not url:
            raise RefundServiceError("Refund service URL is not configured.")

        headers = {"Content-Type": "application/json"}
        key = service.anon_key
        if key:
            headers["Authorization"] = f"Bearer {key}"
            headers["apikey"] = key

        client = self.http_client or httpx.Client(timeout=service.timeout)
        try:
            response = client.post(url, json=request.to_json(), headers=headers)
        finally:
            if self.http_client is None:
                client.close()

        if not response.is_success:
            text = response.text.strip() or "No response body."
            raise RefundServiceError(
                f"Refund service HTTP {response.status_code} at {url}. {text}"
            )

        try:
            return GenerateRefundResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise RefundServiceError(f"Invalid refund service response: {exc}") from exc
