"""Chat-completion client for the hosted LLM.

Thin wrapper around the ``openai`` SDK that works against OpenAI or any
compatible endpoint (e.g. OpenRouter), returning plain text or parsed
JSON. Failures are reported as one of two errors: the service is
misconfigured, or the call itself failed.
"""

import json
import re
from typing import Any

import openai
from openai import OpenAI

from refundai.utils.config import LLMConfig
from refundai.utils.logger import get_logger

logger = get_logger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class LLMConfigurationError(RuntimeError):
    """Raised when the LLM cannot be called because it is not configured."""


class LLMServiceError(RuntimeError):
    """Raised when the LLM call fails or returns unusable content."""


def extract_json_object(content: str) -> dict[str, Any]:
    """Parse the JSON object embedded in a model response.

    Models sometimes wrap the object in prose or code fences, so the span
    from the first ``{`` to the last ``}`` is parsed.

    Args:
        content: Raw model output.

    Returns:
        Parsed JSON object.

    Raises:
        LLMServiceError: If no JSON object can be parsed.
    """
    match = _JSON_OBJECT.search(content or "")
    if not match:
        raise LLMServiceError("No valid JSON found in response")
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse JSON from LLM response: %s", content)
        raise LLMServiceError("LLM returned invalid JSON.") from exc
    if not isinstance(parsed, dict):
        raise LLMServiceError("LLM returned invalid JSON.")
    return parsed


class LLMClient:
    """Chat-completion client.

    The SDK client is created lazily so a missing API key only fails the
    calls that need it.

    Args:
        config: LLM configuration.
        client: Pre-built SDK client, mainly for tests.
    """

    def __init__(self, config: LLMConfig, client: OpenAI | None = None) -> None:
        self.config = config
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self._client is not None or self.config.api_key is not None

    def _get_client(self) -> OpenAI:
        if self._client is None:
            api_key = self.config.api_key
            if not api_key:
                raise LLMConfigurationError(
                    f"{self.config.api_key_env} is not set. Add it to the "
                    "environment or .env file."
                )
            headers = {"X-Title": self.config.app_title}
            if self.config.referer:
                headers["HTTP-Referer"] = self.config.referer
            self._client = OpenAI(
                api_key=api_key,
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                default_headers=headers,
            )
        return self._client

    def create(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
        max_tokens: int | None = None,
    ) -> Any:
        """Call the chat-completion endpoint and return the SDK response.

        Raises:
            LLMConfigurationError: If no API key is configured.
            LLMServiceError: On network or API errors.
        """
        client = self._get_client()
        kwargs: dict[str, Any] = {
            "model": model or self.config.model,
            "messages": messages,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        try:
            response = client.chat.completions.create(**kwargs)
        except openai.APIStatusError as exc:
            raise LLMServiceError(
                f"LLM API error: {exc.status_code} - {exc.message}"
            ) from exc
        except openai.OpenAIError as exc:
            raise LLMServiceError(f"LLM request failed: {exc}") from exc

        logger.debug("LLM call to %s completed", kwargs["model"])
        return response

    def complete(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
        max_tokens: int | None = None,
        allow_empty: bool = False,
    ) -> str:
        """Return the stripped text content of the first completion choice.

        Args:
            allow_empty: Return ``""`` instead of raising when the model
                produced no text.

        Raises:
            LLMServiceError: If the response has no content.
        """
        response = self.create(messages, model, temperature, json_mode, max_tokens)
        content = response.choices[0].message.content if response.choices else None
        content = (content or "").strip()
        if not content and not allow_empty:
            raise LLMServiceError("LLM returned no valid content.")
        return content

    def complete_json(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        temperature: float | None = None,
        json_mode: bool = True,
        max_tokens: int | None = None,
        allow_empty: bool = False,
    ) -> dict[str, Any]:
        """Return the JSON object produced by the model.

        With ``allow_empty`` an empty completion yields ``{}``.
        """
        content = self.complete(
            messages, model, temperature, json_mode, max_tokens, allow_empty
        )
        return extract_json_object(content) if content else {}
