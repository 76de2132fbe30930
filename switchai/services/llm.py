"""OpenRouter gateway: model listing and chat completions for a user's key.

Completions go through LangChain's ``ChatOpenAI`` pointed at the OpenRouter
base URL; model listing is a plain ``httpx`` call. Every failure leaves this
module as one of the ProviderError subclasses in services.errors. Calls are
attempted exactly once (``max_retries=0``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx
import openai
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from config import MODEL_PARAMETER_RANGES, settings
from services.errors import (
    CredentialRejected,
    CredentialUnavailable,
    InvalidRequest,
    NetworkError,
    ProviderError,
    ProviderOverloaded,
    ProviderServerError,
    RateLimited,
    UnknownProviderError,
    ValidationError,
)
from services.token_usage import extract_usage_from_response

logger = logging.getLogger(__name__)


@dataclass
class Completion:
    text: str
    model: str
    prompt_tokens: int | None
    completion_tokens: int | None


@dataclass
class ModelInfo:
    id: str
    name: str


# ── Error classification ──────────────────────────────────────────────────────

_STATUS_ERRORS: dict[int, type[ProviderError]] = {
    400: InvalidRequest,
    401: CredentialRejected,
    403: CredentialRejected,
    429: RateLimited,
    529: ProviderOverloaded,
}


def _status_code(exc: BaseException) -> int | None:
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def classify_provider_error(exc: BaseException) -> ProviderError:
    """Map a transport/SDK exception onto the provider error taxonomy."""
    if isinstance(exc, ProviderError):
        return exc
    if isinstance(exc, (httpx.TransportError, openai.APIConnectionError, TimeoutError, ConnectionError)):
        return NetworkError()

    status = _status_code(exc)
    if status is not None:
        if status in _STATUS_ERRORS:
            return _STATUS_ERRORS[status]()
        if 500 <= status <= 504:
            return ProviderServerError()
    return UnknownProviderError()


# ── Parameters ────────────────────────────────────────────────────────────────


def resolve_parameters(overrides: dict | None = None) -> dict:
    """Fill defaults and range-check caller-supplied model parameters."""
    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
    unknown = set(overrides) - set(MODEL_PARAMETER_RANGES)
    if unknown:
        raise ValidationError(f"Unknown model parameter(s): {', '.join(sorted(unknown))}")

    params: dict = {}
    for name, rng in MODEL_PARAMETER_RANGES.items():
        value = overrides.get(name, rng.default)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"{name} must be a number")
        if name == "max_tokens":
            if isinstance(value, float) and not value.is_integer():
                raise ValidationError("max_tokens must be an integer")
            value = int(value)
        if not rng.contains(value):
            raise ValidationError(f"{name} must be between {rng.min:g} and {rng.max:g}")
        params[name] = value
    return params


# ── LangChain plumbing ────────────────────────────────────────────────────────


def create_chat_model(
    api_key: str,
    model_name: str,
    params: dict,
    *,
    base_url: str,
    timeout: float,
) -> BaseChatModel:
    return ChatOpenAI(
        api_key=api_key,
        base_url=base_url,
        model=model_name,
        temperature=params["temperature"],
        max_tokens=params["max_tokens"],
        top_p=params["top_p"],
        frequency_penalty=params["frequency_penalty"],
        presence_penalty=params["presence_penalty"],
        timeout=timeout,
        max_retries=0,
    )


_ROLE_TO_MESSAGE = {
    "system": SystemMessage,
    "user": HumanMessage,
    "assistant": AIMessage,
}


def to_langchain_messages(prompt: list[dict]) -> list[BaseMessage]:
    try:
        return [_ROLE_TO_MESSAGE[entry["role"]](content=entry["content"]) for entry in prompt]
    except KeyError as exc:
        raise ValidationError(f"Unsupported prompt entry: {exc}") from exc


def _response_text(response) -> str:
    content = getattr(response, "content", "")
    if isinstance(content, str):
        return content
    # Some providers return content blocks
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


# ── Gateway ───────────────────────────────────────────────────────────────────


class ProviderGateway:
    """Thin adapter over the OpenRouter API."""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = (base_url or settings.OPENROUTER_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.PROVIDER_TIMEOUT_SECONDS

    def list_models(self, api_key: str) -> list[ModelInfo]:
        if not api_key:
            raise CredentialUnavailable()
        try:
            resp = httpx.get(
                f"{self.base_url}/models",
                headers={"Authorization": f"Bearer {api_key}"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json().get("data", [])
        except Exception as exc:
            error = classify_provider_error(exc)
            logger.warning("Model listing failed: %s (%s)", error.code, exc)
            raise error from exc

        models = sorted((m for m in data if m.get("id")), key=lambda m: m["id"])
        return [ModelInfo(id=m["id"], name=m.get("name") or m["id"]) for m in models]

    def complete(
        self,
        api_key: str,
        model: str,
        prompt: list[dict],
        parameters: dict | None = None,
    ) -> Completion:
        if not api_key:
            raise CredentialUnavailable()
        if not model:
            raise ValidationError("Model identifier is required")
        if not prompt:
            raise ValidationError("Prompt must contain at least one message")

        params = resolve_parameters(parameters)
        messages = to_langchain_messages(prompt)
        llm = create_chat_model(api_key, model, params, base_url=self.base_url, timeout=self.timeout)

        try:
            response = llm.invoke(messages)
        except Exception as exc:
            error = classify_provider_error(exc)
            logger.warning("Completion with %s failed: %s (%s)", model, error.code, exc)
            raise error from exc

        text = _response_text(response)
        if not text.strip():
            raise ProviderServerError("AI provider returned an empty response")

        usage = extract_usage_from_response(response) or {}
        metadata = getattr(response, "response_metadata", None) or {}
        logger.info(
            "Completion from %s: %s prompt / %s completion tokens",
            model, usage.get("input_tokens", "?"), usage.get("output_tokens", "?"),
        )
        return Completion(
            text=text,
            model=metadata.get("model_name") or model,
            prompt_tokens=usage.get("input_tokens"),
            completion_tokens=usage.get("output_tokens"),
        )
