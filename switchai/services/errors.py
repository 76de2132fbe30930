"""Domain error taxonomy shared by the chat services.

Every error carries a machine-readable ``code``; the HTTP layer maps error
classes to status codes (see api/_helpers.py). Provider failures are classified
once, in services.llm.classify_provider_error, and propagate unchanged.
"""

from __future__ import annotations


class ChatError(Exception):
    """Base class for all domain errors raised by the chat services."""

    code = "chat_error"
    default_message = "Chat service error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ChatError):
    code = "validation_error"
    default_message = "Invalid input"


class NotFound(ChatError):
    code = "not_found"
    default_message = "Not found"


class PersistenceError(ChatError):
    code = "persistence_error"
    default_message = "Storage operation failed"


# ── Credential / provider errors ───────────────────────────────────────────


class ProviderError(ChatError):
    """Failure talking to the AI provider (or obtaining the key for it)."""

    code = "provider_error"
    default_message = "AI provider error"


class CredentialUnavailable(ProviderError):
    code = "credential_unavailable"
    default_message = "OpenRouter API key not configured"


class CredentialRejected(ProviderError):
    code = "credential_rejected"
    default_message = "Invalid or expired OpenRouter API key"


class InvalidRequest(ProviderError):
    code = "invalid_request"
    default_message = "Invalid request parameters"


class RateLimited(ProviderError):
    code = "rate_limited"
    default_message = "OpenRouter rate limit exceeded. Please try again later."


class ProviderServerError(ProviderError):
    code = "provider_server_error"
    default_message = "OpenRouter server error. Please try again later."


class ProviderOverloaded(ProviderError):
    code = "provider_overloaded"
    default_message = "AI model provider is currently overloaded. Please try again or switch models."


class NetworkError(ProviderError):
    code = "network_error"
    default_message = "Network error while communicating with OpenRouter"


class UnknownProviderError(ProviderError):
    code = "unknown_provider_error"
    default_message = "Unexpected error from OpenRouter"
