"""Conversation titles and branch summaries generated through the gateway."""

from __future__ import annotations

import logging

from config import settings
from services.llm import ProviderGateway

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 50
TITLE_FALLBACK = "New Conversation"
_QUOTE_CHARS = "\"'`“”‘’«»"
_TRAILING_PUNCTUATION = ".,!?;:"

TITLE_INSTRUCTION = (
    "Generate a short, descriptive title (maximum 6 words) for a conversation that "
    "starts with the user's message below. Reply with the title only, without quotes "
    "or trailing punctuation."
)
SUMMARY_INSTRUCTION = (
    "Summarize the following conversation so it can be continued in a new chat. "
    "Keep the key facts, decisions, open questions and any code or data the user "
    "relies on. Write the summary as plain prose addressed to the assistant."
)

TITLE_PARAMETERS = {"temperature": 0.3, "max_tokens": 20}
SUMMARY_PARAMETERS = {"temperature": 0.5, "max_tokens": 1000}

_ROLE_LABELS = {"user": "User", "assistant": "Assistant", "system": "Earlier summary"}


def clean_title(raw: str | None) -> str:
    """Strip quotes, cap at TITLE_MAX_LENGTH characters, never return blank."""
    title = (raw or "").strip().strip(_QUOTE_CHARS).strip()
    if len(title) > TITLE_MAX_LENGTH:
        title = title[:TITLE_MAX_LENGTH].rstrip().rstrip(_TRAILING_PUNCTUATION + " \t\r\n")
    return title or TITLE_FALLBACK


def fallback_title(first_message: str) -> str:
    return first_message[:TITLE_MAX_LENGTH].strip() or TITLE_FALLBACK


def render_transcript(transcript: list) -> str:
    return "\n\n".join(
        f"{_ROLE_LABELS.get(msg.role, msg.role)}: {msg.content}" for msg in transcript
    )


class TitleSummaryGenerator:
    def __init__(self, gateway: ProviderGateway | None = None):
        self.gateway = gateway or ProviderGateway()

    def generate_title(self, first_message: str, api_key: str | None) -> str:
        """Title for a conversation opened with *first_message*.

        Never raises: any failure (missing key included) falls back to the
        beginning of the user's message.
        """
        try:
            completion = self.gateway.complete(
                api_key,
                settings.TITLE_MODEL,
                [
                    {"role": "system", "content": TITLE_INSTRUCTION},
                    {"role": "user", "content": first_message},
                ],
                TITLE_PARAMETERS,
            )
        except Exception as exc:
            logger.warning("Title generation failed, using message prefix: %s", exc)
            return fallback_title(first_message)
        return clean_title(completion.text)

    def generate_summary(self, transcript: list, api_key: str) -> str:
        """Summary of *transcript*. Provider errors propagate unchanged."""
        completion = self.gateway.complete(
            api_key,
            settings.SUMMARY_MODEL,
            [
                {"role": "system", "content": SUMMARY_INSTRUCTION},
                {"role": "user", "content": render_transcript(transcript)},
            ],
            SUMMARY_PARAMETERS,
        )
        logger.info("Generated summary of %d messages", len(transcript))
        return completion.text.strip()
