"""Token usage extraction and aggregation utilities."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def extract_usage_from_response(response) -> dict | None:
    """Extract token usage from a single AIMessage (or similar LangChain response).

    Prefers the normalised ``usage_metadata``; falls back to the raw
    OpenAI-style ``token_usage`` block in ``response_metadata``.
    Returns dict with input_tokens, output_tokens, total_tokens, or None when
    the response reports no usage at all.
    """
    usage = getattr(response, "usage_metadata", None)
    if usage and isinstance(usage, dict):
        input_t = usage.get("input_tokens", 0) or 0
        output_t = usage.get("output_tokens", 0) or 0
        return {
            "input_tokens": input_t,
            "output_tokens": output_t,
            "total_tokens": input_t + output_t,
        }

    metadata = getattr(response, "response_metadata", None)
    raw = metadata.get("token_usage") if isinstance(metadata, dict) else None
    if raw and isinstance(raw, dict):
        input_t = raw.get("prompt_tokens", 0) or 0
        output_t = raw.get("completion_tokens", 0) or 0
        return {
            "input_tokens": input_t,
            "output_tokens": output_t,
            "total_tokens": input_t + output_t,
        }

    logger.debug("Response carried no usage metadata")
    return None


def sum_message_usage(messages: list) -> dict:
    """Sum stored token counts over the assistant replies in a transcript.

    Returns dict with prompt_tokens, completion_tokens, total_tokens, replies.
    """
    prompt = 0
    completion = 0
    replies = 0

    for msg in messages:
        if getattr(msg, "role", None) != "assistant":
            continue
        prompt += msg.prompt_tokens or 0
        completion += msg.completion_tokens or 0
        replies += 1

    return {
        "prompt_tokens": prompt,
        "completion_tokens": completion,
        "total_tokens": prompt + completion,
        "replies": replies,
    }
