"""Prompt assembly from a stored transcript.

Turns the flat, time-ordered message log of a conversation into the
system/user/assistant structure sent to the provider:

- every ``system`` message (branch summaries) is folded, in order, into one
  leading system entry;
- ``user``/``assistant`` messages follow in chronological order;
- the new user content is always last;
- a sliding window keeps at most ``max_turns`` user/assistant entries. The
  system entry is never dropped.

Chronological order equals positional user[i]/assistant[i] pairing for an
alternating transcript, and stays correct when a user message went unanswered
and was followed by another one.
"""

from __future__ import annotations

from config import settings
from services.errors import ValidationError

SYSTEM_SEPARATOR = "\n\n"


def validate_content(content: str | None, max_length: int | None = None) -> str:
    """Reject empty or oversized user input before anything is written."""
    max_length = max_length if max_length is not None else settings.MAX_MESSAGE_LENGTH
    if content is None or not content.strip():
        raise ValidationError("Message content cannot be empty")
    if len(content) > max_length:
        raise ValidationError(f"Message content cannot exceed {max_length} characters")
    return content


def assemble_prompt(
    history: list,
    new_content: str,
    *,
    max_turns: int | None = None,
    max_length: int | None = None,
) -> list[dict]:
    """Build the structured prompt for *history* plus the new user turn.

    *history* holds message rows (anything with ``role`` and ``content``),
    already ordered by ``(created_at, id)``.
    """
    validate_content(new_content, max_length)
    max_turns = max_turns if max_turns is not None else settings.MAX_HISTORY_MESSAGES
    if max_turns < 1:
        raise ValidationError("History window must allow at least one message")

    system_parts: list[str] = []
    turns: list[dict] = []
    for msg in history:
        if msg.role == "system":
            system_parts.append(msg.content)
        elif msg.role in ("user", "assistant"):
            turns.append({"role": msg.role, "content": msg.content})

    turns.append({"role": "user", "content": new_content})
    if len(turns) > max_turns:
        turns = turns[-max_turns:]

    prompt: list[dict] = []
    if system_parts:
        prompt.append({"role": "system", "content": SYSTEM_SEPARATOR.join(system_parts)})
    prompt.extend(turns)
    return prompt
