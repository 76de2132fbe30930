"""Message schemas."""

from datetime import datetime

from pydantic import BaseModel


class ModelParameters(BaseModel):
    """Optional per-request overrides, range-checked by services.llm.resolve_parameters."""

    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None


class MessageOut(BaseModel):
    id: int
    conversation_id: int
    role: str
    content: str
    model_name: str | None = None
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class SendMessageIn(BaseModel):
    content: str
    model: str
    parameters: ModelParameters | None = None


class RetryIn(BaseModel):
    model: str
    parameters: ModelParameters | None = None
