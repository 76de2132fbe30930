"""Conversation and branch schemas."""

from datetime import datetime

from pydantic import BaseModel

from schemas.message import MessageOut, ModelParameters
from services.branching import BranchType


class ConversationOut(BaseModel):
    id: int
    title: str | None = None
    parent_conversation_id: int | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class UsageOut(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    replies: int = 0


class ConversationDetailOut(ConversationOut):
    branch_count: int = 0
    is_root: bool = True
    usage: UsageOut


class NewConversationIn(BaseModel):
    content: str
    model: str
    parameters: ModelParameters | None = None


class NewConversationOut(BaseModel):
    conversation: ConversationOut
    messages: list[MessageOut]


class BranchIn(BaseModel):
    type: BranchType = BranchType.FULL


class TitleOut(BaseModel):
    id: int
    title: str
