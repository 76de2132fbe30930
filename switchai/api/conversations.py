"""Conversation, message and branch endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from auth import get_current_user
from database import get_db
from models.user import UserProfile
from schemas.conversation import (
    BranchIn,
    ConversationDetailOut,
    ConversationOut,
    NewConversationIn,
    NewConversationOut,
    TitleOut,
)
from schemas.message import MessageOut, RetryIn, SendMessageIn
from services.branching import BranchEngine
from services.conversations import ConversationService, assign_title_job
from services.history import validate_content
from services.messages import MessageOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


def _params(body) -> dict | None:
    return body.parameters.model_dump(exclude_none=True) if body.parameters else None


@router.post("/", response_model=NewConversationOut, status_code=201)
def create_conversation(
    payload: NewConversationIn,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    profile: UserProfile = Depends(get_current_user),
):
    # Fail before creating an empty conversation
    validate_content(payload.content)
    orchestrator = MessageOrchestrator(db)
    params = orchestrator.check_request(payload.model, _params(payload))
    orchestrator.credentials.get_decrypted_key(profile.id)

    conv = ConversationService(db).create_conversation(profile.id)
    user_msg, assistant_msg = orchestrator.send(
        conv.id, profile.id, payload.content, payload.model, params
    )
    background_tasks.add_task(assign_title_job, conv.id, profile.id, payload.content)
    return {"conversation": conv, "messages": [user_msg, assistant_msg]}


@router.get("/{conversation_id}/", response_model=ConversationDetailOut)
def get_conversation(
    conversation_id: int,
    db: Session = Depends(get_db),
    profile: UserProfile = Depends(get_current_user),
):
    service = ConversationService(db)
    conv = service.get_conversation(conversation_id, profile.id)
    return {
        "id": conv.id,
        "title": conv.title,
        "parent_conversation_id": conv.parent_conversation_id,
        "created_at": conv.created_at,
        "branch_count": conv.branch_count,
        "is_root": conv.is_root,
        "usage": service.conversation_usage(conversation_id, profile.id),
    }


@router.delete("/{conversation_id}/", status_code=204)
def delete_conversation(
    conversation_id: int,
    db: Session = Depends(get_db),
    profile: UserProfile = Depends(get_current_user),
):
    ConversationService(db).delete_conversation(conversation_id, profile.id)


@router.get("/{conversation_id}/messages/", response_model=list[MessageOut])
def list_messages(
    conversation_id: int,
    db: Session = Depends(get_db),
    profile: UserProfile = Depends(get_current_user),
):
    return ConversationService(db).get_transcript(conversation_id, profile.id)


@router.post("/{conversation_id}/messages/", response_model=list[MessageOut], status_code=201)
def send_message(
    conversation_id: int,
    payload: SendMessageIn,
    db: Session = Depends(get_db),
    profile: UserProfile = Depends(get_current_user),
):
    user_msg, assistant_msg = MessageOrchestrator(db).send(
        conversation_id, profile.id, payload.content, payload.model, _params(payload)
    )
    return [user_msg, assistant_msg]


@router.post("/{conversation_id}/messages/retry/", response_model=list[MessageOut], status_code=201)
def retry_message(
    conversation_id: int,
    payload: RetryIn,
    db: Session = Depends(get_db),
    profile: UserProfile = Depends(get_current_user),
):
    user_msg, assistant_msg = MessageOrchestrator(db).retry(
        conversation_id, profile.id, payload.model, _params(payload)
    )
    return [user_msg, assistant_msg]


@router.post(
    "/{conversation_id}/messages/{message_id}/branch/",
    response_model=ConversationOut,
    status_code=201,
)
def create_branch(
    conversation_id: int,
    message_id: int,
    payload: BranchIn,
    db: Session = Depends(get_db),
    profile: UserProfile = Depends(get_current_user),
):
    return BranchEngine(db).create_branch(message_id, profile.id, payload.type, conversation_id)


@router.post("/{conversation_id}/title/", response_model=TitleOut)
def generate_title(
    conversation_id: int,
    db: Session = Depends(get_db),
    profile: UserProfile = Depends(get_current_user),
):
    service = ConversationService(db)
    first_user = next(
        (m for m in service.get_transcript(conversation_id, profile.id) if m.role == "user"),
        None,
    )
    if first_user is None:
        conv = service.get_conversation(conversation_id, profile.id)
        return {"id": conv.id, "title": conv.title or "New Conversation"}
    title = service.assign_title(conversation_id, profile.id, first_user.content)
    return {"id": conversation_id, "title": title}
