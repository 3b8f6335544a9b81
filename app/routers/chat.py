"""
Document chat endpoints.

POST   /start/{document_id}   : open a session over one of the caller's documents.
POST   /message/{session_id}  : ask a question; returns the assistant reply.
GET    /history/{session_id}  : full transcript, oldest first.
DELETE /{session_id}          : end the session.

Sessions are held in process memory by the ConversationEngine.  Every route
is scoped to the X-User-Id caller; an unknown session, or one started by
another user, is reported as 404.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import get_current_user_id
from app.dependencies.services import get_conversation_engine, get_document_parser
from app.models.database_models import Document
from app.models.schemas import (
    ChatHistoryResponse,
    ChatMessageRequest,
    ChatReplyResponse,
    ChatSessionResponse,
)
from app.services.conversation import ConversationEngine, SessionNotFoundError
from app.services.document_parser import DocumentParser

logger = logging.getLogger(__name__)

router = APIRouter()


def _session_not_found(exc: SessionNotFoundError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=str(exc),
    )


@router.post(
    "/start/{document_id}",
    response_model=ChatSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def start_chat(
    document_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    parser: DocumentParser = Depends(get_document_parser),
    engine: ConversationEngine = Depends(get_conversation_engine),
) -> ChatSessionResponse:
    """
    Start (or restart) the caller's chat over a document.

    The session id is ``{user_id}_{document_id}``, so starting again replaces
    the previous conversation.  Text stored by a previous analysis is reused;
    otherwise it is extracted from the file now and stored.
    """
    document = await db.get(Document, document_id)
    if document is None or document.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Document {document_id} not found.",
        )

    text = document.content_text
    if not text:
        text = await parser.extract_text(document.file_path, document.filename)
        if text:
            document.content_text = text
            await db.commit()

    session_id = await engine.start_session(
        document_id=document.id,
        text=text or "",
        title=document.title,
        session_id=f"{user_id}_{document.id}",
        user_id=user_id,
    )
    return ChatSessionResponse(
        session_id=session_id,
        document_id=document.id,
        document_title=document.title,
        messages=engine.history(session_id, user_id),
    )


@router.post("/message/{session_id}", response_model=ChatReplyResponse)
async def send_message(
    session_id: str,
    body: ChatMessageRequest,
    user_id: str = Depends(get_current_user_id),
    engine: ConversationEngine = Depends(get_conversation_engine),
) -> ChatReplyResponse:
    """Answer one question about the session's document."""
    try:
        reply = await engine.post_message(session_id, body.message, user_id=user_id)
        messages = engine.history(session_id, user_id)
    except SessionNotFoundError as exc:
        raise _session_not_found(exc)

    return ChatReplyResponse(session_id=session_id, reply=reply, messages=messages)


@router.get("/history/{session_id}", response_model=ChatHistoryResponse)
async def get_history(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    engine: ConversationEngine = Depends(get_conversation_engine),
) -> ChatHistoryResponse:
    try:
        messages = engine.history(session_id, user_id)
    except SessionNotFoundError as exc:
        raise _session_not_found(exc)
    return ChatHistoryResponse(session_id=session_id, messages=messages)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
async def end_chat(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    engine: ConversationEngine = Depends(get_conversation_engine),
) -> None:
    try:
        engine.end_session(session_id, user_id)
    except SessionNotFoundError as exc:
        raise _session_not_found(exc)
