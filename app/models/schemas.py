"""
Pydantic schemas for request/response validation.
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Dict, Optional, List, Literal
from datetime import datetime, timezone
from enum import Enum


# Enums (matching database values)
class DocumentStatus(str, Enum):
    """Processing status of an uploaded document."""

    UPLOADED = "uploaded"
    PROCESSING = "processing"
    PROCESSED = "processed"
    ERROR = "error"


Sentiment = Literal["positive", "negative", "neutral"]
ChatRole = Literal["user", "assistant"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------

class AnalysisResult(BaseModel):
    """
    Outcome of one document analysis.

    ``key_points`` is capped at 7 entries and serialised as ``keyPoints``.
    """

    summary: str
    insights: List[str] = Field(default_factory=list)
    key_points: List[str] = Field(default_factory=list, max_length=7, alias="keyPoints")
    sentiment: Sentiment = "neutral"

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class AnalyzeTextRequest(BaseModel):
    """Schema for analysing raw text without uploading a file."""

    text: str = Field(..., max_length=2_000_000)


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

class ChatTurn(BaseModel):
    """One message in a chat session."""

    role: ChatRole
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(frozen=True)


class ChatMessageRequest(BaseModel):
    """Schema for posting a message to a chat session."""

    message: str = Field(..., min_length=1, max_length=4000)


class ChatSessionResponse(BaseModel):
    """Response for starting a chat session."""

    session_id: str
    document_id: int
    document_title: str
    messages: List[ChatTurn]


class ChatReplyResponse(BaseModel):
    """Response for a posted chat message."""

    session_id: str
    reply: ChatTurn
    messages: List[ChatTurn]


class ChatHistoryResponse(BaseModel):
    """Response for a session's transcript."""

    session_id: str
    messages: List[ChatTurn]


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

class DocumentUploadResponse(BaseModel):
    """Schema for document upload response."""

    id: int
    title: str
    filename: str
    file_type: str
    file_size: int
    status: DocumentStatus = DocumentStatus.UPLOADED
    message: str = "Document uploaded successfully"


class DocumentUpdateRequest(BaseModel):
    """Schema for renaming a document."""

    title: str = Field(..., min_length=1, max_length=255)


class DocumentStatsResponse(BaseModel):
    """Per-user document counts and storage use."""

    total_documents: int
    total_size: int
    documents_by_type: Dict[str, int] = Field(default_factory=dict)


class DocumentResponse(BaseModel):
    """Schema for document details.  Key points go out as ``keyPoints``, as in AnalysisResult."""

    id: int
    title: str
    filename: str
    file_type: str
    file_size: int
    status: DocumentStatus
    summary: Optional[str] = None
    insights: Optional[List[str]] = None
    key_points: Optional[List[str]] = Field(default=None, serialization_alias="keyPoints")
    sentiment: Optional[str] = None
    created_at: datetime
    processed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class DocumentAnalysisResponse(BaseModel):
    """Response for POST /api/documents/{id}/analyze."""

    document_id: int
    status: DocumentStatus
    analysis: AnalysisResult
    processing_time_seconds: float


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class HealthCheckResponse(BaseModel):
    """Schema for health check response."""

    status: str
    database: str
    remote_analysis: str
    timestamp: datetime
