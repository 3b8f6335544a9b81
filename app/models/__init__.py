"""Database and schema models for Docsight."""
from app.models.database_models import Document
from app.models.schemas import (
    AnalysisResult,
    ChatTurn,
    DocumentStatus,
    DocumentUploadResponse,
    DocumentResponse,
    HealthCheckResponse,
)

__all__ = [
    # Database models
    "Document",
    # Pydantic schemas
    "AnalysisResult",
    "ChatTurn",
    "DocumentStatus",
    "DocumentUploadResponse",
    "DocumentResponse",
    "HealthCheckResponse",
]
