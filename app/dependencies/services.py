"""
Service providers for FastAPI routes.

Routes receive services through these dependencies so tests can swap in an
offline remote client via ``app.dependency_overrides``.
"""
from __future__ import annotations

from app.services.analysis import DocumentAnalysisService
from app.services.conversation import ConversationEngine, conversation_engine
from app.services.document_parser import DocumentParser


async def get_analysis_service() -> DocumentAnalysisService:
    return DocumentAnalysisService()


async def get_conversation_engine() -> ConversationEngine:
    """The process-wide engine; chat sessions live in its store."""
    return conversation_engine


async def get_document_parser() -> DocumentParser:
    return DocumentParser()
