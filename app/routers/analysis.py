"""
Ad-hoc analysis endpoint.

POST /text : analyse raw text without uploading or storing a file.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from app.dependencies.services import get_analysis_service
from app.models.schemas import AnalysisResult, AnalyzeTextRequest
from app.services.analysis import DocumentAnalysisService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/text", response_model=AnalysisResult, response_model_by_alias=True)
async def analyze_text(
    body: AnalyzeTextRequest,
    service: DocumentAnalysisService = Depends(get_analysis_service),
) -> AnalysisResult:
    """
    Summarise *text* and derive insights, key points and sentiment.

    Always returns a well-formed result; empty text yields the generic
    placeholder analysis.
    """
    logger.info("analyze_text: %d chars", len(body.text))
    return await service.analyze_document(body.text)
