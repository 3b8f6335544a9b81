"""
Document upload and management endpoints.

POST   /upload        : store a PDF, DOCX or TXT file; analysis runs separately.
GET    /              : list the caller's documents, newest first.
GET    /stats         : document count, total size and count per file type.
GET    /{id}          : document metadata and latest analysis.
PATCH  /{id}          : rename a document.
DELETE /{id}          : delete the document row and its file on disk.
POST   /{id}/analyze  : extract text, analyse it and persist the result.

Every route is scoped to the user id from the X-User-Id header; another
user's document is reported as not found.
"""
from __future__ import annotations

import logging
import os
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import aiofiles
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.dependencies.auth import get_current_user_id
from app.dependencies.services import get_analysis_service, get_document_parser
from app.models.database_models import Document
from app.models.schemas import (
    DocumentAnalysisResponse,
    DocumentResponse,
    DocumentStatsResponse,
    DocumentStatus,
    DocumentUpdateRequest,
    DocumentUploadResponse,
)
from app.services.analysis import DocumentAnalysisService
from app.services.document_parser import DocumentParser

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------

@router.post(
    "/upload",
    response_model=DocumentUploadResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_document(
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> DocumentUploadResponse:
    """
    Store an uploaded PDF, DOCX or TXT file.

    - Max file size: 10 MB (configurable via MAX_FILE_SIZE)
    - File is stored with a UUID filename to avoid collisions
    - ``title`` defaults to the file name without its extension
    - Text is **not** extracted here; call POST /{id}/analyze next
    """
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Upload must include a filename.",
        )

    file_ext = Path(file.filename).suffix.lower()
    if file_ext not in settings.SUPPORTED_FILE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Unsupported file type '{file_ext}'. "
                f"Accepted: {', '.join(settings.SUPPORTED_FILE_TYPES)}"
            ),
        )

    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    stored_name = f"{uuid.uuid4().hex}{file_ext}"
    file_path = os.path.join(settings.UPLOAD_DIR, stored_name)
    file_size = 0

    try:
        async with aiofiles.open(file_path, "wb") as out:
            while True:
                chunk = await file.read(1024 * 1024)   # 1 MB slices
                if not chunk:
                    break
                file_size += len(chunk)
                if file_size > settings.MAX_FILE_SIZE:
                    await out.close()
                    _safe_remove(file_path)
                    raise HTTPException(
                        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                        detail=(
                            f"File exceeds the {settings.MAX_FILE_SIZE // (1024 * 1024)} MB "
                            "size limit."
                        ),
                    )
                await out.write(chunk)

        if file_size == 0:
            _safe_remove(file_path)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Uploaded file is empty.",
            )

        logger.info("Saved %r -> %s (%s bytes)", file.filename, file_path, f"{file_size:,}")

        document = Document(
            user_id=user_id,
            title=(title or "").strip() or Path(file.filename).stem,
            filename=file.filename,
            file_path=file_path,
            file_type=file_ext.lstrip("."),
            file_size=file_size,
            status=DocumentStatus.UPLOADED.value,
        )
        db.add(document)
        await db.commit()
        await db.refresh(document)

        logger.info("Document %r stored as id=%d for user %s", file.filename, document.id, user_id)

        return DocumentUploadResponse(
            id=document.id,
            title=document.title,
            filename=document.filename,
            file_type=document.file_type,
            file_size=document.file_size,
            status=DocumentStatus.UPLOADED,
        )

    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Unexpected error storing %r", file.filename)
        _safe_remove(file_path)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error uploading document: {exc}",
        )


# ---------------------------------------------------------------------------
# List / stats
# ---------------------------------------------------------------------------

@router.get("/", response_model=List[DocumentResponse])
async def list_documents(
    skip: int = 0,
    limit: int = 100,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[DocumentResponse]:
    """
    List the caller's documents, newest first.

    Supports pagination via `skip` and `limit` query parameters.
    """
    docs_result = await db.execute(
        select(Document)
        .where(Document.user_id == user_id)
        .order_by(Document.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    return [DocumentResponse.model_validate(doc) for doc in docs_result.scalars().all()]


@router.get("/stats", response_model=DocumentStatsResponse)
async def document_stats(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> DocumentStatsResponse:
    """Count and total size of the caller's documents, plus a count per file type."""
    by_type_result = await db.execute(
        select(
            Document.file_type,
            func.count(Document.id).label("cnt"),
            func.coalesce(func.sum(Document.file_size), 0).label("size"),
        )
        .where(Document.user_id == user_id)
        .group_by(Document.file_type)
    )
    rows = by_type_result.all()

    return DocumentStatsResponse(
        total_documents=sum(row.cnt for row in rows),
        total_size=sum(int(row.size) for row in rows),
        documents_by_type={row.file_type: row.cnt for row in rows},
    )


# ---------------------------------------------------------------------------
# Get / update / delete
# ---------------------------------------------------------------------------

@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> DocumentResponse:
    """Return metadata and the latest analysis for a single document."""
    document = await _get_owned_document(db, document_id, user_id)
    return DocumentResponse.model_validate(document)


@router.patch("/{document_id}", response_model=DocumentResponse)
async def update_document(
    document_id: int,
    body: DocumentUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> DocumentResponse:
    """Rename a document."""
    document = await _get_owned_document(db, document_id, user_id)
    document.title = body.title.strip()
    await db.commit()
    await db.refresh(document)

    logger.info("Renamed document id=%d to %r", document_id, document.title)
    return DocumentResponse.model_validate(document)


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
async def delete_document(
    document_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Delete a document and its file from disk."""
    document = await _get_owned_document(db, document_id, user_id)

    _safe_remove(document.file_path)

    await db.delete(document)
    await db.commit()

    logger.info("Deleted document id=%d (%r)", document_id, document.filename)


# ---------------------------------------------------------------------------
# Analyze
# ---------------------------------------------------------------------------

@router.post("/{document_id}/analyze", response_model=DocumentAnalysisResponse)
async def analyze_document(
    document_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    parser: DocumentParser = Depends(get_document_parser),
    service: DocumentAnalysisService = Depends(get_analysis_service),
) -> DocumentAnalysisResponse:
    """
    Extract the document's text, analyse it and store the result.

    Steps
    -----
    1. Mark the document ``processing``.
    2. Extract text (an unreadable file yields empty text, not an error).
    3. Summarise remotely where configured; everything else is rule-based.
    4. Persist summary, insights, key points and sentiment; mark ``processed``.

    The document is marked ``error`` if persisting the analysis fails.
    """
    document = await _get_owned_document(db, document_id, user_id)

    t0 = time.monotonic()
    document.status = DocumentStatus.PROCESSING.value
    await db.commit()

    try:
        text = await parser.extract_text(document.file_path, document.filename)
        result = await service.analyze_document(text)

        document.content_text = text
        document.summary = result.summary
        document.insights = list(result.insights)
        document.key_points = list(result.key_points)
        document.sentiment = result.sentiment
        document.status = DocumentStatus.PROCESSED.value
        document.processed_at = datetime.now(timezone.utc)
        await db.commit()
    except Exception as exc:
        logger.exception("analyze_document: failed for id=%d", document_id)
        await db.rollback()
        document.status = DocumentStatus.ERROR.value
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Analysis failed: {exc}",
        )

    elapsed = round(time.monotonic() - t0, 2)
    logger.info(
        "analyze_document id=%d: %d chars analysed in %.2fs (%s)",
        document_id,
        len(text),
        elapsed,
        result.sentiment,
    )
    return DocumentAnalysisResponse(
        document_id=document_id,
        status=DocumentStatus.PROCESSED,
        analysis=result,
        processing_time_seconds=elapsed,
    )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

async def _get_owned_document(db: AsyncSession, document_id: int, user_id: str) -> Document:
    """Return the caller's document or raise 404."""
    doc_result = await db.execute(
        select(Document).where(
            Document.id == document_id,
            Document.user_id == user_id,
        )
    )
    document = doc_result.scalar_one_or_none()
    if document is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Document {document_id} not found.",
        )
    return document


def _safe_remove(path: str) -> None:
    """Delete a file silently, logging warnings but never raising."""
    try:
        if path and os.path.exists(path):
            os.remove(path)
    except Exception as exc:
        logger.warning("Could not remove file %r: %s", path, exc)
