"""
SQLAlchemy ORM models for the Docsight database.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    JSON,
)
from sqlalchemy.sql import func

from app.database import Base


# Models
class Document(Base):
    """Uploaded document with its stored file and latest analysis."""

    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    # Owner id from the X-User-Id header
    user_id = Column(String(255), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    filename = Column(String(255), nullable=False)  # original display name
    file_path = Column(String(512), nullable=False)  # UUID-based path on disk
    file_type = Column(String(50), nullable=False)  # pdf, docx, txt
    file_size = Column(Integer, nullable=False)  # bytes
    status = Column(String(50), nullable=False, default="uploaded")  # uploaded, processing, processed, error

    # Analysis output
    content_text = Column(Text, nullable=True)  # Full extracted text
    summary = Column(Text, nullable=True)
    insights = Column(JSON, nullable=True)
    key_points = Column(JSON, nullable=True)
    sentiment = Column(String(20), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)
