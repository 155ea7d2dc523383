"""
SQLAlchemy ORM Models — Content Records

The admin panel's CRUD layer owns every column except the four extraction
columns, which are written only by the extraction pipeline:

    content_text                  extracted text of the most recent run
    text_extracted_at             server time of the last successful run
    text_extraction_error         message of the last failed automatic run
    text_extraction_attempted_at  server time of the last failed automatic run
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class ContentRecord(Base):
    """One piece of uploaded content and the files attached to it."""

    __tablename__ = "content"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)

    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Ordered storage URLs, e.g. s3://bucket/content/<id>/<file>
    file_urls: Mapped[list[str]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        server_default="[]",
    )

    # ---- Extraction pipeline columns -------------------------------------
    content_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    text_extracted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    text_extraction_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    text_extraction_attempted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
        server_default=func.now(), onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<ContentRecord id={self.id} files={len(self.file_urls or [])}>"
