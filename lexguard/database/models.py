"""Database models for the LexGuard corpus and generated batches."""

import uuid
from datetime import datetime
from typing import Any

from pgvector.sqlalchemy import Vector  # type: ignore[import-untyped]
from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class Topic(Base):
    """Syllabus topic. The number decides the knowledge domain."""

    __tablename__ = "topics"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    number: Mapped[int] = mapped_column(Integer, nullable=False, unique=True, index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class LegalArticle(Base):
    """Legal article loaded by the ingestion pipeline (read-only here)."""

    __tablename__ = "legal_articles"
    __table_args__ = (
        Index("ix_legal_articles_lookup", "law_code", "article_number", "section"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    law_name: Mapped[str] = mapped_column(Text, nullable=False)
    law_code: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    article_number: Mapped[str] = mapped_column(String(32), nullable=False)
    section: Mapped[str | None] = mapped_column(String(32), nullable=True)  # apartado
    chapter_heading: Mapped[str] = mapped_column(Text, nullable=False, default="")
    full_text: Mapped[str] = mapped_column(Text, nullable=False)
    topic_ids: Mapped[list[uuid.UUID]] = mapped_column(
        ARRAY(UUID(as_uuid=True)), nullable=False, default=list
    )
    embedding: Mapped[Any | None] = mapped_column(Vector(384), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class TechnicalSection(Base):
    """Technical-knowledge section (office software, IT, e-administration)."""

    __tablename__ = "technical_sections"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    block: Mapped[str] = mapped_column(
        String(32), nullable=False, index=True
    )  # 'ofimatica', 'informatica', 'admin_electronica'
    topic_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True, index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    source_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    embedding: Mapped[Any | None] = mapped_column(Vector(384), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)


class GeneratedBatch(Base):
    """Verified batch handed over by the result assembler."""

    __tablename__ = "generated_batches"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    topic_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    requester_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False, default="topic")
    prompt_version: Mapped[str] = mapped_column(String(20), nullable=False)
    items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class TrapSession(Base):
    """Trap exercise; injected errors stay server-side until graded."""

    __tablename__ = "trap_sessions"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    article_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    requester_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    law_name: Mapped[str] = mapped_column(Text, nullable=False)
    article_number: Mapped[str] = mapped_column(String(32), nullable=False)
    chapter_heading: Mapped[str] = mapped_column(Text, nullable=False, default="")
    trap_text: Mapped[str] = mapped_column(Text, nullable=False)
    injected_errors: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    detections: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
