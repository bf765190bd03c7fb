"""
SQLAlchemy models for generation requests, batches and documents.

status is persisted as one of the GenerationStatus literals.
"""

import uuid
from typing import Any, Dict

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    TIMESTAMP,
    Text,
    Uuid,
)

from modules.generation.core.interfaces import GenerationStatus
from src.database.connection import Base
from src.database.models.types import JSONType, utc_now


def _iso(value) -> str | None:
    return value.isoformat() if value else None


class GenerationBatch(Base):
    """Groups sibling requests; carries no state of its own."""

    __tablename__ = "document_generation_batches"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(64), nullable=False, index=True)
    total_count = Column(Integer, nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "tenant_id": self.tenant_id,
            "total_count": self.total_count,
            "created_at": _iso(self.created_at),
        }


class GenerationRequest(Base):
    """
    One unit of generation work.

    Exactly one of version_id / environment_id is set; environment
    references resolve to the active version when the request is claimed.
    """

    __tablename__ = "document_generation_requests"
    __table_args__ = (
        CheckConstraint(
            "(version_id IS NULL) <> (environment_id IS NULL)",
            name="ck_generation_request_version_xor_environment",
        ),
        Index("ix_generation_requests_status_created", "status", "created_at"),
        Index("ix_generation_requests_tenant_created", "tenant_id", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    batch_id = Column(Uuid, ForeignKey("document_generation_batches.id"), nullable=True, index=True)
    tenant_id = Column(String(64), nullable=False)

    # Template reference
    template_id = Column(String(64), nullable=False)
    variant_id = Column(String(64), nullable=False)
    version_id = Column(String(64), nullable=True)
    environment_id = Column(String(64), nullable=True)

    # Payload
    data = Column(JSONType, nullable=False, default=dict)
    filename = Column(String(255), nullable=True)
    correlation_id = Column(String(255), nullable=True, index=True)
    created_by = Column(String(255), nullable=True)

    # Outcome
    document_id = Column(Uuid, nullable=True)
    status = Column(String(20), nullable=False, default=GenerationStatus.PENDING.value)
    claimed_by = Column(String(255), nullable=True)
    claimed_at = Column(TIMESTAMP(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)
    started_at = Column(TIMESTAMP(timezone=True), nullable=True)
    completed_at = Column(TIMESTAMP(timezone=True), nullable=True)
    expires_at = Column(TIMESTAMP(timezone=True), nullable=True)

    @property
    def status_enum(self) -> GenerationStatus:
        return GenerationStatus(self.status)

    @property
    def effective_filename(self) -> str:
        return self.filename or f"document-{self.id}.pdf"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "batch_id": str(self.batch_id) if self.batch_id else None,
            "tenant_id": self.tenant_id,
            "template_id": self.template_id,
            "variant_id": self.variant_id,
            "version_id": self.version_id,
            "environment_id": self.environment_id,
            "filename": self.filename,
            "correlation_id": self.correlation_id,
            "created_by": self.created_by,
            "document_id": str(self.document_id) if self.document_id else None,
            "status": self.status,
            "claimed_by": self.claimed_by,
            "claimed_at": _iso(self.claimed_at),
            "error_message": self.error_message,
            "created_at": _iso(self.created_at),
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "expires_at": _iso(self.expires_at),
        }


class Document(Base):
    """Metadata of a generated document; bytes live in the content store."""

    __tablename__ = "documents"
    __table_args__ = (
        Index("ix_documents_tenant_created", "tenant_id", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(64), nullable=False)
    template_id = Column(String(64), nullable=False, index=True)
    variant_id = Column(String(64), nullable=False)
    version_id = Column(String(64), nullable=False)
    generation_request_id = Column(Uuid, nullable=True)
    filename = Column(String(255), nullable=False)
    correlation_id = Column(String(255), nullable=True, index=True)
    created_by = Column(String(255), nullable=True)
    content_type = Column(String(100), nullable=False, default="application/pdf")
    size_bytes = Column(BigInteger, nullable=False)
    storage_key = Column(String(512), nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "tenant_id": self.tenant_id,
            "template_id": self.template_id,
            "variant_id": self.variant_id,
            "version_id": self.version_id,
            "generation_request_id": str(self.generation_request_id) if self.generation_request_id else None,
            "filename": self.filename,
            "correlation_id": self.correlation_id,
            "created_by": self.created_by,
            "content_type": self.content_type,
            "size_bytes": self.size_bytes,
            "storage_key": self.storage_key,
            "created_at": _iso(self.created_at),
        }
