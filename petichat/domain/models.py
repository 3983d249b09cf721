from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from pgvector.sqlalchemy import Vector

from petichat.core.config import EMBED_DIM


# JSONB and pgvector on Postgres; plain JSON keeps the schema portable to sqlite test runs.
JSONType = JSONB().with_variant(JSON(), "sqlite")
EmbeddingType = Vector(EMBED_DIM).with_variant(JSON(), "sqlite")
# sqlite only autoincrements INTEGER primary keys.
BigIntId = BigInteger().with_variant(Integer(), "sqlite")


def new_id() -> str:
    return uuid4().hex


class Base(DeclarativeBase):
    # Fetch server-side timestamps on flush so async callers never lazy-load them.
    __mapper_args__ = {"eager_defaults": True}


class Tenant(Base):
    __tablename__ = "tenants"

    # A tenant is the law firm that owns users, cases and documents.
    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String, ForeignKey("tenants.id"), index=True)
    email: Mapped[str] = mapped_column(String, unique=True)
    name: Mapped[str] = mapped_column(String)
    # Persist the role as a plain string for fast lookup and migration safety.
    role: Mapped[str] = mapped_column(String)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Membership(Base):
    __tablename__ = "memberships"
    __table_args__ = (UniqueConstraint("tenant_id", "user_id", name="uq_memberships_tenant_user"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String, ForeignKey("tenants.id"), index=True)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), index=True)
    role: Mapped[str] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class ApiKey(Base):
    __tablename__ = "api_keys"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), index=True)
    tenant_id: Mapped[str] = mapped_column(String, index=True)
    # Keep a short prefix for operator display without exposing the secret.
    key_prefix: Mapped[str] = mapped_column(String)
    # Store only the hashed key to avoid plaintext credentials at rest.
    key_hash: Mapped[str] = mapped_column(String, unique=True, index=True)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Case(Base):
    __tablename__ = "cases"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String, ForeignKey("tenants.id"), index=True)
    owner_id: Mapped[str] = mapped_column(String, index=True)
    client_name: Mapped[str] = mapped_column(String)
    # Case type doubles as the template key used for drafting.
    case_type: Mapped[str] = mapped_column(String)
    facts_description: Mapped[str] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String, default="draft", index=True)
    metadata_json: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    # Wizard step tracking survives reloads even though wizard state itself is client-held.
    current_step: Mapped[int] = mapped_column(Integer, default=1)
    completed_steps: Mapped[list[int]] = mapped_column(JSONType, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Thesis(Base):
    __tablename__ = "theses"
    __table_args__ = (UniqueConstraint("case_id", "order_index", name="uq_theses_case_order"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String, index=True)
    case_id: Mapped[str] = mapped_column(String, ForeignKey("cases.id", ondelete="CASCADE"), index=True)
    # preliminary | merits | claim
    category: Mapped[str] = mapped_column(String)
    title: Mapped[str] = mapped_column(String)
    content: Mapped[str] = mapped_column(Text)
    # Selection is the only gate for inclusion in document generation.
    selected: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    order_index: Mapped[int] = mapped_column(Integer)
    ai_generated: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # pending | approved | rejected | needs_revision
    review_status: Mapped[str] = mapped_column(String, default="pending")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Jurisprudence(Base):
    __tablename__ = "jurisprudences"
    __table_args__ = (
        UniqueConstraint("tribunal", "process_number", name="uq_jurisprudences_tribunal_process"),
    )

    # Precedents are shared reference data and immutable once ingested.
    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    tribunal: Mapped[str] = mapped_column(String, index=True)
    process_number: Mapped[str] = mapped_column(String)
    decision_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    # Ementa.
    summary: Mapped[str] = mapped_column(Text)
    full_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    external_url: Mapped[str | None] = mapped_column(String, nullable=True)
    source: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class JurisprudenceChunk(Base):
    __tablename__ = "jurisprudence_chunks"
    __table_args__ = (
        UniqueConstraint("jurisprudence_id", "chunk_index", name="uq_jurisprudence_chunks_index"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    jurisprudence_id: Mapped[str] = mapped_column(
        String, ForeignKey("jurisprudences.id", ondelete="CASCADE"), index=True
    )
    chunk_index: Mapped[int] = mapped_column(Integer)
    # summary | full_text
    chunk_type: Mapped[str] = mapped_column(String)
    content: Mapped[str] = mapped_column(Text)
    # Filled by the embeddings job; null until then.
    embedding: Mapped[list[float] | None] = mapped_column(EmbeddingType, nullable=True)
    embedded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Citation(Base):
    __tablename__ = "citations"
    __table_args__ = (
        UniqueConstraint("case_id", "jurisprudence_id", name="uq_citations_case_jurisprudence"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String, index=True)
    case_id: Mapped[str] = mapped_column(String, ForeignKey("cases.id", ondelete="CASCADE"), index=True)
    jurisprudence_id: Mapped[str] = mapped_column(String, ForeignKey("jurisprudences.id"))
    tribunal: Mapped[str] = mapped_column(String)
    process_number: Mapped[str] = mapped_column(String)
    excerpt: Mapped[str] = mapped_column(Text)
    position: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Template(Base):
    __tablename__ = "templates"
    __table_args__ = (UniqueConstraint("name", name="uq_templates_name"),)

    # Drafting templates are global reference data shared by every tenant.
    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String, index=True)
    area: Mapped[str] = mapped_column(String)
    # Procedural rite, when the template is tied to one.
    rito: Mapped[str | None] = mapped_column(String, nullable=True)
    is_popular: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # Ordered section keys offered to the drafting wizard as an outline.
    structure_json: Mapped[list[str]] = mapped_column(JSONType, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class LegalDocument(Base):
    __tablename__ = "legal_documents"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String, index=True)
    case_id: Mapped[str] = mapped_column(String, ForeignKey("cases.id", ondelete="CASCADE"), index=True)
    title: Mapped[str] = mapped_column(String)
    document_type: Mapped[str] = mapped_column(String)
    # draft | completed
    status: Mapped[str] = mapped_column(String, default="draft")
    # Ordered sections [{type, title, content, order}]; content_html is their rendering.
    sections_json: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    content_html: Mapped[str] = mapped_column(Text, default="")
    # Bumped on every content write; writers may echo it back to detect lost updates.
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class DocumentVersion(Base):
    __tablename__ = "document_versions"
    __table_args__ = (
        UniqueConstraint("document_id", "version_number", name="uq_document_versions_number"),
    )

    # Append-only snapshots; rows are never updated or deleted individually.
    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String, index=True)
    document_id: Mapped[str] = mapped_column(
        String, ForeignKey("legal_documents.id", ondelete="CASCADE"), index=True
    )
    version_number: Mapped[int] = mapped_column(Integer)
    title: Mapped[str] = mapped_column(String)
    content_html: Mapped[str] = mapped_column(Text)
    sections_json: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    label: Mapped[str | None] = mapped_column(String, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class PendingAction(Base):
    __tablename__ = "pending_actions"

    # Persist AI proposals awaiting explicit apply/discard from the editor.
    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String, index=True)
    actor_id: Mapped[str] = mapped_column(String, index=True)
    action: Mapped[str] = mapped_column(String)
    original_text: Mapped[str] = mapped_column(Text)
    result_text: Mapped[str] = mapped_column(Text)
    context_json: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    # pending | applied | discarded
    status: Mapped[str] = mapped_column(String, default="pending", index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    applied_document_id: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class JobRecord(Base):
    __tablename__ = "job_records"

    # Mirror queue state so callers can poll progress after a 202 response.
    id: Mapped[str] = mapped_column(String, primary_key=True)
    kind: Mapped[str] = mapped_column(String, index=True)
    tenant_id: Mapped[str | None] = mapped_column(String, index=True, nullable=True)
    # queued | running | succeeded | failed
    status: Mapped[str] = mapped_column(String, index=True)
    progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_attempts: Mapped[int] = mapped_column(Integer)
    payload_json: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    result_json: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    queued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    tenant_id: Mapped[str | None] = mapped_column(String, index=True, nullable=True)
    actor_type: Mapped[str] = mapped_column(String)
    actor_id: Mapped[str | None] = mapped_column(String, nullable=True)
    event_type: Mapped[str] = mapped_column(String, index=True)
    outcome: Mapped[str] = mapped_column(String)
    resource_type: Mapped[str | None] = mapped_column(String, nullable=True)
    resource_id: Mapped[str | None] = mapped_column(String, nullable=True)
    request_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    # Sanitized before write; carries AI usage counters for editor and wizard calls.
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(JSONType, default=dict)
    error_code: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class MetricsEvent(Base):
    __tablename__ = "metrics_events"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String, index=True)
    user_id: Mapped[str | None] = mapped_column(String, nullable=True)
    # case_created | document_created | document_generated | document_exported
    event_type: Mapped[str] = mapped_column(String, index=True)
    metadata_json: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


Index("ix_cases_tenant_created_at", Case.tenant_id, Case.created_at.desc())
Index("ix_theses_case_order", Thesis.case_id, Thesis.order_index)
Index("ix_jurisprudences_decision_date", Jurisprudence.decision_date.desc())
Index("ix_legal_documents_case_created_at", LegalDocument.case_id, LegalDocument.created_at.desc())
Index("ix_document_versions_doc_number", DocumentVersion.document_id, DocumentVersion.version_number.desc())
Index("ix_pending_actions_expires_at", PendingAction.expires_at)
Index("ix_job_records_status_completed_at", JobRecord.status, JobRecord.completed_at)
Index("ix_audit_events_tenant_occurred_at", AuditEvent.tenant_id, AuditEvent.occurred_at.desc())
Index("ix_metrics_events_tenant_type", MetricsEvent.tenant_id, MetricsEvent.event_type)
Index("ix_legal_documents_tenant_created_at", LegalDocument.tenant_id, LegalDocument.created_at.desc())
