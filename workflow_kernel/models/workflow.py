"""
Module: workflow_kernel.models.workflow
Responsibility: ORM persistence for workflow definitions, form definitions,
    form submissions and workflow transition history.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Workflow definitions are keyed by ``code`` (unique); the authored
      definition is stored as its JSON wire document plus checksum.
    - Form definitions are keyed by ``form_code`` (unique) and embed the
      reduced WorkflowConfig as JSON.
    - Submissions carry ``version``; every state or data write is a
      compare-and-swap on (id, version) that increments it.
    - Transition records are append-only history.  ``sequence`` is the
      submission version produced by the transition, unique per submission.

Failure modes:
    - IntegrityError on duplicate workflow code or form code.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from workflow_kernel.db.base import Base, TrackedBase, UUIDString


class WorkflowDefinitionModel(TrackedBase):
    """Persistent authored workflow definition."""

    __tablename__ = "workflow_definitions"

    code: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    version: Mapped[str] = mapped_column(String(50), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    document: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    checksum: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<WorkflowDefinitionModel {self.code} v{self.version}>"


class FormDefinitionModel(TrackedBase):
    """Persistent form definition with its embedded workflow config."""

    __tablename__ = "form_definitions"

    form_code: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    document: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    def __repr__(self) -> str:
        return f"<FormDefinitionModel {self.form_code}>"


class FormSubmissionModel(TrackedBase):
    """Persistent form submission; ``current_state`` is workflow-governed."""

    __tablename__ = "form_submissions"

    __table_args__ = (
        Index("ix_form_submissions_form_state", "form_code", "current_state"),
    )

    form_code: Mapped[str] = mapped_column(String(100), nullable=False)
    form_title: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    current_state: Mapped[str] = mapped_column(String(100), nullable=False)
    submitter_id: Mapped[str] = mapped_column(String(100), nullable=False)
    approver_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    form_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    version: Mapped[int] = mapped_column(nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<FormSubmissionModel {self.id} {self.current_state} v{self.version}>"


class TransitionRecordModel(Base):
    """Append-only workflow history entry."""

    __tablename__ = "workflow_transition_records"

    __table_args__ = (
        Index("ix_transition_records_submission", "submission_id", "sequence", unique=True),
    )

    submission_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("form_submissions.id"), nullable=False,
    )
    sequence: Mapped[int] = mapped_column(nullable=False)
    workflow_code: Mapped[str] = mapped_column(String(100), nullable=False)
    from_state: Mapped[str] = mapped_column(String(100), nullable=False)
    to_state: Mapped[str] = mapped_column(String(100), nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(100), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<TransitionRecordModel {self.submission_id} "
            f"{self.from_state}->{self.to_state} via {self.action}>"
        )
