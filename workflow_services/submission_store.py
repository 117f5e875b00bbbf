"""
workflow_services.submission_store -- Versioned submission persistence.

Responsibility:
    Store form submissions and their transition history, and perform the
    single state write of a transition as a compare-and-swap on the
    submission's ``version``.

Architecture position:
    Services layer.  ``SqlSubmissionStore`` is the only code that touches
    the submission ORM models; the executor talks to the protocol.

Invariants enforced:
    - ``compare_and_set`` succeeds only when the stored version equals the
      expected version, and increments the version by exactly one.
    - A lost race returns ``None``; the stored submission is untouched.
    - A history record is written in the same critical section as the
      state change it describes, numbered by the version it produced.
      History order is therefore the order of the state chain.

Failure modes:
    - SubmissionNotFoundError: unknown submission id.
"""

from __future__ import annotations

import threading
from collections import Counter
from collections.abc import Mapping
from dataclasses import replace
from datetime import UTC
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import func, select, update

from workflow_kernel.db.engine import session_scope
from workflow_kernel.domain.execution import FormSubmission, TransitionRecord
from workflow_kernel.exceptions import SubmissionNotFoundError
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.workflow import FormSubmissionModel, TransitionRecordModel

logger = get_logger("services.submission_store")


class SubmissionStore(Protocol):
    """Persistence contract used by the executor and submission service."""

    def add(self, submission: FormSubmission) -> FormSubmission:
        ...

    def get(self, submission_id: UUID) -> FormSubmission:
        ...

    def compare_and_set(
        self,
        submission_id: UUID,
        expected_version: int,
        new_state: str,
        approver_id: str | None = None,
        record: TransitionRecord | None = None,
    ) -> FormSubmission | None:
        """Write ``new_state`` iff the stored version is ``expected_version``.

        Returns the updated submission, or None if the version moved.
        ``approver_id`` is recorded only when the submission has none yet.
        ``record`` is appended to the history atomically with the write.
        """
        ...

    def replace_form_data(
        self,
        submission_id: UUID,
        expected_version: int,
        form_data: Mapping[str, Any],
    ) -> FormSubmission | None:
        """Replace the form data iff the stored version is ``expected_version``."""
        ...

    def history(self, submission_id: UUID) -> tuple[TransitionRecord, ...]:
        ...

    def list_for_form(
        self,
        form_code: str,
        state: str | None = None,
        submitter_id: str | None = None,
    ) -> tuple[FormSubmission, ...]:
        ...

    def count_by_state(self, form_code: str) -> dict[str, int]:
        ...


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


class InMemorySubmissionStore:
    """Thread-safe dictionary store.  One lock guards every read-modify-write."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._submissions: dict[UUID, FormSubmission] = {}
        self._history: dict[UUID, list[TransitionRecord]] = {}

    def add(self, submission: FormSubmission) -> FormSubmission:
        with self._lock:
            self._submissions[submission.submission_id] = submission
            self._history.setdefault(submission.submission_id, [])
        return submission

    def get(self, submission_id: UUID) -> FormSubmission:
        with self._lock:
            submission = self._submissions.get(submission_id)
        if submission is None:
            raise SubmissionNotFoundError(str(submission_id))
        return submission

    def compare_and_set(
        self,
        submission_id: UUID,
        expected_version: int,
        new_state: str,
        approver_id: str | None = None,
        record: TransitionRecord | None = None,
    ) -> FormSubmission | None:
        with self._lock:
            current = self._submissions.get(submission_id)
            if current is None:
                raise SubmissionNotFoundError(str(submission_id))
            if current.version != expected_version:
                return None
            updated = replace(
                current,
                current_state=new_state,
                approver_id=current.approver_id or approver_id,
                version=current.version + 1,
            )
            self._submissions[submission_id] = updated
            if record is not None:
                self._history.setdefault(submission_id, []).append(record)
        return updated

    def replace_form_data(
        self,
        submission_id: UUID,
        expected_version: int,
        form_data: Mapping[str, Any],
    ) -> FormSubmission | None:
        with self._lock:
            current = self._submissions.get(submission_id)
            if current is None:
                raise SubmissionNotFoundError(str(submission_id))
            if current.version != expected_version:
                return None
            updated = replace(current, form_data=dict(form_data), version=current.version + 1)
            self._submissions[submission_id] = updated
        return updated

    def history(self, submission_id: UUID) -> tuple[TransitionRecord, ...]:
        with self._lock:
            if submission_id not in self._submissions:
                raise SubmissionNotFoundError(str(submission_id))
            return tuple(self._history.get(submission_id, ()))

    def list_for_form(
        self,
        form_code: str,
        state: str | None = None,
        submitter_id: str | None = None,
    ) -> tuple[FormSubmission, ...]:
        with self._lock:
            return tuple(
                s for s in self._submissions.values()
                if s.form_code == form_code
                and (state is None or s.current_state == state)
                and (submitter_id is None or s.submitter_id == submitter_id)
            )

    def count_by_state(self, form_code: str) -> dict[str, int]:
        return dict(Counter(s.current_state for s in self.list_for_form(form_code)))


# ---------------------------------------------------------------------------
# SQLAlchemy
# ---------------------------------------------------------------------------


def _to_submission(row: FormSubmissionModel) -> FormSubmission:
    return FormSubmission(
        submission_id=row.id,
        form_code=row.form_code,
        current_state=row.current_state,
        submitter_id=row.submitter_id,
        form_data=row.form_data or {},
        form_title=row.form_title,
        approver_id=row.approver_id,
        version=row.version,
    )


def _to_record(row: TransitionRecordModel) -> TransitionRecord:
    occurred_at = row.occurred_at
    # SQLite hands back naive datetimes.
    if occurred_at.tzinfo is None:
        occurred_at = occurred_at.replace(tzinfo=UTC)
    return TransitionRecord(
        record_id=row.id,
        submission_id=row.submission_id,
        workflow_code=row.workflow_code,
        from_state=row.from_state,
        to_state=row.to_state,
        action=row.action,
        actor_id=row.actor_id,
        comment=row.comment,
        occurred_at=occurred_at,
    )


class SqlSubmissionStore:
    """Submission store over the kernel's SQLAlchemy session scope.

    The compare-and-swap is a single ``UPDATE ... WHERE id = :id AND
    version = :expected``; zero affected rows means a concurrent writer won.
    """

    def add(self, submission: FormSubmission) -> FormSubmission:
        with session_scope() as session:
            session.add(
                FormSubmissionModel(
                    id=submission.submission_id,
                    form_code=submission.form_code,
                    form_title=submission.form_title,
                    current_state=submission.current_state,
                    submitter_id=submission.submitter_id,
                    approver_id=submission.approver_id,
                    form_data=dict(submission.form_data),
                    version=submission.version,
                )
            )
        logger.debug("submission_stored", extra={"submission_id": str(submission.submission_id)})
        return submission

    def get(self, submission_id: UUID) -> FormSubmission:
        with session_scope() as session:
            row = session.get(FormSubmissionModel, submission_id)
            if row is None:
                raise SubmissionNotFoundError(str(submission_id))
            return _to_submission(row)

    def compare_and_set(
        self,
        submission_id: UUID,
        expected_version: int,
        new_state: str,
        approver_id: str | None = None,
        record: TransitionRecord | None = None,
    ) -> FormSubmission | None:
        with session_scope() as session:
            values: dict[str, object] = {
                "current_state": new_state,
                "version": FormSubmissionModel.version + 1,
            }
            if approver_id is not None:
                values["approver_id"] = func.coalesce(FormSubmissionModel.approver_id, approver_id)
            result = session.execute(
                update(FormSubmissionModel)
                .where(
                    FormSubmissionModel.id == submission_id,
                    FormSubmissionModel.version == expected_version,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                if session.get(FormSubmissionModel, submission_id) is None:
                    raise SubmissionNotFoundError(str(submission_id))
                return None
            if record is not None:
                session.add(
                    TransitionRecordModel(
                        id=record.record_id,
                        submission_id=submission_id,
                        sequence=expected_version + 1,
                        workflow_code=record.workflow_code,
                        from_state=record.from_state,
                        to_state=record.to_state,
                        action=record.action,
                        actor_id=record.actor_id,
                        comment=record.comment,
                        occurred_at=record.occurred_at,
                    )
                )
            row = session.get(FormSubmissionModel, submission_id, populate_existing=True)
            return _to_submission(row)

    def replace_form_data(
        self,
        submission_id: UUID,
        expected_version: int,
        form_data: Mapping[str, Any],
    ) -> FormSubmission | None:
        with session_scope() as session:
            result = session.execute(
                update(FormSubmissionModel)
                .where(
                    FormSubmissionModel.id == submission_id,
                    FormSubmissionModel.version == expected_version,
                )
                .values(form_data=dict(form_data), version=FormSubmissionModel.version + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                if session.get(FormSubmissionModel, submission_id) is None:
                    raise SubmissionNotFoundError(str(submission_id))
                return None
            row = session.get(FormSubmissionModel, submission_id, populate_existing=True)
            return _to_submission(row)

    def history(self, submission_id: UUID) -> tuple[TransitionRecord, ...]:
        with session_scope() as session:
            if session.get(FormSubmissionModel, submission_id) is None:
                raise SubmissionNotFoundError(str(submission_id))
            rows = session.scalars(
                select(TransitionRecordModel)
                .where(TransitionRecordModel.submission_id == submission_id)
                .order_by(TransitionRecordModel.sequence)
            ).all()
            return tuple(_to_record(r) for r in rows)

    def list_for_form(
        self,
        form_code: str,
        state: str | None = None,
        submitter_id: str | None = None,
    ) -> tuple[FormSubmission, ...]:
        with session_scope() as session:
            stmt = select(FormSubmissionModel).where(FormSubmissionModel.form_code == form_code)
            if state is not None:
                stmt = stmt.where(FormSubmissionModel.current_state == state)
            if submitter_id is not None:
                stmt = stmt.where(FormSubmissionModel.submitter_id == submitter_id)
            return tuple(_to_submission(r) for r in session.scalars(stmt).all())

    def count_by_state(self, form_code: str) -> dict[str, int]:
        with session_scope() as session:
            rows = session.execute(
                select(FormSubmissionModel.current_state, func.count())
                .where(FormSubmissionModel.form_code == form_code)
                .group_by(FormSubmissionModel.current_state)
            ).all()
            return {state: count for state, count in rows}
