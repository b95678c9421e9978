"""Submission assembler for multi-step form filling.

A FormFillingSession carries everything one user has entered for one
published template: captured values, files picked but not yet uploaded,
uploads already resolved to stable references, and the wizard state machine.
SubmissionAssembler drives that session: it validates the current step before
advancing, steps back without validation, and on the last step resolves
pending uploads concurrently and assembles the FormSubmission that is handed
to the submission store.

Submitting is all-or-nothing. If any upload fails, or the store rejects the
record, nothing is persisted and the session returns to editing on the last
step. Uploads that did resolve are kept on the session and reused when the
submission is retried.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from formengine.boundaries import (
    FileUpload,
    ResolvedUpload,
    SubmissionRepository,
    UploadService,
    call_store,
    upload_scope_key,
)
from formengine.config import SETTINGS, Settings
from formengine.errors import (
    FormEngineError,
    NavigationError,
    UploadError,
    ValidationError,
)
from formengine.events import EventEmitter
from formengine.models import FormSubmission, FormTemplate, utc_now
from formengine.renderer import is_blank, serialize_value
from formengine.state_machine import InvalidStateTransitionError, WizardStateMachine
from formengine.steps import Step, build_steps
from formengine.types import EventType, SubmissionStatus, Submitter, ValueShape, WizardState
from formengine.validation import ValidationEngine, ValidationResult

logger = logging.getLogger(__name__)


@dataclass
class FormFillingSession:
    """State of one user filling out one published template.

    Attributes:
        template: The template being filled
        steps: Wizard steps derived from the template's fields
        machine: Wizard state machine (state and current step)
        values: Field id to raw captured value
        pending_uploads: File field id to the local file awaiting upload
        resolved_uploads: File field id to the stable reference of a finished upload
        submission: The stored submission once submitted
    """
    template: FormTemplate
    steps: List[Step]
    machine: WizardStateMachine
    values: Dict[str, Any] = field(default_factory=dict)
    pending_uploads: Dict[str, FileUpload] = field(default_factory=dict)
    resolved_uploads: Dict[str, ResolvedUpload] = field(default_factory=dict)
    submission: Optional[FormSubmission] = None

    @classmethod
    def start(cls, template: FormTemplate, emitter: Optional[EventEmitter] = None) -> "FormFillingSession":
        """Open a fresh session at step 0, seeded with the fields' default values."""
        steps = build_steps(template.fields)
        machine = WizardStateMachine(
            session_id=f"fill_{uuid.uuid4().hex[:16]}",
            step_count=len(steps),
            emitter=emitter,
        )
        values = {
            f.id: list(f.default_value) if isinstance(f.default_value, tuple) else f.default_value
            for f in template.fields
            if f.capturable and f.default_value is not None
        }
        return cls(template=template, steps=steps, machine=machine, values=values)

    @property
    def session_id(self) -> str:
        return self.machine.session_id

    @property
    def current(self) -> int:
        return self.machine.step

    @property
    def current_step(self) -> Optional[Step]:
        return self.steps[self.current] if self.steps else None

    @property
    def is_submitted(self) -> bool:
        return self.machine.state is WizardState.SUBMITTED

    @property
    def submission_id(self) -> Optional[str]:
        return self.submission.id if self.submission is not None else None

    def captured_values(self) -> Dict[str, Any]:
        """Captured values with pending uploads standing in for their file fields."""
        captured = dict(self.values)
        captured.update(self.pending_uploads)
        return captured


class SubmissionAssembler:
    """Validates, navigates and submits form-filling sessions.

    Args:
        submissions: Store that receives the finished submission
        uploads: Blob storage used to resolve pending uploads
        settings: Upload prefix and concurrency limit
    """

    def __init__(
        self,
        submissions: SubmissionRepository,
        uploads: UploadService,
        settings: Settings = SETTINGS,
    ) -> None:
        self.submissions = submissions
        self.uploads = uploads
        self.settings = settings

    def validate_step(self, session: FormFillingSession, index: Optional[int] = None) -> ValidationResult:
        """Validate the captured values of one step (the current one by default)."""
        step = session.steps[session.current if index is None else index]
        return ValidationEngine(step.fields).validate(session.captured_values())

    def advance(self, session: FormFillingSession, actor: Optional[Submitter] = None) -> int:
        """Validate the current step and move to the next one.

        Returns:
            The new step index

        Raises:
            ValidationError: If the current step has failing fields; the
                session stays on the current step
            NavigationError: If there is no next step
        """
        self._require_editing(session)
        if not session.steps:
            raise NavigationError("This form has no fields")
        if session.machine.is_last_step:
            raise NavigationError("Already on the last step; submit the form instead")

        self._check_step(session, actor)
        session.machine.move_to_step(session.current + 1, actor)
        return session.current

    def retreat(self, session: FormFillingSession, actor: Optional[Submitter] = None) -> int:
        """Move to the previous step without validation; no-op on the first step."""
        self._require_editing(session)
        if session.current > 0:
            session.machine.move_to_step(session.current - 1, actor)
        return session.current

    async def submit(self, session: FormFillingSession, submitter: Submitter) -> FormSubmission:
        """Validate the last step, resolve uploads, and store the submission.

        Returns:
            The stored submission, with its assigned id

        Raises:
            NavigationError: If the session is not on the last step
            ValidationError: If the last step has failing fields
            UploadError: If any pending upload failed; nothing is stored
            PersistenceError: If the submission store rejected the record
        """
        self._require_editing(session)
        if not session.steps:
            raise NavigationError("This form has no fields")
        if not session.machine.is_last_step:
            raise NavigationError(
                f"Submit is only available on the last step (on step {session.current + 1} "
                f"of {len(session.steps)})"
            )

        self._check_step(session, submitter)
        session.machine.transition_to(WizardState.SUBMITTING, submitter)
        try:
            references = await self.resolve_uploads(session, submitter)
            submission = self.assemble(session, submitter, references)
            submission_id = call_store(self.submissions.create_submission, submission)
        except BaseException as exc:
            # Any failure, cancellation included, hands the session back for a retry.
            error = exc.kind if isinstance(exc, FormEngineError) else type(exc).__name__
            session.machine.transition_to(WizardState.EDITING, submitter, {"error": error})
            raise

        submission = replace(submission, id=submission_id)
        session.submission = submission
        session.machine.transition_to(WizardState.SUBMITTED, submitter, {"submissionId": submission_id})
        logger.info(
            "Form %s submitted as %s by %s",
            session.template.id,
            submission_id,
            submitter.email or submitter.id,
        )
        return submission

    async def resolve_uploads(
        self,
        session: FormFillingSession,
        actor: Optional[Submitter] = None,
    ) -> Dict[str, str]:
        """Resolve every pending upload to a stable reference.

        Uploads run concurrently, bounded by ``max_concurrent_uploads``, and
        all of them are awaited before returning. Uploads resolved on an
        earlier attempt for the same scope key are reused.

        Returns:
            File field id to stable reference

        Raises:
            UploadError: Naming every field whose upload failed
        """
        references: Dict[str, str] = {}
        jobs: List[Tuple[str, str, FileUpload]] = []
        for form_field in session.template.fields:
            if form_field.spec.value_shape is not ValueShape.UPLOAD_REFERENCE:
                continue
            upload = session.pending_uploads.get(form_field.id)
            if upload is None:
                continue
            scope_key = upload_scope_key(
                self.settings.upload_prefix,
                session.template.id,
                form_field.id,
                upload.file_name,
            )
            resolved = session.resolved_uploads.get(form_field.id)
            if resolved is not None and resolved.scope_key == scope_key:
                references[form_field.id] = resolved.reference
                continue
            jobs.append((form_field.id, scope_key, upload))

        semaphore = asyncio.Semaphore(self.settings.max_concurrent_uploads)

        async def upload_one(scope_key: str, upload: FileUpload) -> str:
            async with semaphore:
                return await self.uploads.upload_file(scope_key, upload)

        outcomes = await asyncio.gather(
            *(upload_one(scope_key, upload) for _, scope_key, upload in jobs),
            return_exceptions=True,
        )

        failed: List[str] = []
        for (field_id, scope_key, upload), outcome in zip(jobs, outcomes):
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome
            if isinstance(outcome, Exception) or not isinstance(outcome, str) or not outcome:
                failed.append(field_id)
                logger.error(
                    "Upload of '%s' for field %s failed",
                    upload.file_name,
                    field_id,
                    exc_info=outcome if isinstance(outcome, Exception) else None,
                )
                session.machine.record(
                    EventType.UPLOAD_FAILED,
                    actor,
                    {"fieldId": field_id, "scopeKey": scope_key, "error": str(outcome)},
                )
                continue
            session.resolved_uploads[field_id] = ResolvedUpload(scope_key=scope_key, reference=outcome)
            references[field_id] = outcome
            session.machine.record(
                EventType.UPLOAD_COMPLETED,
                actor,
                {"fieldId": field_id, "scopeKey": scope_key},
            )

        if failed:
            raise UploadError(f"Failed to upload file(s) for field(s): {', '.join(failed)}", field_ids=failed)
        return references

    def assemble(
        self,
        session: FormFillingSession,
        submitter: Submitter,
        references: Dict[str, str],
    ) -> FormSubmission:
        """Build the pending submission record from the session's values."""
        captured = session.captured_values()
        responses: Dict[str, Any] = {}
        for form_field in session.template.fields:
            if not form_field.capturable:
                continue
            if form_field.id in references:
                responses[form_field.id] = references[form_field.id]
                continue
            raw = captured.get(form_field.id)
            if is_blank(raw):
                continue
            responses[form_field.id] = serialize_value(form_field, raw)

        return FormSubmission(
            form_id=session.template.id,
            form_title=session.template.title,
            submitted_by=submitter,
            submitted_at=utc_now(),
            responses=responses,
            status=SubmissionStatus.PENDING,
        )

    def _check_step(self, session: FormFillingSession, actor: Optional[Submitter]) -> None:
        result = self.validate_step(session)
        if result.is_valid:
            return
        session.machine.record(
            EventType.VALIDATION_FAILED,
            actor,
            {"step": session.current, "fieldIds": result.field_ids},
        )
        raise ValidationError(result.errors)

    @staticmethod
    def _require_editing(session: FormFillingSession) -> None:
        if session.machine.state is not WizardState.EDITING:
            raise InvalidStateTransitionError(
                current_state=session.machine.state,
                target_state=WizardState.EDITING,
                message=f"Form session is '{session.machine.state.value}' and can no longer be edited",
            )


__all__ = [
    "FormFillingSession",
    "SubmissionAssembler",
]
