"""Wizard controller: filling out and submitting a published form.

The controller loads a published template, opens a FormFillingSession over
it, records the user's answers and attached files, and delegates navigation
and submission to the SubmissionAssembler.
"""

import logging
from typing import Any, List, Optional

from formengine.assembler import FormFillingSession, SubmissionAssembler
from formengine.boundaries import (
    FileUpload,
    IdentityProvider,
    SubmissionRepository,
    TemplateRepository,
    UploadService,
    call_store,
)
from formengine.config import SETTINGS, Settings
from formengine.errors import (
    NavigationError,
    StructuralError,
    TemplateNotFoundError,
    TemplateNotSubmittableError,
)
from formengine.events import EventEmitter
from formengine.fields import FormField
from formengine.models import FormSubmission, FormTemplate
from formengine.renderer import FieldRendering, render_field
from formengine.state_machine import InvalidStateTransitionError
from formengine.steps import Step
from formengine.types import EventType, ValueShape, WizardState
from formengine.validation import ValidationResult

logger = logging.getLogger(__name__)


class WizardController:
    """Fill out a published form step by step and submit it.

    Args:
        templates: Template store used to load the form
        submissions: Submission store that receives the result
        uploads: Blob storage for file fields
        identity: Source of the current submitter
        settings: Engine settings
        emitter: Optional emitter for wizard events
    """

    def __init__(
        self,
        templates: TemplateRepository,
        submissions: SubmissionRepository,
        uploads: UploadService,
        identity: IdentityProvider,
        settings: Settings = SETTINGS,
        emitter: Optional[EventEmitter] = None,
    ) -> None:
        self.templates = templates
        self.identity = identity
        self.emitter = emitter
        self.assembler = SubmissionAssembler(submissions, uploads, settings=settings)
        self._session: Optional[FormFillingSession] = None

    @property
    def session(self) -> FormFillingSession:
        if self._session is None:
            raise NavigationError("No form is open")
        return self._session

    @property
    def template(self) -> FormTemplate:
        return self.session.template

    @property
    def steps(self) -> List[Step]:
        return self.session.steps

    @property
    def current(self) -> int:
        return self.session.current

    @property
    def is_submitted(self) -> bool:
        return self._session is not None and self._session.is_submitted

    @property
    def submission_id(self) -> Optional[str]:
        return self._session.submission_id if self._session is not None else None

    def open(self, template_id: str) -> FormFillingSession:
        """Load a published template and start a fresh session on step 0.

        Raises:
            TemplateNotFoundError: If no template has this id
            TemplateNotSubmittableError: If the template is not published
        """
        template = call_store(self.templates.get_template, template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        if template.id is None:
            template.id = template_id
        if not template.is_submittable:
            logger.info("Refusing to open form %s with status %s", template_id, template.status.value)
            raise TemplateNotSubmittableError(template_id, template.status.value)

        self._session = FormFillingSession.start(template, emitter=self.emitter)
        logger.debug("Opened form %s with %d step(s)", template_id, len(self._session.steps))
        return self._session

    def reset(self) -> FormFillingSession:
        """Start over on the same template with cleared answers."""
        template = self.session.template
        self._session = FormFillingSession.start(template, emitter=self.emitter)
        self._session.machine.record(EventType.SESSION_RESET)
        return self._session

    def current_step(self) -> Optional[Step]:
        return self.session.current_step

    def render_current_step(self) -> List[FieldRendering]:
        """Renderings of the fields on the current step, in order."""
        step = self.session.current_step
        return [render_field(f) for f in step.fields] if step is not None else []

    def value_of(self, field_id: str) -> Any:
        return self.session.captured_values().get(field_id)

    def set_value(self, field_id: str, value: Any) -> None:
        """Capture the answer for a non-file field.

        Raises:
            StructuralError: For unknown fields, headings, and file fields
            InvalidStateTransitionError: Once the form has been submitted
        """
        form_field = self._capturable_field(field_id)
        if form_field.spec.value_shape is ValueShape.UPLOAD_REFERENCE:
            raise StructuralError(f"Field '{field_id}' takes a file; use attach_file")
        self.session.values[field_id] = value

    def attach_file(self, field_id: str, upload: FileUpload) -> None:
        """Pick a local file for a file field; it is uploaded on submit."""
        form_field = self._capturable_field(field_id)
        if form_field.spec.value_shape is not ValueShape.UPLOAD_REFERENCE:
            raise StructuralError(f"Field '{field_id}' does not accept files")
        self.session.pending_uploads[field_id] = upload

    def clear_file(self, field_id: str) -> None:
        """Drop the file picked for a field, along with any earlier upload of it."""
        self._capturable_field(field_id)
        self.session.pending_uploads.pop(field_id, None)
        self.session.resolved_uploads.pop(field_id, None)
        self.session.values.pop(field_id, None)

    def validate_current_step(self) -> ValidationResult:
        return self.assembler.validate_step(self.session)

    def advance(self) -> int:
        """Validate the current step and move forward (see SubmissionAssembler.advance)."""
        return self.assembler.advance(self.session, self.identity.get_identity())

    def retreat(self) -> int:
        """Move back one step without validation."""
        return self.assembler.retreat(self.session, self.identity.get_identity())

    async def submit(self) -> FormSubmission:
        """Submit the form from its last step (see SubmissionAssembler.submit)."""
        return await self.assembler.submit(self.session, self.identity.get_identity())

    def _capturable_field(self, field_id: str) -> FormField:
        session = self.session
        if session.machine.state is not WizardState.EDITING:
            raise InvalidStateTransitionError(
                current_state=session.machine.state,
                target_state=WizardState.EDITING,
                message=f"Answers cannot be changed while the form is '{session.machine.state.value}'",
            )
        form_field = session.template.get_field(field_id)
        if form_field is None:
            raise StructuralError(f"Form has no field '{field_id}'")
        if not form_field.capturable:
            raise StructuralError(f"Field '{field_id}' does not take a value")
        return form_field


__all__ = [
    "WizardController",
]
