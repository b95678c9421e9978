"""Core type definitions for the form engine.

This module defines the fundamental types shared by the authoring and
filling sides of the engine:
- FieldKind: The closed vocabulary of form field kinds
- ValueShape: Serialized shape of a captured field value
- TemplateStatus: Publication state of a form template
- SubmissionStatus: Review state of a submitted response
- WizardState: Lifecycle states of a form-filling session
- MoveDirection: Direction for single-step field moves
- EventType: Audit event types for the event stream
- FieldErrorCode: Validation error codes for individual fields
- Submitter: Identity of the person submitting a form
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class FieldKind(str, Enum):
    """Kinds of form fields an operator can place on a template.

    The string values are the persisted wire values.
    """
    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    EMAIL = "email"
    SELECT = "select"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    DATE = "date"
    FILE = "file"
    HEADING = "heading"


class ValueShape(str, Enum):
    """Shape of a captured value once serialized into a submission."""
    STRING = "string"
    NUMBER = "number"
    STRING_LIST = "string_list"
    ISO_DATE = "iso_date"
    UPLOAD_REFERENCE = "upload_reference"
    NONE = "none"


class TemplateStatus(str, Enum):
    """Publication state of a form template.

    Only published templates accept submissions.
    """
    DRAFT = "draft"
    PUBLISHED = "published"


class SubmissionStatus(str, Enum):
    """Review state of a submission.

    Submissions are always created pending; approval and rejection happen
    in an external review workflow.
    """
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class WizardState(str, Enum):
    """Lifecycle states of a form-filling session.

    Terminal state: submitted.
    """
    EDITING = "editing"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"


class MoveDirection(str, Enum):
    """Direction for moving a field one position."""
    UP = "up"
    DOWN = "down"


class EventType(str, Enum):
    """Audit event types for the event stream."""
    TEMPLATE_CREATED = "template.created"
    TEMPLATE_SAVED = "template.saved"
    TEMPLATE_PUBLISHED = "template.published"
    FIELD_ADDED = "field.added"
    FIELD_UPDATED = "field.updated"
    FIELD_REMOVED = "field.removed"
    FIELD_MOVED = "field.moved"
    STEP_ADVANCED = "step.advanced"
    STEP_RETREATED = "step.retreated"
    VALIDATION_FAILED = "validation.failed"
    UPLOAD_COMPLETED = "upload.completed"
    UPLOAD_FAILED = "upload.failed"
    SUBMISSION_STARTED = "submission.started"
    SUBMISSION_SUBMITTED = "submission.submitted"
    SUBMISSION_FAILED = "submission.failed"
    SESSION_RESET = "session.reset"


class FieldErrorCode(str, Enum):
    """Validation error codes for individual field failures."""
    REQUIRED = "required"
    INVALID_TYPE = "invalid_type"
    INVALID_FORMAT = "invalid_format"
    INVALID_VALUE = "invalid_value"
    TOO_SHORT = "too_short"
    DUPLICATE_VALUE = "duplicate_value"
    NO_OPTIONS = "no_options"
    CUSTOM = "custom"


@dataclass(frozen=True)
class Submitter:
    """Identity of the person filling out a form.

    Provided by the identity boundary and embedded verbatim into
    ``FormSubmission.submitted_by``.

    Attributes:
        id: Identifier of the user in the identity system
        name: Display name
        email: Contact address

    Examples:
        >>> Submitter(id="user_123", name="Jane Doe", email="jane@example.com").to_dict()
        {'id': 'user_123', 'name': 'Jane Doe', 'email': 'jane@example.com'}
    """
    id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {"id": self.id, "name": self.name, "email": self.email}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Submitter":
        """Create Submitter from dict."""
        return cls(
            id=data.get("id"),
            name=data.get("name"),
            email=data.get("email"),
        )


__all__ = [
    "FieldKind",
    "ValueShape",
    "TemplateStatus",
    "SubmissionStatus",
    "WizardState",
    "MoveDirection",
    "EventType",
    "FieldErrorCode",
    "Submitter",
]
