"""Template and submission records.

FormTemplate is the mutable schema edited by the builder; FormSubmission is
the immutable record assembled when a filled-out template is submitted. Both
serialize to the camelCase persisted shape used by the external stores, with
timestamps as ISO 8601 strings.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from dateutil.parser import isoparse
from typing_extensions import NotRequired, TypedDict

from formengine.fields import FieldRecord, FormField
from formengine.types import SubmissionStatus, Submitter, TemplateStatus


FORM_CATEGORIES: List[str] = [
    "Application Form",
    "Compliance Checklist",
    "Progress Report",
    "Feedback Form",
    "Evaluation Form",
    "Due Diligence",
    "Mentorship Request",
    "Resource Request",
    "Other",
]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Union[str, datetime, None]) -> datetime:
    """Parse a persisted timestamp into an aware UTC datetime.

    Missing values fall back to the current time; naive values are assumed
    to be UTC.
    """
    if value is None:
        return utc_now()
    parsed = value if isinstance(value, datetime) else isoparse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class TemplateRecord(TypedDict):
    """Persisted shape of a form template."""
    id: NotRequired[str]
    title: str
    description: str
    fields: List[FieldRecord]
    status: str
    category: str
    createdAt: str
    updatedAt: str
    createdBy: NotRequired[str]


class SubmissionRecord(TypedDict):
    """Persisted shape of a form submission."""
    id: NotRequired[str]
    formId: Optional[str]
    formTitle: str
    submittedBy: Dict[str, Any]
    submittedAt: str
    responses: Dict[str, Any]
    status: str
    notes: NotRequired[str]


@dataclass
class FormTemplate:
    """One form definition: metadata plus an ordered list of fields.

    The order of ``fields`` is the display order and the wizard step order;
    there is no separate order index.

    Attributes:
        id: Store-assigned id, None until first persisted
        title: Form title
        description: Form description shown above the wizard
        category: Free-form classification tag
        fields: Ordered fields
        status: Draft or published
        created_at: Creation timestamp (UTC)
        updated_at: Refreshed on every mutation
        created_by: Optional id of the author

    Examples:
        >>> t = FormTemplate(title="Intake")
        >>> t.status
        <TemplateStatus.DRAFT: 'draft'>
        >>> t.is_submittable
        False
    """
    title: str = ""
    description: str = ""
    category: str = FORM_CATEGORIES[0]
    fields: List[FormField] = field(default_factory=list)
    status: TemplateStatus = TemplateStatus.DRAFT
    id: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    created_by: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.status, TemplateStatus):
            self.status = TemplateStatus(self.status)

    @property
    def is_submittable(self) -> bool:
        return self.status is TemplateStatus.PUBLISHED

    def touch(self) -> None:
        """Refresh ``updated_at`` after a mutation."""
        self.updated_at = utc_now()

    def field_ids(self) -> List[str]:
        return [f.id for f in self.fields]

    def index_of(self, field_id: str) -> int:
        """Position of a field, or -1 when absent."""
        for index, form_field in enumerate(self.fields):
            if form_field.id == field_id:
                return index
        return -1

    def get_field(self, field_id: str) -> Optional[FormField]:
        index = self.index_of(field_id)
        return self.fields[index] if index >= 0 else None

    def to_dict(self) -> TemplateRecord:
        """Convert to dict for serialization."""
        result: TemplateRecord = {
            "title": self.title,
            "description": self.description,
            "fields": [f.to_dict() for f in self.fields],
            "status": self.status.value,
            "category": self.category,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
        if self.id is not None:
            result["id"] = self.id
        if self.created_by is not None:
            result["createdBy"] = self.created_by
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormTemplate":
        """Create FormTemplate from dict."""
        return cls(
            id=data.get("id"),
            title=data.get("title", ""),
            description=data.get("description", ""),
            category=data.get("category") or FORM_CATEGORIES[0],
            fields=[FormField.from_dict(f) for f in data.get("fields", [])],
            status=TemplateStatus(data.get("status", TemplateStatus.DRAFT.value)),
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
            created_by=data.get("createdBy"),
        )


@dataclass(frozen=True)
class FormSubmission:
    """One completed response to a published form template.

    Attributes:
        form_id: Id of the template that was filled out
        form_title: Template title at submission time
        submitted_by: Identity of the submitter
        submitted_at: Submission timestamp (UTC)
        responses: Field id to captured value; file fields hold upload references
        status: Review status, always pending on creation
        id: Store-assigned id
        notes: Optional reviewer notes added by the review workflow
    """
    form_id: Optional[str]
    form_title: str
    submitted_by: Submitter
    submitted_at: datetime
    responses: Dict[str, Any]
    status: SubmissionStatus = SubmissionStatus.PENDING
    id: Optional[str] = None
    notes: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.status, SubmissionStatus):
            object.__setattr__(self, "status", SubmissionStatus(self.status))
        if isinstance(self.submitted_by, dict):
            object.__setattr__(self, "submitted_by", Submitter.from_dict(self.submitted_by))

    def to_dict(self) -> SubmissionRecord:
        """Convert to dict for serialization."""
        result: SubmissionRecord = {
            "formId": self.form_id,
            "formTitle": self.form_title,
            "submittedBy": self.submitted_by.to_dict(),
            "submittedAt": self.submitted_at.isoformat(),
            "responses": dict(self.responses),
            "status": self.status.value,
        }
        if self.id is not None:
            result["id"] = self.id
        if self.notes is not None:
            result["notes"] = self.notes
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormSubmission":
        """Create FormSubmission from dict."""
        return cls(
            id=data.get("id"),
            form_id=data.get("formId"),
            form_title=data.get("formTitle", ""),
            submitted_by=Submitter.from_dict(data.get("submittedBy") or {}),
            submitted_at=parse_timestamp(data.get("submittedAt")),
            responses=dict(data.get("responses") or {}),
            status=SubmissionStatus(data.get("status", SubmissionStatus.PENDING.value)),
            notes=data.get("notes"),
        )


__all__ = [
    "FORM_CATEGORIES",
    "utc_now",
    "parse_timestamp",
    "TemplateRecord",
    "SubmissionRecord",
    "FormTemplate",
    "FormSubmission",
]
