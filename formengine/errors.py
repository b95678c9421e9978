"""Structured error types for the form engine.

Every failure raised by the engine derives from FormEngineError. Errors carry
structured attributes (offending field ids, field-level details) alongside a
human-readable message so that callers can present them or retry the
triggering operation. Nothing raised here is fatal: each failure is recovered
by fixing the input and repeating the operation.

Taxonomy:
- StructuralError: schema authoring problems (missing title, no fields)
- ValidationError: captured values fail the rules of the current step
- UploadError: a file could not be resolved to a stable reference
- PersistenceError: an external store rejected a create or update
- TemplateNotFoundError / TemplateNotSubmittableError: loading failures
- NavigationError: a wizard move that the step layout does not allow
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from formengine.types import FieldErrorCode


@dataclass(frozen=True)
class FieldError:
    """Per-field validation error details.

    Attributes:
        field_id: Id of the form field that failed
        code: Specific validation error code
        message: Human-readable error description
        expected: Optional - what was expected (type, format, options, etc.)
        received: Optional - what was actually received

    Examples:
        >>> err = FieldError(
        ...     field_id="fld_email",
        ...     code=FieldErrorCode.INVALID_FORMAT,
        ...     message="Please enter a valid email address",
        ...     expected="email",
        ...     received="not-an-email"
        ... )
        >>> err.field_id
        'fld_email'
    """
    field_id: str
    code: FieldErrorCode
    message: str
    expected: Optional[Any] = None
    received: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "fieldId": self.field_id,
            "code": self.code.value if isinstance(self.code, FieldErrorCode) else self.code,
            "message": self.message,
        }
        if self.expected is not None:
            result["expected"] = self.expected
        if self.received is not None:
            result["received"] = self.received
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldError":
        """Create FieldError from dict."""
        code = data["code"]
        if isinstance(code, str):
            code = FieldErrorCode(code)
        return cls(
            field_id=data["fieldId"],
            code=code,
            message=data["message"],
            expected=data.get("expected"),
            received=data.get("received"),
        )


class FormEngineError(Exception):
    """Base class for all form engine errors."""

    kind = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {"type": self.kind, "message": self.message}


class StructuralError(FormEngineError):
    """Raised when a template is structurally unfit for the requested operation.

    Examples: publishing without a title, saving with no fields, or trying to
    change a field's id.
    """

    kind = "structural"


class ValidationError(FormEngineError):
    """Raised when captured values fail the rules of a wizard step.

    Attributes:
        errors: Field-level failures in the order they were detected
        field_ids: Ids of the failing fields, without duplicates
    """

    kind = "validation"

    def __init__(self, errors: Sequence[FieldError], message: Optional[str] = None):
        self.errors: List[FieldError] = list(errors)
        self.field_ids: List[str] = list(dict.fromkeys(e.field_id for e in self.errors))
        super().__init__(
            message
            or f"{len(self.field_ids)} field(s) failed validation: {', '.join(self.field_ids)}"
        )

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["fieldIds"] = self.field_ids
        result["fields"] = [e.to_dict() for e in self.errors]
        return result


class UploadError(FormEngineError):
    """Raised when one or more file uploads could not be resolved.

    Attributes:
        field_ids: Ids of the file fields whose upload failed
    """

    kind = "upload"

    def __init__(self, message: str, field_ids: Optional[Sequence[str]] = None):
        self.field_ids: List[str] = list(field_ids or [])
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["fieldIds"] = self.field_ids
        return result


class PersistenceError(FormEngineError):
    """Raised when an external store rejects a create or update."""

    kind = "persistence"


class TemplateNotFoundError(FormEngineError):
    """Raised when a template id does not resolve to a stored template."""

    kind = "not_found"

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Form template '{template_id}' not found")


class TemplateNotSubmittableError(FormEngineError):
    """Raised when a template that is not published is opened for filling."""

    kind = "not_submittable"

    def __init__(self, template_id: Optional[str], status: str):
        self.template_id = template_id
        self.status = status
        super().__init__(
            f"Form template '{template_id}' is not available for submission (status: {status})"
        )


class NavigationError(FormEngineError):
    """Raised when a wizard move is not allowed from the current step."""

    kind = "navigation"


__all__ = [
    "FieldError",
    "FormEngineError",
    "StructuralError",
    "ValidationError",
    "UploadError",
    "PersistenceError",
    "TemplateNotFoundError",
    "TemplateNotSubmittableError",
    "NavigationError",
]
