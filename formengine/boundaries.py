"""Contracts for the collaborators the engine depends on.

Storage of templates and submissions, blob storage for uploaded files and the
identity of the current user all live outside the engine. Implementations
are expected to raise (PersistenceError / UploadError or any exception,
which the engine wraps) rather than fail silently.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, List, Optional, TypeVar

from typing_extensions import Protocol

from formengine.errors import FormEngineError, PersistenceError
from formengine.types import Submitter

if TYPE_CHECKING:
    from formengine.models import FormSubmission, FormTemplate

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class FileUpload:
    """A local file picked by the user and not yet uploaded.

    Attributes:
        file_name: Original file name
        content: File bytes
        content_type: Optional MIME type
    """
    file_name: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class ResolvedUpload:
    """A pending upload after resolution to a stable reference."""
    scope_key: str
    reference: str


def upload_scope_key(prefix: str, template_id: Optional[str], field_id: str, file_name: str) -> str:
    """Deterministic storage key for an uploaded file.

    The same template, field and file name always yield the same key, so
    repeated attempts overwrite rather than duplicate.

    Examples:
        >>> upload_scope_key("form_uploads", "tpl_1", "fld_cv", "cv.pdf")
        'form_uploads/tpl_1/fld_cv/cv.pdf'
    """
    parts = [prefix.strip("/"), template_id or "unsaved", field_id, file_name]
    return "/".join(p for p in parts if p)


def call_store(operation: Callable[..., T], *args: Any) -> T:
    """Call a store operation, wrapping foreign exceptions in PersistenceError."""
    try:
        return operation(*args)
    except FormEngineError:
        raise
    except Exception as exc:
        name = getattr(operation, "__name__", repr(operation))
        logger.exception("Store call %s failed", name)
        raise PersistenceError(f"Store call {name} failed: {exc}") from exc


class TemplateRepository(Protocol):
    """Persistence for form templates."""

    def create_template(self, template: "FormTemplate") -> str:
        """Store a new template and return its assigned id."""
        ...

    def update_template(self, template_id: str, template: "FormTemplate") -> None:
        """Replace the stored template with the given id."""
        ...

    def get_template(self, template_id: str) -> Optional["FormTemplate"]:
        """Return the stored template, or None when absent."""
        ...

    def list_templates(self) -> List["FormTemplate"]:
        """Return every stored template."""
        ...


class SubmissionRepository(Protocol):
    """Persistence for form submissions."""

    def create_submission(self, submission: "FormSubmission") -> str:
        """Store a new submission and return its assigned id."""
        ...


class UploadService(Protocol):
    """Blob storage for files attached to file fields."""

    async def upload_file(self, scope_key: str, upload: FileUpload) -> str:
        """Store the file under ``scope_key`` and return a stable reference."""
        ...


class IdentityProvider(Protocol):
    """Read-only access to the current user."""

    def get_identity(self) -> Submitter:
        ...


__all__ = [
    "FileUpload",
    "ResolvedUpload",
    "upload_scope_key",
    "call_store",
    "TemplateRepository",
    "SubmissionRepository",
    "UploadService",
    "IdentityProvider",
]
