"""In-memory implementations of the external boundaries.

Stores keep serialized snapshots, so later edits to an in-memory template do
not leak into what was saved.
"""

import logging
import uuid
from typing import Dict, List, Optional

from formengine.boundaries import FileUpload
from formengine.errors import PersistenceError, UploadError
from formengine.models import FormSubmission, FormTemplate, SubmissionRecord, TemplateRecord
from formengine.types import Submitter

logger = logging.getLogger(__name__)


class InMemoryTemplateRepository:
    def __init__(self) -> None:
        self._records: Dict[str, TemplateRecord] = {}

    def create_template(self, template: FormTemplate) -> str:
        template_id = f"tpl_{uuid.uuid4().hex[:16]}"
        record = template.to_dict()
        record["id"] = template_id
        self._records[template_id] = record
        return template_id

    def update_template(self, template_id: str, template: FormTemplate) -> None:
        if template_id not in self._records:
            raise PersistenceError(f"Form template '{template_id}' does not exist")
        record = template.to_dict()
        record["id"] = template_id
        self._records[template_id] = record

    def get_template(self, template_id: str) -> Optional[FormTemplate]:
        record = self._records.get(template_id)
        return FormTemplate.from_dict(record) if record is not None else None

    def list_templates(self) -> List[FormTemplate]:
        return [FormTemplate.from_dict(r) for r in self._records.values()]

    def delete_template(self, template_id: str) -> None:
        self._records.pop(template_id, None)


class InMemorySubmissionRepository:
    def __init__(self) -> None:
        self._records: Dict[str, SubmissionRecord] = {}

    def create_submission(self, submission: FormSubmission) -> str:
        submission_id = f"sub_{uuid.uuid4().hex[:16]}"
        record = submission.to_dict()
        record["id"] = submission_id
        self._records[submission_id] = record
        return submission_id

    def get_submission(self, submission_id: str) -> Optional[FormSubmission]:
        record = self._records.get(submission_id)
        return FormSubmission.from_dict(record) if record is not None else None

    def list_submissions(self, form_id: Optional[str] = None) -> List[FormSubmission]:
        return [
            FormSubmission.from_dict(r)
            for r in self._records.values()
            if form_id is None or r["formId"] == form_id
        ]


class InMemoryUploadService:
    """Keeps uploaded bytes in a dict and returns ``memory://`` references.

    Args:
        max_bytes: Optional size limit; larger files raise UploadError
    """

    def __init__(self, max_bytes: Optional[int] = None) -> None:
        self.max_bytes = max_bytes
        self.blobs: Dict[str, bytes] = {}

    async def upload_file(self, scope_key: str, upload: FileUpload) -> str:
        if self.max_bytes is not None and upload.size > self.max_bytes:
            raise UploadError(
                f"File '{upload.file_name}' is {upload.size} bytes, limit is {self.max_bytes}"
            )
        self.blobs[scope_key] = upload.content
        logger.debug("Stored %d bytes at %s", upload.size, scope_key)
        return f"memory://{scope_key}"


class StaticIdentity:
    def __init__(self, submitter: Submitter) -> None:
        self.submitter = submitter

    def get_identity(self) -> Submitter:
        return self.submitter


__all__ = [
    "InMemoryTemplateRepository",
    "InMemorySubmissionRepository",
    "InMemoryUploadService",
    "StaticIdentity",
]
