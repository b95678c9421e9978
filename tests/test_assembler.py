"""Unit tests for the submission assembler.

Tests cover:
- Session start (steps, default values)
- Advance gating by per-step validation, retreat without validation
- Submission preconditions (editing, last step)
- Upload atomicity: any failed upload means nothing is stored
- Reuse of resolved uploads when a submission is retried
- Bounded concurrency of upload resolution
- Persistence failures and the terminal submitted state
"""

import asyncio
from collections import Counter

import pytest

from formengine.assembler import FormFillingSession, SubmissionAssembler
from formengine.boundaries import FileUpload
from formengine.config import Settings
from formengine.errors import NavigationError, PersistenceError, UploadError, ValidationError
from formengine.fields import FormField
from formengine.memory import InMemoryUploadService
from formengine.models import FormTemplate
from formengine.state_machine import InvalidStateTransitionError
from formengine.types import (
    EventType,
    FieldKind,
    SubmissionStatus,
    Submitter,
    TemplateStatus,
    WizardState,
)

SUBMITTER = Submitter(id="user_1", name="Jane Doe", email="jane@example.com")


class RecordingSubmissions:
    """Submission repository that records every create call."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.created = []

    def create_submission(self, submission):
        self.created.append(submission)
        if self.fail:
            raise TimeoutError("database timeout")
        return f"sub_{len(self.created)}"


class FakeUploads:
    """Upload service that fails for chosen file names and tracks concurrency."""

    def __init__(self, failing=(), delay: float = 0.0):
        self.failing = set(failing)
        self.delay = delay
        self.calls = Counter()
        self.in_flight = 0
        self.max_in_flight = 0

    async def upload_file(self, scope_key, upload):
        self.calls[upload.file_name] += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if upload.file_name in self.failing:
                raise ConnectionError(f"could not upload {upload.file_name}")
            return f"https://files.example.com/{scope_key}"
        finally:
            self.in_flight -= 1


def published(*fields):
    return FormTemplate(
        title="Application Form",
        fields=list(fields),
        status=TemplateStatus.PUBLISHED,
        id="tpl_1",
    )


def heading(field_id, label):
    return FormField(id=field_id, kind=FieldKind.HEADING, label=label)


def file_field(field_id, required=False):
    return FormField(id=field_id, kind=FieldKind.FILE, label=field_id, required=required)


def two_step_template():
    return published(
        heading("h1", "Company"),
        FormField(id="name", label="Company name", required=True),
        heading("h2", "Contact"),
        FormField(id="email", kind=FieldKind.EMAIL, label="Email", required=True),
    )


class TestSessionStart:
    """Test opening a filling session."""

    def test_start_partitions_steps(self):
        """Should start editing on step 0 with steps from headings."""
        session = FormFillingSession.start(two_step_template())
        assert [s.title for s in session.steps] == ["Company", "Contact"]
        assert session.current == 0
        assert session.machine.state is WizardState.EDITING
        assert session.session_id.startswith("fill_")
        assert session.submission_id is None

    def test_start_seeds_defaults(self):
        """Should seed captured values from field defaults."""
        template = published(
            FormField(id="stage", kind=FieldKind.SELECT, options=("Seed", "Growth"), default_value="Seed"),
            FormField(id="tags", kind=FieldKind.CHECKBOX, options=("A", "B"), default_value=["A"]),
            FormField(id="plain"),
        )
        session = FormFillingSession.start(template)
        assert session.values == {"stage": "Seed", "tags": ["A"]}


class TestNavigation:
    """Test advance and retreat."""

    def test_advance_blocked_by_invalid_step(self):
        """Should raise ValidationError naming the failing fields and stay put."""
        session = FormFillingSession.start(two_step_template())
        assembler = SubmissionAssembler(RecordingSubmissions(), FakeUploads())

        with pytest.raises(ValidationError) as exc_info:
            assembler.advance(session)
        assert exc_info.value.field_ids == ["name"]
        assert session.current == 0
        assert session.machine.get_events()[-1].type is EventType.VALIDATION_FAILED

    def test_advance_after_fixing(self):
        """Should move to the next step once the step is valid."""
        session = FormFillingSession.start(two_step_template())
        assembler = SubmissionAssembler(RecordingSubmissions(), FakeUploads())
        session.values["name"] = "Acme"
        assert assembler.advance(session) == 1
        assert session.current_step.title == "Contact"

    def test_advance_ignores_later_steps(self):
        """Should validate only the current step."""
        session = FormFillingSession.start(two_step_template())
        assembler = SubmissionAssembler(RecordingSubmissions(), FakeUploads())
        session.values.update({"name": "Acme", "email": "not-an-email"})
        assert assembler.advance(session) == 1

    def test_advance_from_last_step(self):
        """Should refuse to advance past the last step."""
        session = FormFillingSession.start(published(FormField(id="a")))
        assembler = SubmissionAssembler(RecordingSubmissions(), FakeUploads())
        with pytest.raises(NavigationError):
            assembler.advance(session)

    def test_advance_on_empty_form(self):
        """Should refuse navigation on a form without fields."""
        session = FormFillingSession.start(published())
        assembler = SubmissionAssembler(RecordingSubmissions(), FakeUploads())
        assert session.current_step is None
        with pytest.raises(NavigationError):
            assembler.advance(session)

    def test_retreat_without_validation(self):
        """Should go back even when the current step is invalid."""
        session = FormFillingSession.start(two_step_template())
        assembler = SubmissionAssembler(RecordingSubmissions(), FakeUploads())
        session.values["name"] = "Acme"
        assembler.advance(session)
        session.values["email"] = "broken"
        assert assembler.retreat(session) == 0

    def test_retreat_on_first_step_is_noop(self):
        """Should stay on step 0."""
        session = FormFillingSession.start(two_step_template())
        assembler = SubmissionAssembler(RecordingSubmissions(), FakeUploads())
        assert assembler.retreat(session) == 0
        assert session.machine.get_events() == []

    def test_values_survive_navigation(self):
        """Should keep captured values when moving between steps."""
        session = FormFillingSession.start(two_step_template())
        assembler = SubmissionAssembler(RecordingSubmissions(), FakeUploads())
        session.values["name"] = "Acme"
        assembler.advance(session)
        assembler.retreat(session)
        assert session.values["name"] == "Acme"


class TestSubmit:
    """Test submission assembly."""

    def test_submit_before_last_step(self):
        """Should refuse to submit from an earlier step."""
        submissions = RecordingSubmissions()
        session = FormFillingSession.start(two_step_template())
        assembler = SubmissionAssembler(submissions, FakeUploads())
        with pytest.raises(NavigationError):
            asyncio.run(assembler.submit(session, SUBMITTER))
        assert submissions.created == []

    def test_submit_blocked_by_validation(self):
        """Should raise ValidationError and store nothing when the last step is invalid."""
        submissions = RecordingSubmissions()
        session = FormFillingSession.start(published(FormField(id="email", kind=FieldKind.EMAIL)))
        session.values["email"] = "not-an-email"
        assembler = SubmissionAssembler(submissions, FakeUploads())
        with pytest.raises(ValidationError):
            asyncio.run(assembler.submit(session, SUBMITTER))
        assert submissions.created == []
        assert session.machine.state is WizardState.EDITING

    def test_submit_assembles_record(self):
        """Should store one pending submission with normalized answers."""
        submissions = RecordingSubmissions()
        template = published(
            heading("h1", "About"),
            FormField(id="name", required=True),
            FormField(id="revenue", kind=FieldKind.NUMBER),
            FormField(id="tags", kind=FieldKind.CHECKBOX, options=("AI", "Fintech")),
            FormField(id="notes", kind=FieldKind.TEXTAREA),
        )
        session = FormFillingSession.start(template)
        session.values.update({"name": "Acme", "revenue": "1200", "tags": ("AI",), "notes": "  "})
        assembler = SubmissionAssembler(submissions, FakeUploads())

        submission = asyncio.run(assembler.submit(session, SUBMITTER))

        assert len(submissions.created) == 1
        assert submission.id == "sub_1"
        assert submission.form_id == "tpl_1"
        assert submission.form_title == "Application Form"
        assert submission.submitted_by == SUBMITTER
        assert submission.status is SubmissionStatus.PENDING
        assert submission.responses == {"name": "Acme", "revenue": 1200, "tags": ["AI"]}
        assert session.machine.state is WizardState.SUBMITTED
        assert session.submission_id == "sub_1"
        assert session.is_submitted

    def test_submitted_is_terminal(self):
        """Should refuse further navigation and submits after success."""
        submissions = RecordingSubmissions()
        session = FormFillingSession.start(published(FormField(id="a")))
        assembler = SubmissionAssembler(submissions, FakeUploads())
        asyncio.run(assembler.submit(session, SUBMITTER))

        with pytest.raises(InvalidStateTransitionError):
            asyncio.run(assembler.submit(session, SUBMITTER))
        with pytest.raises(InvalidStateTransitionError):
            assembler.retreat(session)
        assert len(submissions.created) == 1

    @pytest.mark.parametrize("failure", [asyncio.CancelledError, RuntimeError])
    def test_unexpected_failure_returns_to_editing(self, failure):
        """Should leave submitting even when an upload is cancelled or raises outside the engine."""

        class BrokenUploads:
            async def upload_file(self, scope_key, upload):
                raise failure("interrupted")

        submissions = RecordingSubmissions()
        session = FormFillingSession.start(published(file_field("cv")))
        session.pending_uploads["cv"] = FileUpload("cv.pdf", b"cv")
        assembler = SubmissionAssembler(submissions, BrokenUploads())

        with pytest.raises((failure, UploadError)):
            asyncio.run(assembler.submit(session, SUBMITTER))
        assert session.machine.state is WizardState.EDITING
        assert submissions.created == []

        assembler.uploads = FakeUploads()
        assert asyncio.run(assembler.submit(session, SUBMITTER)).id == "sub_1"

    def test_persistence_failure_returns_to_editing(self):
        """Should wrap store failures and let the user retry."""
        submissions = RecordingSubmissions(fail=True)
        session = FormFillingSession.start(published(FormField(id="a")))
        assembler = SubmissionAssembler(submissions, FakeUploads())

        with pytest.raises(PersistenceError):
            asyncio.run(assembler.submit(session, SUBMITTER))
        assert session.machine.state is WizardState.EDITING
        assert session.submission is None

        submissions.fail = False
        assert asyncio.run(assembler.submit(session, SUBMITTER)).id == "sub_2"


class TestUploadResolution:
    """Test upload atomicity, retries and concurrency."""

    def test_failed_upload_stores_nothing(self):
        """Should make zero create_submission calls when any upload fails."""
        submissions = RecordingSubmissions()
        uploads = FakeUploads(failing={"deck.pdf"})
        session = FormFillingSession.start(published(file_field("cv"), file_field("deck")))
        session.pending_uploads["cv"] = FileUpload("cv.pdf", b"cv")
        session.pending_uploads["deck"] = FileUpload("deck.pdf", b"deck")
        assembler = SubmissionAssembler(submissions, uploads)

        with pytest.raises(UploadError) as exc_info:
            asyncio.run(assembler.submit(session, SUBMITTER))

        assert exc_info.value.field_ids == ["deck"]
        assert submissions.created == []
        assert session.machine.state is WizardState.EDITING
        assert "cv" in session.resolved_uploads
        assert "deck" not in session.resolved_uploads
        types = [e.type for e in session.machine.get_events()]
        assert EventType.UPLOAD_FAILED in types
        assert types[-1] is EventType.SUBMISSION_FAILED

    def test_all_failures_are_named(self):
        """Should name every field whose upload failed."""
        uploads = FakeUploads(failing={"a.pdf", "b.pdf"})
        session = FormFillingSession.start(published(file_field("a"), file_field("b")))
        session.pending_uploads.update({"a": FileUpload("a.pdf", b"1"), "b": FileUpload("b.pdf", b"2")})
        assembler = SubmissionAssembler(RecordingSubmissions(), uploads)
        with pytest.raises(UploadError) as exc_info:
            asyncio.run(assembler.submit(session, SUBMITTER))
        assert exc_info.value.field_ids == ["a", "b"]

    def test_success_stores_references(self):
        """Should make exactly one create_submission call with resolved references."""
        submissions = RecordingSubmissions()
        session = FormFillingSession.start(published(FormField(id="name"), file_field("cv", required=True)))
        session.values["name"] = "Jane"
        session.pending_uploads["cv"] = FileUpload("cv.pdf", b"cv")
        assembler = SubmissionAssembler(submissions, FakeUploads())

        asyncio.run(assembler.submit(session, SUBMITTER))

        assert len(submissions.created) == 1
        assert submissions.created[0].responses == {
            "name": "Jane",
            "cv": "https://files.example.com/form_uploads/tpl_1/cv/cv.pdf",
        }

    def test_retry_reuses_resolved_uploads(self):
        """Should not upload a file again once it has a reference."""
        submissions = RecordingSubmissions()
        uploads = FakeUploads(failing={"deck.pdf"})
        session = FormFillingSession.start(published(file_field("cv"), file_field("deck")))
        session.pending_uploads["cv"] = FileUpload("cv.pdf", b"cv")
        session.pending_uploads["deck"] = FileUpload("deck.pdf", b"deck")
        assembler = SubmissionAssembler(submissions, uploads)

        with pytest.raises(UploadError):
            asyncio.run(assembler.submit(session, SUBMITTER))
        uploads.failing.clear()
        submission = asyncio.run(assembler.submit(session, SUBMITTER))

        assert uploads.calls == Counter({"cv.pdf": 1, "deck.pdf": 2})
        assert len(submissions.created) == 1
        assert set(submission.responses) == {"cv", "deck"}

    def test_replaced_file_is_uploaded_again(self):
        """Should upload a new file picked after an earlier resolution."""
        uploads = FakeUploads(failing={"deck.pdf"})
        session = FormFillingSession.start(published(file_field("cv"), file_field("deck")))
        session.pending_uploads["cv"] = FileUpload("cv.pdf", b"cv")
        session.pending_uploads["deck"] = FileUpload("deck.pdf", b"deck")
        assembler = SubmissionAssembler(RecordingSubmissions(), uploads)
        with pytest.raises(UploadError):
            asyncio.run(assembler.submit(session, SUBMITTER))

        uploads.failing.clear()
        session.pending_uploads["cv"] = FileUpload("cv-v2.pdf", b"cv2")
        submission = asyncio.run(assembler.submit(session, SUBMITTER))
        assert submission.responses["cv"].endswith("/cv/cv-v2.pdf")

    def test_uploads_are_bounded(self, monkeypatch):
        """Should never run more uploads at once than configured."""
        monkeypatch.setenv("FORMENGINE_MAX_CONCURRENT_UPLOADS", "2")
        uploads = FakeUploads(delay=0.01)
        fields = [file_field(f"f{i}") for i in range(6)]
        session = FormFillingSession.start(published(*fields))
        for form_field in fields:
            session.pending_uploads[form_field.id] = FileUpload(f"{form_field.id}.bin", b"x")
        assembler = SubmissionAssembler(RecordingSubmissions(), uploads, settings=Settings())

        submission = asyncio.run(assembler.submit(session, SUBMITTER))

        assert len(submission.responses) == 6
        assert uploads.max_in_flight == 2

    def test_size_limit_is_an_upload_failure(self):
        """Should treat an upload service error as a failed field."""
        session = FormFillingSession.start(published(file_field("cv")))
        session.pending_uploads["cv"] = FileUpload("cv.pdf", b"0123456789")
        assembler = SubmissionAssembler(RecordingSubmissions(), InMemoryUploadService(max_bytes=4))
        with pytest.raises(UploadError) as exc_info:
            asyncio.run(assembler.submit(session, SUBMITTER))
        assert exc_info.value.field_ids == ["cv"]

    def test_required_file_without_upload(self):
        """Should block submission when a required file is missing."""
        session = FormFillingSession.start(published(file_field("cv", required=True)))
        assembler = SubmissionAssembler(RecordingSubmissions(), FakeUploads())
        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(assembler.submit(session, SUBMITTER))
        assert exc_info.value.field_ids == ["cv"]
