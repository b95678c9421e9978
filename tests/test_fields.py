"""Unit tests for the field model and kind table.

Tests cover:
- Kind table entries (options, placeholders, step boundaries)
- Field id generation
- Default value shape checks
- FormField serialization, including the legacy "type" key
- Template and submission records
"""

from datetime import date, datetime, timezone

import pytest

from formengine.errors import StructuralError
from formengine.fields import (
    KIND_SPECS,
    FormField,
    default_fits_kind,
    default_options,
    kind_spec,
    new_field_id,
)
from formengine.models import FormSubmission, FormTemplate, parse_timestamp
from formengine.types import FieldKind, SubmissionStatus, Submitter, TemplateStatus, ValueShape


class TestKindTable:
    """Test the declarative kind table."""

    def test_every_kind_has_an_entry(self):
        """Should describe every field kind."""
        assert set(KIND_SPECS) == set(FieldKind)
        for kind, spec in KIND_SPECS.items():
            assert spec.kind is kind

    def test_option_kinds(self):
        """Should require options exactly for select, checkbox and radio."""
        option_kinds = {k for k, s in KIND_SPECS.items() if s.requires_options}
        assert option_kinds == {FieldKind.SELECT, FieldKind.CHECKBOX, FieldKind.RADIO}

    def test_only_heading_starts_a_step(self):
        """Should mark headings, and only headings, as step boundaries."""
        assert [k for k, s in KIND_SPECS.items() if s.starts_step] == [FieldKind.HEADING]
        assert kind_spec(FieldKind.HEADING).capturable is False

    def test_format_rules(self):
        """Should carry the email and date format rules."""
        assert kind_spec(FieldKind.EMAIL).format == "email"
        assert kind_spec(FieldKind.DATE).format == "date"
        assert kind_spec(FieldKind.TEXT).format is None

    def test_value_shapes(self):
        """Should map kinds to their captured value shapes."""
        assert kind_spec(FieldKind.NUMBER).value_shape is ValueShape.NUMBER
        assert kind_spec(FieldKind.CHECKBOX).value_shape is ValueShape.STRING_LIST
        assert kind_spec(FieldKind.FILE).value_shape is ValueShape.UPLOAD_REFERENCE

    def test_kind_spec_accepts_wire_value(self):
        """Should look up entries by the persisted string value."""
        assert kind_spec("radio").kind is FieldKind.RADIO


class TestHelpers:
    """Test field id and option helpers."""

    def test_new_field_id_is_unique(self):
        """Should never return an id that is already taken."""
        ids = set()
        for _ in range(50):
            ids.add(new_field_id(ids))
        assert len(ids) == 50
        assert all(i.startswith("fld_") for i in ids)

    def test_default_options(self):
        """Should produce numbered placeholder options."""
        assert default_options() == ("Option 1", "Option 2", "Option 3")
        assert default_options(1) == ("Option 1",)
        assert default_options(0) == ()

    def test_default_fits_kind(self):
        """Should accept only defaults matching the kind's value shape."""
        assert default_fits_kind(FieldKind.TEXT, "hello")
        assert default_fits_kind(FieldKind.NUMBER, 3.5)
        assert not default_fits_kind(FieldKind.NUMBER, True)
        assert not default_fits_kind(FieldKind.NUMBER, "3")
        assert default_fits_kind(FieldKind.CHECKBOX, ("a",))
        assert not default_fits_kind(FieldKind.CHECKBOX, "a")
        assert default_fits_kind(FieldKind.DATE, date(2024, 1, 1))
        assert not default_fits_kind(FieldKind.HEADING, "x")
        assert default_fits_kind(FieldKind.HEADING, None)


class TestFormField:
    """Test FormField construction and serialization."""

    def test_normalizes_kind_and_options(self):
        """Should coerce string kinds and list options."""
        form_field = FormField(id="f1", kind="select", options=["A", "B"])
        assert form_field.kind is FieldKind.SELECT
        assert form_field.options == ("A", "B")

    def test_rejects_default_of_wrong_shape(self):
        """Should raise StructuralError when the default does not fit the kind."""
        with pytest.raises(StructuralError):
            FormField(id="f1", kind=FieldKind.NUMBER, default_value="ten")

    def test_to_dict_for_text(self):
        """Should serialize a text field without options."""
        form_field = FormField(
            id="f1",
            label="Company name",
            placeholder="Acme Ltd",
            required=True,
            options=("stale",),
        )
        assert form_field.to_dict() == {
            "id": "f1",
            "kind": "text",
            "label": "Company name",
            "required": True,
            "placeholder": "Acme Ltd",
        }

    def test_to_dict_drops_placeholder_where_unsupported(self):
        """Should not persist a placeholder for checkbox fields."""
        form_field = FormField(
            id="f1",
            kind=FieldKind.CHECKBOX,
            placeholder="Enter text here",
            options=("A",),
            default_value=["A"],
        )
        data = form_field.to_dict()
        assert "placeholder" not in data
        assert data["options"] == ["A"]
        assert data["defaultValue"] == ["A"]

    def test_heading_is_never_required(self):
        """Should serialize headings as not required."""
        heading = FormField(id="h1", kind=FieldKind.HEADING, label="Intro", required=True)
        assert heading.is_heading
        assert heading.to_dict()["required"] is False

    def test_from_dict_roundtrip(self):
        """Should restore the same field from its persisted shape."""
        form_field = FormField(
            id="f1",
            kind=FieldKind.RADIO,
            label="Stage",
            description="Current funding stage",
            required=True,
            options=("Seed", "Growth"),
            default_value="Seed",
        )
        assert FormField.from_dict(form_field.to_dict()) == form_field

    def test_from_dict_accepts_legacy_type_key(self):
        """Should read the kind from a "type" key when "kind" is absent."""
        form_field = FormField.from_dict({"id": "f1", "type": "email", "label": "Email"})
        assert form_field.kind is FieldKind.EMAIL
        assert form_field.required is False


class TestRecords:
    """Test template and submission records."""

    def test_template_roundtrip(self):
        """Should restore a template with its fields and timestamps."""
        template = FormTemplate(
            title="Progress Report",
            description="Quarterly",
            category="Progress Report",
            fields=[FormField(id="f1", label="Revenue", kind=FieldKind.NUMBER)],
            status=TemplateStatus.PUBLISHED,
            id="tpl_1",
            created_by="admin_1",
        )
        restored = FormTemplate.from_dict(template.to_dict())
        assert restored == template
        assert restored.is_submittable

    def test_template_lookup(self):
        """Should find fields by id and report -1 for unknown ids."""
        template = FormTemplate(fields=[FormField(id="a"), FormField(id="b")])
        assert template.field_ids() == ["a", "b"]
        assert template.index_of("b") == 1
        assert template.index_of("zzz") == -1
        assert template.get_field("zzz") is None

    def test_submission_roundtrip(self):
        """Should restore a submission, including its submitter."""
        submission = FormSubmission(
            form_id="tpl_1",
            form_title="Progress Report",
            submitted_by=Submitter(id="u1", name="Jane", email="jane@example.com"),
            submitted_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
            responses={"f1": 12, "f2": ["A", "B"]},
            id="sub_1",
        )
        data = submission.to_dict()
        assert data["status"] == "pending"
        assert data["submittedBy"] == {"id": "u1", "name": "Jane", "email": "jane@example.com"}
        assert FormSubmission.from_dict(data) == submission

    def test_submission_accepts_submitter_dict(self):
        """Should coerce a plain dict and a status string."""
        submission = FormSubmission(
            form_id="tpl_1",
            form_title="T",
            submitted_by={"id": "u1"},
            submitted_at=datetime.now(timezone.utc),
            responses={},
            status="approved",
        )
        assert submission.submitted_by == Submitter(id="u1")
        assert submission.status is SubmissionStatus.APPROVED

    def test_parse_timestamp_assumes_utc(self):
        """Should treat naive timestamps as UTC."""
        parsed = parse_timestamp("2024-05-01T12:00:00")
        assert parsed.tzinfo is not None
        assert parsed == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
