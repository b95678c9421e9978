"""In-memory schema store for authoring a form template.

A FormAuthoringSession owns one FormTemplate plus the id of the field
currently expanded in the builder. SchemaStore applies structural edits to
that session: adding, updating, retyping, removing and reordering fields,
editing option lists, and finally saving or publishing through a
TemplateRepository. Every edit returns the updated template and refreshes
its ``updated_at``.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional

from formengine.boundaries import TemplateRepository, call_store
from formengine.config import SETTINGS, Settings
from formengine.errors import StructuralError
from formengine.events import EventEmitter, make_event
from formengine.fields import FormField, default_fits_kind, default_options, kind_spec, new_field_id
from formengine.models import FormTemplate, utc_now
from formengine.types import EventType, FieldKind, MoveDirection, TemplateStatus

logger = logging.getLogger(__name__)

EDITABLE_ATTRIBUTES = frozenset({
    "kind",
    "label",
    "placeholder",
    "description",
    "required",
    "options",
    "default_value",
})

NEW_FIELD_LABEL = "New Field"
NEW_FIELD_PLACEHOLDER = "Enter text here"


@dataclass
class FormAuthoringSession:
    """The template being authored and the builder's active field.

    Attributes:
        template: Template under edit
        active_field_id: Id of the expanded field, or None
    """
    template: FormTemplate
    active_field_id: Optional[str] = None


class SchemaStore:
    """Structural edit operations over one authoring session.

    Examples:
        >>> store = SchemaStore(FormAuthoringSession(FormTemplate(title="Intake")))
        >>> template = store.add_field()
        >>> template.fields[0].kind
        <FieldKind.TEXT: 'text'>
        >>> store.session.active_field_id == template.fields[0].id
        True
    """

    def __init__(
        self,
        session: FormAuthoringSession,
        settings: Settings = SETTINGS,
        emitter: Optional[EventEmitter] = None,
    ) -> None:
        self.session = session
        self.settings = settings
        self.emitter = emitter

    @property
    def template(self) -> FormTemplate:
        return self.session.template

    def _emit(self, event_type: EventType, **payload: Any) -> None:
        if self.emitter is not None:
            self.emitter.emit(make_event(event_type, self.template.id, payload=payload or None))

    def _replace_field(self, index: int, form_field: FormField) -> FormTemplate:
        self.template.fields[index] = form_field
        self.template.touch()
        self._emit(EventType.FIELD_UPDATED, fieldId=form_field.id)
        return self.template

    def add_field(self) -> FormTemplate:
        """Append a new optional text field and make it the active field."""
        form_field = FormField(
            id=new_field_id(self.template.field_ids()),
            kind=FieldKind.TEXT,
            label=NEW_FIELD_LABEL,
            placeholder=NEW_FIELD_PLACEHOLDER,
            required=False,
        )
        self.template.fields.append(form_field)
        self.template.touch()
        self.session.active_field_id = form_field.id
        self._emit(EventType.FIELD_ADDED, fieldId=form_field.id)
        return self.template

    def update_field(self, field_id: str, changes: Mapping[str, Any]) -> FormTemplate:
        """Merge attribute changes into a field.

        Unknown field ids are ignored.

        Raises:
            StructuralError: If ``changes`` tries to change the id, names an
                attribute that does not exist, or leaves the default value
                in a shape the kind does not allow
        """
        index = self.template.index_of(field_id)
        if index < 0:
            logger.debug("update_field ignored for unknown field %s", field_id)
            return self.template

        changes = dict(changes)
        if changes.pop("id", field_id) != field_id:
            raise StructuralError(f"Field id of '{field_id}' cannot be changed")
        unknown = set(changes) - EDITABLE_ATTRIBUTES
        if unknown:
            raise StructuralError(f"Unknown field attribute(s): {', '.join(sorted(unknown))}")
        if "options" in changes:
            changes["options"] = tuple(changes["options"] or ())

        return self._replace_field(index, replace(self.template.fields[index], **changes))

    def set_field_kind(self, field_id: str, kind: FieldKind) -> FormTemplate:
        """Change a field's kind.

        Switching to an option kind seeds placeholder options when the field
        has none. A default value that does not fit the new kind is dropped;
        every other attribute is kept.
        """
        index = self.template.index_of(field_id)
        if index < 0:
            return self.template

        kind = FieldKind(kind)
        current = self.template.fields[index]
        changes: dict = {"kind": kind}
        if kind_spec(kind).requires_options and not current.options:
            changes["options"] = default_options(self.settings.default_option_count)
        if not default_fits_kind(kind, current.default_value):
            changes["default_value"] = None
        return self._replace_field(index, replace(current, **changes))

    def remove_field(self, field_id: str) -> FormTemplate:
        """Delete a field, clearing the active field if it was the one removed."""
        index = self.template.index_of(field_id)
        if index < 0:
            return self.template
        del self.template.fields[index]
        self.template.touch()
        if self.session.active_field_id == field_id:
            self.session.active_field_id = None
        self._emit(EventType.FIELD_REMOVED, fieldId=field_id)
        return self.template

    def move_field(self, field_id: str, direction: MoveDirection) -> FormTemplate:
        """Swap a field with its neighbour; no-op at either end of the list."""
        index = self.template.index_of(field_id)
        if index < 0:
            return self.template
        target = index - 1 if MoveDirection(direction) is MoveDirection.UP else index + 1
        if not 0 <= target < len(self.template.fields):
            return self.template

        fields = self.template.fields
        fields[index], fields[target] = fields[target], fields[index]
        self.template.touch()
        self._emit(EventType.FIELD_MOVED, fieldId=field_id, fromIndex=index, toIndex=target)
        return self.template

    def reorder_field(self, from_index: int, to_index: int) -> FormTemplate:
        """Move the field at ``from_index`` so it ends up at ``to_index``.

        Raises:
            IndexError: If either index is out of bounds
        """
        fields = self.template.fields
        for index in (from_index, to_index):
            if not 0 <= index < len(fields):
                raise IndexError(f"Field index {index} is out of range for {len(fields)} field(s)")
        if from_index == to_index:
            return self.template

        moved = fields.pop(from_index)
        fields.insert(to_index, moved)
        self.template.touch()
        self._emit(EventType.FIELD_MOVED, fieldId=moved.id, fromIndex=from_index, toIndex=to_index)
        return self.template

    def add_option(self, field_id: str, value: Optional[str] = None) -> FormTemplate:
        """Append an option, labelled "Option N" unless ``value`` is given."""
        form_field = self.template.get_field(field_id)
        if form_field is None:
            return self.template
        label = value if value is not None else f"Option {len(form_field.options) + 1}"
        return self.update_field(field_id, {"options": form_field.options + (label,)})

    def update_option(self, field_id: str, index: int, value: str) -> FormTemplate:
        """Rename the option at ``index``.

        Raises:
            IndexError: If there is no option at ``index``
        """
        form_field = self.template.get_field(field_id)
        if form_field is None:
            return self.template
        options = list(form_field.options)
        options[index] = value
        return self.update_field(field_id, {"options": options})

    def remove_option(self, field_id: str, index: int) -> FormTemplate:
        """Delete the option at ``index``.

        Raises:
            IndexError: If there is no option at ``index``
        """
        form_field = self.template.get_field(field_id)
        if form_field is None:
            return self.template
        options = list(form_field.options)
        del options[index]
        return self.update_field(field_id, {"options": options})

    def set_details(
        self,
        title: Optional[str] = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
    ) -> FormTemplate:
        """Update template metadata; arguments left as None are unchanged."""
        if title is not None:
            self.template.title = title
        if description is not None:
            self.template.description = description
        if category is not None:
            self.template.category = category
        self.template.touch()
        return self.template

    def check_structure(self) -> None:
        """Ensure the template can be saved.

        Raises:
            StructuralError: "missing title" or "no fields"
        """
        if not self.template.title.strip():
            raise StructuralError("missing title")
        if not self.template.fields:
            raise StructuralError("no fields")

    def save_draft(self, repository: TemplateRepository) -> FormTemplate:
        """Persist the template without publishing it.

        A template that is already published stays published.
        """
        status = self.template.status
        return self._persist(repository, status, EventType.TEMPLATE_SAVED)

    def publish(self, repository: TemplateRepository) -> FormTemplate:
        """Persist the template as published so that it accepts submissions."""
        return self._persist(repository, TemplateStatus.PUBLISHED, EventType.TEMPLATE_PUBLISHED)

    def _persist(
        self,
        repository: TemplateRepository,
        status: TemplateStatus,
        event_type: EventType,
    ) -> FormTemplate:
        self.check_structure()

        # Persist a copy so a rejected write leaves the session untouched.
        candidate = replace(
            self.template,
            fields=list(self.template.fields),
            status=status,
            updated_at=utc_now(),
        )
        if candidate.id is None:
            candidate.id = call_store(repository.create_template, candidate)
        else:
            call_store(repository.update_template, candidate.id, candidate)

        self.session.template = candidate
        logger.info("Form template %s saved as %s", candidate.id, status.value)
        self._emit(event_type, status=status.value)
        return candidate


__all__ = [
    "FormAuthoringSession",
    "SchemaStore",
    "EDITABLE_ATTRIBUTES",
]
