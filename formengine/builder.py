"""Builder controller: the authoring lifecycle of form templates.

The builder owns one FormAuthoringSession at a time. It starts new forms,
loads or clones stored ones, exposes the SchemaStore for field edits, and
saves drafts or publishes through the template repository.
"""

import logging
from dataclasses import replace
from typing import Dict, List, Optional

from formengine.boundaries import TemplateRepository, call_store
from formengine.config import SETTINGS, Settings
from formengine.errors import TemplateNotFoundError
from formengine.events import EventEmitter, make_event
from formengine.models import FormTemplate, utc_now
from formengine.schema_store import FormAuthoringSession, SchemaStore
from formengine.types import EventType, TemplateStatus

logger = logging.getLogger(__name__)


class BuilderController:
    """Create, load, clone, save and publish form templates.

    Args:
        templates: Template store
        settings: Engine settings (default category, seeded option count)
        emitter: Optional emitter for authoring events

    Examples:
        >>> from formengine.memory import InMemoryTemplateRepository
        >>> builder = BuilderController(InMemoryTemplateRepository())
        >>> builder.store.set_details(title="Quarterly Progress Report").title
        'Quarterly Progress Report'
    """

    def __init__(
        self,
        templates: TemplateRepository,
        settings: Settings = SETTINGS,
        emitter: Optional[EventEmitter] = None,
    ) -> None:
        self.templates = templates
        self.settings = settings
        self.emitter = emitter
        self.session = self._blank_session()

    @property
    def store(self) -> SchemaStore:
        """Schema store bound to the current authoring session."""
        return SchemaStore(self.session, settings=self.settings, emitter=self.emitter)

    @property
    def template(self) -> FormTemplate:
        return self.session.template

    def _blank_session(self) -> FormAuthoringSession:
        return FormAuthoringSession(FormTemplate(category=self.settings.default_category))

    def _open(self, template: FormTemplate) -> FormTemplate:
        self.session = FormAuthoringSession(template)
        return template

    def new_form(self, created_by: Optional[str] = None) -> FormTemplate:
        """Start authoring an empty draft."""
        template = self._open(self._blank_session().template)
        template.created_by = created_by
        if self.emitter is not None:
            self.emitter.emit(make_event(EventType.TEMPLATE_CREATED, None))
        return template

    def load(self, template_id: str) -> FormTemplate:
        """Open a stored template for editing.

        Raises:
            TemplateNotFoundError: If no template has this id
        """
        template = self._fetch(template_id)
        logger.debug("Loaded form template %s for editing", template_id)
        return self._open(template)

    def clone(self, template_id: str) -> FormTemplate:
        """Open an unsaved draft copy of a stored template.

        The copy is titled "Copy of <title>", keeps the field list and
        category, and gets fresh timestamps.

        Raises:
            TemplateNotFoundError: If no template has this id
        """
        source = self._fetch(template_id)
        now = utc_now()
        copy = replace(
            source,
            id=None,
            title=f"Copy of {source.title}",
            fields=list(source.fields),
            status=TemplateStatus.DRAFT,
            created_at=now,
            updated_at=now,
        )
        if self.emitter is not None:
            self.emitter.emit(make_event(EventType.TEMPLATE_CREATED, None, payload={"clonedFrom": template_id}))
        return self._open(copy)

    def list_templates(self, status: Optional[TemplateStatus] = None) -> List[FormTemplate]:
        """Stored templates, optionally only those with the given status."""
        templates = call_store(self.templates.list_templates)
        if status is None:
            return templates
        return [t for t in templates if t.status is TemplateStatus(status)]

    def statistics(self) -> Dict[str, int]:
        """Counts of stored templates overall and by status."""
        templates = self.list_templates()
        published = sum(1 for t in templates if t.status is TemplateStatus.PUBLISHED)
        return {
            "total": len(templates),
            "published": published,
            "draft": len(templates) - published,
        }

    def save_draft(self) -> FormTemplate:
        """Save the current template (see SchemaStore.save_draft)."""
        return self.store.save_draft(self.templates)

    def publish(self) -> FormTemplate:
        """Publish the current template (see SchemaStore.publish)."""
        return self.store.publish(self.templates)

    def _fetch(self, template_id: str) -> FormTemplate:
        template = call_store(self.templates.get_template, template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        if template.id is None:
            template.id = template_id
        return template


__all__ = [
    "BuilderController",
]
