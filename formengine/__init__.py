"""formengine: dynamic form builder and multi-step submission engine.

formengine lets an operator define arbitrary forms and lets users fill them
out as a validated wizard:
- Typed, reorderable fields driven by a single kind table
- Schema store with structural edits, drafts and publishing
- Heading-based partitioning of a form into wizard steps
- Per-step validation with structured, field-level errors
- Concurrent, all-or-nothing upload resolution on submit
- Audit event stream for authoring and filling sessions

Storage, blob uploads and identity are external collaborators, consumed
through the protocols in ``formengine.boundaries``.

Basic usage:
    >>> import asyncio
    >>> from formengine import BuilderController, WizardController
    >>> from formengine.memory import (
    ...     InMemorySubmissionRepository,
    ...     InMemoryTemplateRepository,
    ...     InMemoryUploadService,
    ...     StaticIdentity,
    ... )
    >>> from formengine.types import Submitter
    >>> templates = InMemoryTemplateRepository()
    >>> builder = BuilderController(templates)
    >>> _ = builder.store.set_details(title="Mentorship Request")
    >>> _ = builder.store.add_field()
    >>> template = builder.publish()
    >>> wizard = WizardController(
    ...     templates,
    ...     InMemorySubmissionRepository(),
    ...     InMemoryUploadService(),
    ...     StaticIdentity(Submitter(id="user_1", name="Jane Doe", email="jane@example.com")),
    ... )
    >>> _ = wizard.open(template.id)
    >>> wizard.set_value(template.fields[0].id, "Hello")
    >>> submission = asyncio.run(wizard.submit())
    >>> submission.status.value
    'pending'
"""

__version__ = "0.1.0"
__author__ = "formengine maintainers"

# Version info
VERSION = (0, 1, 0)

# Core exports
from formengine.builder import BuilderController
from formengine.wizard import WizardController

# Package metadata
__all__ = [
    "__version__",
    "VERSION",
    "BuilderController",
    "WizardController",
]
