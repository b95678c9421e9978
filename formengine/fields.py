"""Field model for form templates.

KIND_SPECS is the single source of truth for what each field kind means:
which widget presents it, what shape its captured value takes, whether it
needs a list of options, whether a placeholder makes sense, and whether it
opens a wizard step. The renderer, the validation engine and the schema store
consult this table instead of switching on kinds, so a new kind is added by
adding an entry here.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from typing_extensions import NotRequired, TypedDict

from formengine.errors import StructuralError
from formengine.types import FieldKind, ValueShape


@dataclass(frozen=True)
class FieldKindSpec:
    """Declarative description of one field kind.

    Attributes:
        kind: The kind this entry describes
        label: Name shown in the builder's kind picker
        widget: Input widget class used to capture the value
        value_shape: Shape of the serialized value
        requires_options: Whether the field chooses from ``options``
        supports_placeholder: Whether ``placeholder`` is meaningful
        starts_step: Whether the field opens a new wizard step
        format: Optional named format rule always applied to the value
    """
    kind: FieldKind
    label: str
    widget: str
    value_shape: ValueShape
    requires_options: bool = False
    supports_placeholder: bool = True
    starts_step: bool = False
    format: Optional[str] = None

    @property
    def capturable(self) -> bool:
        """Whether fields of this kind capture a value at all."""
        return self.value_shape is not ValueShape.NONE


KIND_SPECS: Dict[FieldKind, FieldKindSpec] = {
    FieldKind.TEXT: FieldKindSpec(
        kind=FieldKind.TEXT,
        label="Text Field",
        widget="input",
        value_shape=ValueShape.STRING,
    ),
    FieldKind.TEXTAREA: FieldKindSpec(
        kind=FieldKind.TEXTAREA,
        label="Text Area",
        widget="textarea",
        value_shape=ValueShape.STRING,
    ),
    FieldKind.NUMBER: FieldKindSpec(
        kind=FieldKind.NUMBER,
        label="Number",
        widget="number",
        value_shape=ValueShape.NUMBER,
    ),
    FieldKind.EMAIL: FieldKindSpec(
        kind=FieldKind.EMAIL,
        label="Email",
        widget="email",
        value_shape=ValueShape.STRING,
        format="email",
    ),
    FieldKind.SELECT: FieldKindSpec(
        kind=FieldKind.SELECT,
        label="Dropdown",
        widget="select",
        value_shape=ValueShape.STRING,
        requires_options=True,
    ),
    FieldKind.CHECKBOX: FieldKindSpec(
        kind=FieldKind.CHECKBOX,
        label="Checkbox",
        widget="checkbox_group",
        value_shape=ValueShape.STRING_LIST,
        requires_options=True,
        supports_placeholder=False,
    ),
    FieldKind.RADIO: FieldKindSpec(
        kind=FieldKind.RADIO,
        label="Radio Group",
        widget="radio_group",
        value_shape=ValueShape.STRING,
        requires_options=True,
    ),
    FieldKind.DATE: FieldKindSpec(
        kind=FieldKind.DATE,
        label="Date Picker",
        widget="date",
        value_shape=ValueShape.ISO_DATE,
        supports_placeholder=False,
        format="date",
    ),
    FieldKind.FILE: FieldKindSpec(
        kind=FieldKind.FILE,
        label="File Upload",
        widget="upload",
        value_shape=ValueShape.UPLOAD_REFERENCE,
        supports_placeholder=False,
    ),
    FieldKind.HEADING: FieldKindSpec(
        kind=FieldKind.HEADING,
        label="Section Heading",
        widget="heading",
        value_shape=ValueShape.NONE,
        supports_placeholder=False,
        starts_step=True,
    ),
}


def kind_spec(kind: FieldKind) -> FieldKindSpec:
    """Look up the table entry for a field kind."""
    return KIND_SPECS[FieldKind(kind)]


def new_field_id(existing: Iterable[str] = ()) -> str:
    """Generate a field id that does not collide with ``existing``."""
    taken = set(existing)
    while True:
        candidate = f"fld_{uuid.uuid4().hex[:12]}"
        if candidate not in taken:
            return candidate


def default_options(count: int = 3) -> Tuple[str, ...]:
    """Placeholder options seeded when a field switches to an option kind."""
    return tuple(f"Option {n}" for n in range(1, count + 1))


def default_fits_kind(kind: FieldKind, value: Any) -> bool:
    """Check that a default value has the shape the kind's values take.

    Examples:
        >>> default_fits_kind(FieldKind.CHECKBOX, ["a", "b"])
        True
        >>> default_fits_kind(FieldKind.FILE, ["a"])
        False
    """
    if value is None:
        return True
    shape = kind_spec(kind).value_shape
    if shape is ValueShape.STRING or shape is ValueShape.UPLOAD_REFERENCE:
        return isinstance(value, str)
    if shape is ValueShape.NUMBER:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if shape is ValueShape.STRING_LIST:
        return isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value)
    if shape is ValueShape.ISO_DATE:
        return isinstance(value, (str, date))
    return False


class FieldRecord(TypedDict):
    """Persisted shape of a form field."""
    id: str
    kind: str
    label: str
    required: bool
    placeholder: NotRequired[str]
    description: NotRequired[str]
    options: NotRequired[List[str]]
    defaultValue: NotRequired[Any]


@dataclass(frozen=True)
class FormField:
    """One typed, configurable input unit within a form template.

    ``options`` is kept across kind changes so that switching a dropdown to a
    text field and back does not lose the choices; it is only serialized for
    kinds that use it. ``default_value`` must fit the kind's value shape.

    Attributes:
        id: Unique identifier, stable across reorders
        kind: Field kind
        label: Display name, also the step title for headings
        placeholder: Optional hint shown inside empty inputs
        description: Optional help text
        required: Whether a value must be captured
        options: Choices for select, checkbox and radio kinds
        default_value: Optional seed value for the wizard

    Examples:
        >>> f = FormField(id="fld_1", kind=FieldKind.SELECT, label="Stage", options=("Seed", "Growth"))
        >>> f.requires_options
        True
        >>> f.to_dict()["options"]
        ['Seed', 'Growth']
    """
    id: str
    kind: FieldKind = FieldKind.TEXT
    label: str = ""
    placeholder: Optional[str] = None
    description: Optional[str] = None
    required: bool = False
    options: Tuple[str, ...] = field(default_factory=tuple)
    default_value: Any = None

    def __post_init__(self):
        """Normalize enum and sequence fields, then check the default's shape."""
        if not isinstance(self.kind, FieldKind):
            object.__setattr__(self, "kind", FieldKind(self.kind))
        if not isinstance(self.options, tuple):
            object.__setattr__(self, "options", tuple(self.options or ()))
        if isinstance(self.default_value, list):
            object.__setattr__(self, "default_value", tuple(self.default_value))
        if not default_fits_kind(self.kind, self.default_value):
            raise StructuralError(
                f"Default value {self.default_value!r} does not fit field kind "
                f"'{self.kind.value}' of field '{self.id}'"
            )

    @property
    def spec(self) -> FieldKindSpec:
        return kind_spec(self.kind)

    @property
    def requires_options(self) -> bool:
        return self.spec.requires_options

    @property
    def is_heading(self) -> bool:
        return self.spec.starts_step

    @property
    def capturable(self) -> bool:
        return self.spec.capturable

    def to_dict(self) -> FieldRecord:
        """Convert to dict for serialization."""
        spec = self.spec
        result: FieldRecord = {
            "id": self.id,
            "kind": self.kind.value,
            "label": self.label,
            "required": self.required if spec.capturable else False,
        }
        if self.placeholder is not None and spec.supports_placeholder:
            result["placeholder"] = self.placeholder
        if self.description is not None:
            result["description"] = self.description
        if spec.requires_options:
            result["options"] = list(self.options)
        if self.default_value is not None and spec.capturable:
            value = self.default_value
            if isinstance(value, tuple):
                value = list(value)
            elif isinstance(value, date):
                value = value.isoformat()
            result["defaultValue"] = value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormField":
        """Create FormField from dict.

        Accepts the legacy ``type`` key in place of ``kind``.
        """
        kind = FieldKind(data.get("kind") or data.get("type") or FieldKind.TEXT.value)
        return cls(
            id=data["id"],
            kind=kind,
            label=data.get("label", ""),
            placeholder=data.get("placeholder"),
            description=data.get("description"),
            required=bool(data.get("required", False)),
            options=tuple(data.get("options") or ()),
            default_value=data.get("defaultValue"),
        )


__all__ = [
    "FieldKindSpec",
    "KIND_SPECS",
    "kind_spec",
    "new_field_id",
    "default_options",
    "default_fits_kind",
    "FieldRecord",
    "FormField",
]
