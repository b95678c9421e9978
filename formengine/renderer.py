"""Table-driven rendering and value serialization for form fields.

For every field the renderer derives, from the kind table in
``formengine.fields``:
- the input widget and the shape of the captured value,
- the rule set as a JSON Schema fragment (type rule, the kind's format rule,
  option membership),
- the list of choices for option kinds,
- how a raw captured value is normalized into its persisted shape.

Dispatch goes through SHAPE_HANDLERS keyed by value shape, so a new field
kind that reuses an existing shape needs no change here.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Union

from dateutil.parser import isoparse

from formengine.boundaries import FileUpload
from formengine.fields import FormField
from formengine.types import FieldKind, ValueShape

SchemaFragment = Union[Dict[str, Any], bool]


def _serialize_string(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def _serialize_number(value: Any) -> Any:
    # NaN and infinities are left as text so the number type rule rejects them.
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if isinstance(value, str):
        text = value.strip()
        for convert in (int, float):
            try:
                number = convert(text)
            except ValueError:
                continue
            if isinstance(number, float) and not math.isfinite(number):
                return value
            return number
    return value


def _serialize_string_list(value: Any) -> Any:
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return value


def _serialize_iso_date(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        try:
            return isoparse(value.strip()).date().isoformat()
        except (ValueError, OverflowError):
            return value
    return value


def _serialize_upload(value: Any) -> Any:
    # Pending uploads validate by file name; resolution happens on submit.
    if isinstance(value, FileUpload):
        return value.file_name
    return value


@dataclass(frozen=True)
class ShapeHandler:
    """Schema and serializer for one value shape."""
    schema: Callable[[], Dict[str, Any]]
    serialize: Callable[[Any], Any]


SHAPE_HANDLERS: Dict[ValueShape, ShapeHandler] = {
    ValueShape.STRING: ShapeHandler(
        schema=lambda: {"type": "string"},
        serialize=_serialize_string,
    ),
    ValueShape.NUMBER: ShapeHandler(
        schema=lambda: {"type": "number"},
        serialize=_serialize_number,
    ),
    ValueShape.STRING_LIST: ShapeHandler(
        schema=lambda: {"type": "array", "items": {"type": "string"}, "uniqueItems": True},
        serialize=_serialize_string_list,
    ),
    ValueShape.ISO_DATE: ShapeHandler(
        schema=lambda: {"type": "string"},
        serialize=_serialize_iso_date,
    ),
    ValueShape.UPLOAD_REFERENCE: ShapeHandler(
        schema=lambda: {"type": "string", "minLength": 1},
        serialize=_serialize_upload,
    ),
}


@dataclass(frozen=True)
class FieldRendering:
    """Everything a presentation layer needs to draw and check one field.

    Attributes:
        field_id: Id of the rendered field
        kind: Field kind
        widget: Input widget class
        label: Display label
        value_shape: Shape of the captured value
        required: Whether a value must be captured (always False for headings)
        placeholder: Placeholder, only for kinds where it is meaningful
        description: Help text
        choices: Options for option kinds, else None
        schema: JSON Schema fragment for the value, None for headings
        default_value: Seed value, if any
    """
    field_id: str
    kind: FieldKind
    widget: str
    label: str
    value_shape: ValueShape
    required: bool
    placeholder: Optional[str]
    description: Optional[str]
    choices: Optional[List[str]]
    schema: Optional[SchemaFragment]
    default_value: Any = None


def is_blank(value: Any) -> bool:
    """Whether a captured value counts as absent.

    Examples:
        >>> is_blank("  ")
        True
        >>> is_blank(0)
        False
        >>> is_blank([])
        True
    """
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) == 0
    return False


def field_schema(form_field: FormField) -> Optional[SchemaFragment]:
    """JSON Schema fragment for a field's value, or None for headings.

    Option kinds with no options get the ``false`` schema, which rejects any
    value: such a field cannot be meaningfully answered.
    """
    spec = form_field.spec
    handler = SHAPE_HANDLERS.get(spec.value_shape)
    if handler is None:
        return None

    schema: Dict[str, Any] = handler.schema()
    if spec.format:
        schema["format"] = spec.format
    if spec.requires_options:
        choices = list(form_field.options)
        if spec.value_shape is ValueShape.STRING_LIST:
            schema["items"] = {"type": "string", "enum": choices} if choices else False
        elif choices:
            schema["enum"] = choices
        else:
            return False
    return schema


def serialize_value(form_field: FormField, value: Any) -> Any:
    """Normalize a raw captured value into the field's persisted shape.

    Values that cannot be normalized are returned unchanged so that
    validation reports them.
    """
    handler = SHAPE_HANDLERS.get(form_field.spec.value_shape)
    if handler is None or value is None:
        return None
    return handler.serialize(value)


def render_field(form_field: FormField) -> FieldRendering:
    """Derive the rendering of a single field from the kind table."""
    spec = form_field.spec
    return FieldRendering(
        field_id=form_field.id,
        kind=form_field.kind,
        widget=spec.widget,
        label=form_field.label,
        value_shape=spec.value_shape,
        required=form_field.required and spec.capturable,
        placeholder=form_field.placeholder if spec.supports_placeholder else None,
        description=form_field.description,
        choices=list(form_field.options) if spec.requires_options else None,
        schema=field_schema(form_field),
        default_value=form_field.default_value if spec.capturable else None,
    )


__all__ = [
    "SchemaFragment",
    "ShapeHandler",
    "SHAPE_HANDLERS",
    "FieldRendering",
    "is_blank",
    "field_schema",
    "serialize_value",
    "render_field",
]
