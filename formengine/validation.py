"""JSON Schema validation engine for captured form values.

This module provides a ValidationEngine that compiles the rule sets of a group
of fields (typically one wizard step) into a single JSON Schema and checks
captured values against it, producing structured FieldError results keyed by
field id.

Blank values (None, whitespace-only strings, empty lists) are treated as
absent, so a required field with a blank value fails with REQUIRED while an
optional one is skipped. Format rules such as ``email`` apply whenever a value
is present, regardless of ``required``.
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence

import jsonschema
from jsonschema import Draft7Validator, FormatChecker

from formengine.errors import FieldError
from formengine.fields import FormField
from formengine.renderer import field_schema, is_blank, serialize_value
from formengine.types import FieldErrorCode

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

FORMAT_CHECKER = FormatChecker()


@FORMAT_CHECKER.checks("email")
def _is_email(instance: Any) -> bool:
    if not isinstance(instance, str):
        return True
    return bool(EMAIL_PATTERN.match(instance))


@FORMAT_CHECKER.checks("date", raises=ValueError)
def _is_iso_date(instance: Any) -> bool:
    if not isinstance(instance, str):
        return True
    date.fromisoformat(instance)
    return True


@dataclass(frozen=True)
class ValidationResult:
    """Result of validating captured values for a group of fields.

    Attributes:
        is_valid: Whether every field passed its rules
        errors: List of field-level validation errors (empty if valid)
        data: The serialized, non-blank values that were validated
        missing_fields: Ids of required fields with no value
        invalid_fields: Ids of fields whose value broke a rule
    """
    is_valid: bool
    errors: List[FieldError]
    data: Optional[Dict[str, Any]] = None
    missing_fields: Optional[List[str]] = None
    invalid_fields: Optional[List[str]] = None

    @property
    def field_ids(self) -> List[str]:
        """Ids of all failing fields, without duplicates."""
        return list(dict.fromkeys(e.field_id for e in self.errors))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "isValid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
        }
        if self.data is not None:
            result["data"] = self.data
        if self.missing_fields is not None:
            result["missingFields"] = self.missing_fields
        if self.invalid_fields is not None:
            result["invalidFields"] = self.invalid_fields
        return result


class ValidationEngine:
    """Validation engine for the captured values of a set of fields.

    Wraps the jsonschema library and translates validation errors into
    FieldError objects keyed by field id with messages fit for display.
    Heading fields are ignored.

    Attributes:
        fields: Capturable fields covered by this engine, in order
        schema: The compiled Draft 7 object schema
        validator: The underlying jsonschema validator instance

    Examples:
        >>> from formengine.types import FieldKind
        >>> engine = ValidationEngine([FormField(id="name", required=True)])
        >>> engine.validate({"name": "Alice"}).is_valid
        True
        >>> engine.validate({"name": ""}).errors[0].code
        <FieldErrorCode.REQUIRED: 'required'>
    """

    def __init__(self, fields: Sequence[FormField]) -> None:
        """Compile the rule sets of the given fields.

        Raises:
            jsonschema.SchemaError: If a field produced an invalid schema
        """
        self.fields: List[FormField] = [f for f in fields if f.capturable]
        self._by_id: Dict[str, FormField] = {f.id: f for f in self.fields}
        self._index: Dict[str, int] = {f.id: i for i, f in enumerate(self.fields)}
        # Option fields with no options accept no answer; checked directly in validate().
        self._optionless: List[str] = [f.id for f in self.fields if f.requires_options and not f.options]
        self.schema: Dict[str, Any] = {
            "type": "object",
            "properties": {
                f.id: field_schema(f) for f in self.fields if f.id not in self._optionless
            },
            "required": [f.id for f in self.fields if f.required],
        }
        Draft7Validator.check_schema(self.schema)
        self.validator = Draft7Validator(self.schema, format_checker=FORMAT_CHECKER)

    def prepare(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        """Serialize the covered fields' values, dropping blank ones."""
        prepared: Dict[str, Any] = {}
        for form_field in self.fields:
            raw = values.get(form_field.id)
            if is_blank(raw):
                continue
            value = serialize_value(form_field, raw)
            if not is_blank(value):
                prepared[form_field.id] = value
        return prepared

    def validate(self, values: Mapping[str, Any]) -> ValidationResult:
        """Validate captured values against the compiled rules.

        Args:
            values: Field id to raw captured value; ids of other fields are ignored

        Returns:
            ValidationResult with is_valid flag, errors list, and serialized data
        """
        data = self.prepare(values)
        field_errors: List[FieldError] = [
            self._required_error(field_id)
            for field_id in self.schema["required"]
            if field_id not in data
        ]
        field_errors.extend(
            self._no_options_error(field_id, data[field_id])
            for field_id in self._optionless
            if field_id in data
        )
        field_errors.extend(
            self._translate_error(error)
            for error in self.validator.iter_errors(data)
            if error.validator != "required"
        )
        field_errors.sort(key=lambda e: self._order_of(e.field_id))

        if not field_errors:
            return ValidationResult(
                is_valid=True,
                errors=[],
                data=data,
                missing_fields=[],
                invalid_fields=[],
            )

        missing_fields: List[str] = []
        invalid_fields: List[str] = []

        for field_error in field_errors:
            if field_error.code == FieldErrorCode.REQUIRED:
                missing_fields.append(field_error.field_id)
            elif field_error.field_id not in invalid_fields:
                invalid_fields.append(field_error.field_id)

        return ValidationResult(
            is_valid=False,
            errors=field_errors,
            data=data,
            missing_fields=missing_fields,
            invalid_fields=invalid_fields,
        )

    def _order_of(self, field_id: str) -> int:
        return self._index.get(field_id, len(self.fields))

    def _label_of(self, field_id: str) -> str:
        form_field = self._by_id.get(field_id)
        return form_field.label if form_field is not None and form_field.label else field_id

    @staticmethod
    def _field_id_of(error: jsonschema.ValidationError) -> str:
        return str(error.absolute_path[0]) if error.absolute_path else ""

    def _required_error(self, field_id: str) -> FieldError:
        return FieldError(
            field_id=field_id,
            code=FieldErrorCode.REQUIRED,
            message=f"'{self._label_of(field_id)}' is required",
            expected="required field",
            received=None,
        )

    def _no_options_error(self, field_id: str, value: Any) -> FieldError:
        return FieldError(
            field_id=field_id,
            code=FieldErrorCode.NO_OPTIONS,
            message=f"'{self._label_of(field_id)}' has no options to choose from",
            expected="configured options",
            received=value,
        )

    def _translate_error(self, error: jsonschema.ValidationError) -> FieldError:
        """Translate a jsonschema ValidationError to a FieldError.

        Missing required fields and option fields without options are
        reported by validate() itself and never reach this method.

        Error mapping:
            - 'type' errors -> INVALID_TYPE
            - 'format' errors -> INVALID_FORMAT
            - 'enum' errors -> INVALID_VALUE
            - 'minLength' errors -> TOO_SHORT
            - 'uniqueItems' errors -> DUPLICATE_VALUE
            - Other errors -> CUSTOM
        """
        field_id = self._field_id_of(error)
        label = self._label_of(field_id)

        if error.validator == "type":
            expected_type = error.validator_value
            received_type = type(error.instance).__name__
            return FieldError(
                field_id=field_id,
                code=FieldErrorCode.INVALID_TYPE,
                message=f"'{label}' has invalid type. Expected {expected_type}, got {received_type}",
                expected=expected_type,
                received=received_type,
            )

        if error.validator == "format":
            expected_format = error.validator_value
            if expected_format == "email":
                message = f"Please enter a valid email address for '{label}'"
            else:
                message = f"'{label}' has invalid format. Expected format: {expected_format}"
            return FieldError(
                field_id=field_id,
                code=FieldErrorCode.INVALID_FORMAT,
                message=message,
                expected=expected_format,
                received=error.instance,
            )

        if error.validator == "enum":
            expected_values = error.validator_value
            return FieldError(
                field_id=field_id,
                code=FieldErrorCode.INVALID_VALUE,
                message=f"'{label}' has invalid value. Must be one of: {expected_values}",
                expected=expected_values,
                received=error.instance,
            )

        if error.validator == "minLength":
            return FieldError(
                field_id=field_id,
                code=FieldErrorCode.TOO_SHORT,
                message=f"'{label}' is too short. Minimum length: {error.validator_value}",
                expected=f"minimum {error.validator_value} characters",
                received=f"{len(error.instance) if error.instance else 0} characters",
            )

        if error.validator == "uniqueItems":
            return FieldError(
                field_id=field_id,
                code=FieldErrorCode.DUPLICATE_VALUE,
                message=f"'{label}' contains the same choice more than once",
                expected="unique choices",
                received=error.instance,
            )

        return FieldError(
            field_id=field_id,
            code=FieldErrorCode.CUSTOM,
            message=f"'{label}' validation failed: {error.message}",
            expected=error.validator_value,
            received=error.instance,
        )


def validate_fields(fields: Sequence[FormField], values: Mapping[str, Any]) -> ValidationResult:
    """Convenience wrapper: validate ``values`` for ``fields`` in one call."""
    return ValidationEngine(fields).validate(values)


__all__ = [
    "FORMAT_CHECKER",
    "ValidationEngine",
    "ValidationResult",
    "validate_fields",
]
