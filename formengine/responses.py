"""Reading back submissions: display rows, filtering and CSV export."""

import csv
import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, TextIO

from formengine.models import FormSubmission, FormTemplate
from formengine.types import FieldKind, SubmissionStatus


@dataclass(frozen=True)
class ResponseRow:
    """One line of a submission shown against its template.

    Attributes:
        label: Field label (or heading text for section rows)
        value: Display text, empty for section rows
        field_id: Id of the field the row belongs to
        is_section: Whether the row is a heading
        is_link: Whether ``value`` is an upload reference
    """
    label: str
    value: str
    field_id: str
    is_section: bool = False
    is_link: bool = False


def display_value(value: Any) -> str:
    """Render a stored answer as text.

    Examples:
        >>> display_value(["Seed", "Growth"])
        'Seed, Growth'
        >>> display_value(12)
        '12'
    """
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value)
    return str(value)


def describe_responses(template: Optional[FormTemplate], submission: FormSubmission) -> List[ResponseRow]:
    """Pair a submission's answers with its template's fields, in form order.

    Headings become section rows and unanswered fields are skipped. Without a
    template every stored answer is listed under its field id.
    """
    if template is None:
        return [
            ResponseRow(label=field_id, value=display_value(value), field_id=field_id)
            for field_id, value in submission.responses.items()
        ]

    rows: List[ResponseRow] = []
    for form_field in template.fields:
        if form_field.is_heading:
            rows.append(ResponseRow(label=form_field.label, value="", field_id=form_field.id, is_section=True))
            continue
        if form_field.id not in submission.responses:
            continue
        value = submission.responses[form_field.id]
        rows.append(
            ResponseRow(
                label=form_field.label,
                value=display_value(value),
                field_id=form_field.id,
                is_link=form_field.kind is FieldKind.FILE and isinstance(value, str),
            )
        )
    return rows


def filter_submissions(
    submissions: Iterable[FormSubmission],
    status: Optional[SubmissionStatus] = None,
    search: Optional[str] = None,
) -> List[FormSubmission]:
    """Keep submissions with the given status whose form title or submitter matches ``search``."""
    needle = search.strip().lower() if search else ""
    result: List[FormSubmission] = []
    for submission in submissions:
        if status is not None and submission.status is not SubmissionStatus(status):
            continue
        if needle:
            haystack = (
                submission.form_title,
                submission.submitted_by.name or "",
                submission.submitted_by.email or "",
            )
            if not any(needle in text.lower() for text in haystack):
                continue
        result.append(submission)
    return result


def group_by_status(submissions: Sequence[FormSubmission]) -> Dict[str, List[FormSubmission]]:
    """Submissions bucketed by review status, plus an "all" bucket."""
    groups: Dict[str, List[FormSubmission]] = {s.value: [] for s in SubmissionStatus}
    for submission in submissions:
        groups[submission.status.value].append(submission)
    groups["all"] = list(submissions)
    return groups


def _cell(value: Any) -> Any:
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(list(value) if isinstance(value, tuple) else value)
    if value is None:
        return ""
    return value


def submission_rows(
    submissions: Iterable[FormSubmission],
    template: Optional[FormTemplate] = None,
) -> List[Dict[str, Any]]:
    """Flatten submissions into one dict per submission for tabular export.

    Answers go in ``field_<id>`` columns: one per non-heading template field
    when a template is given, else one per stored answer.
    """
    rows: List[Dict[str, Any]] = []
    for submission in submissions:
        row: Dict[str, Any] = {
            "id": submission.id or "",
            "formTitle": submission.form_title,
            "submitter_name": submission.submitted_by.name or "",
            "submitter_email": submission.submitted_by.email or "",
            "submittedAt": submission.submitted_at.isoformat(),
            "status": submission.status.value,
        }
        if template is not None:
            for form_field in template.fields:
                if form_field.capturable:
                    row[f"field_{form_field.id}"] = _cell(submission.responses.get(form_field.id))
        else:
            for field_id, value in submission.responses.items():
                row[f"field_{field_id}"] = _cell(value)
        rows.append(row)
    return rows


def write_csv(rows: Sequence[Dict[str, Any]], fp: TextIO) -> int:
    """Write export rows as CSV with a header; returns the number of data rows."""
    columns: List[str] = []
    for row in rows:
        for key in row:
            if key not in columns:
                columns.append(key)
    writer = csv.DictWriter(fp, fieldnames=columns, restval="")
    writer.writeheader()
    writer.writerows(rows)
    return len(rows)


__all__ = [
    "ResponseRow",
    "display_value",
    "describe_responses",
    "filter_submissions",
    "group_by_status",
    "submission_rows",
    "write_csv",
]
