"""Partition a flat field list into wizard steps.

Heading fields are section boundaries: each heading opens a new step unless
the step being accumulated is still empty, so a leading heading never
produces an empty first step. Partitioning is lossless; concatenating the
steps in order gives back the original field list.

Example:
    >>> from formengine.fields import FormField
    >>> from formengine.types import FieldKind
    >>> fields = [
    ...     FormField(id="h1", kind=FieldKind.HEADING, label="Intro"),
    ...     FormField(id="a"),
    ...     FormField(id="h2", kind=FieldKind.HEADING, label="Details"),
    ...     FormField(id="b"),
    ... ]
    >>> [[f.id for f in step] for step in partition(fields)]
    [['h1', 'a'], ['h2', 'b']]
    >>> [s.title for s in build_steps(fields)]
    ['Intro', 'Details']
"""

from dataclasses import dataclass
from typing import List, Sequence

from formengine.fields import FormField


@dataclass(frozen=True)
class Step:
    """One wizard step: a contiguous run of fields.

    Attributes:
        index: Zero-based position of the step
        title: Label of the step's heading, or "Step N"
        fields: Fields shown on this step, in template order
    """
    index: int
    title: str
    fields: List[FormField]

    @property
    def field_ids(self) -> List[str]:
        return [f.id for f in self.fields]


def partition(fields: Sequence[FormField]) -> List[List[FormField]]:
    """Split fields into steps at heading boundaries.

    Returns an empty list for an empty input and a single step when there
    are no headings.
    """
    steps: List[List[FormField]] = []
    current: List[FormField] = []
    for form_field in fields:
        if form_field.is_heading and current:
            steps.append(current)
            current = []
        current.append(form_field)
    if current:
        steps.append(current)
    return steps


def step_title(step: Sequence[FormField], index: int) -> str:
    """Title of a step: its first heading's label, else "Step N" (1-based)."""
    for form_field in step:
        if form_field.is_heading:
            return form_field.label
    return f"Step {index + 1}"


def build_steps(fields: Sequence[FormField]) -> List[Step]:
    """Partition fields and attach each step's index and title."""
    return [
        Step(index=index, title=step_title(step, index), fields=step)
        for index, step in enumerate(partition(fields))
    ]


__all__ = [
    "Step",
    "partition",
    "step_title",
    "build_steps",
]
