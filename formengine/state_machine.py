"""Wizard state machine for form-filling sessions.

A filling session is always in one of three states:

    editing(step=i) --move_to_step--> editing(step=j)
    editing --submit--> submitting --success--> submitted
                                   --failure--> editing

``submitted`` is terminal; starting over means creating a fresh machine.
Step moves are only allowed while editing, and every transition is recorded
as a FormEvent and optionally dispatched through an EventEmitter.

Usage:
    >>> sm = WizardStateMachine(session_id="fill_123", step_count=3)
    >>> sm.state
    <WizardState.EDITING: 'editing'>
    >>> sm.move_to_step(1)
    >>> sm.step
    1
    >>> sm.transition_to(WizardState.SUBMITTING)
    >>> sm.can_transition_to(WizardState.SUBMITTED)
    True
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from formengine.errors import FormEngineError
from formengine.events import EventEmitter, FormEvent, make_event
from formengine.types import EventType, Submitter, WizardState

logger = logging.getLogger(__name__)


class InvalidStateTransitionError(FormEngineError):
    """Raised when attempting an invalid state transition.

    Attributes:
        current_state: The current state before the attempted transition
        target_state: The target state that was attempted
        message: Human-readable error message
    """

    kind = "invalid_transition"

    def __init__(self, current_state: WizardState, target_state: WizardState, message: str):
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(message)


# Map target states to their corresponding event types
STATE_TO_EVENT_TYPE: Dict[WizardState, EventType] = {
    WizardState.SUBMITTING: EventType.SUBMISSION_STARTED,
    WizardState.SUBMITTED: EventType.SUBMISSION_SUBMITTED,
    WizardState.EDITING: EventType.SUBMISSION_FAILED,
}


VALID_TRANSITIONS: Dict[WizardState, Set[WizardState]] = {
    WizardState.EDITING: {WizardState.SUBMITTING},
    WizardState.SUBMITTING: {WizardState.EDITING, WizardState.SUBMITTED},
    # Terminal state - no transitions allowed
    WizardState.SUBMITTED: set(),
}


@dataclass
class WizardStateMachine:
    """State machine over the step index of a filling session.

    Attributes:
        session_id: Identifier of the filling session
        step_count: Number of wizard steps
        state: Current lifecycle state
        step: Current zero-based step index
        emitter: Optional emitter that receives every recorded event
    """

    session_id: str
    step_count: int
    state: WizardState = WizardState.EDITING
    step: int = 0
    emitter: Optional[EventEmitter] = field(default=None, repr=False)
    _events: List[FormEvent] = field(default_factory=list, init=False, repr=False)

    @property
    def is_last_step(self) -> bool:
        return self.step_count > 0 and self.step == self.step_count - 1

    def can_transition_to(self, target_state: WizardState) -> bool:
        """Check if transition to target state is valid."""
        return target_state in VALID_TRANSITIONS.get(self.state, set())

    def transition_to(
        self,
        target_state: WizardState,
        actor: Optional[Submitter] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Transition to a new state and record a transition event.

        Raises:
            InvalidStateTransitionError: If the transition is not allowed
        """
        if not self.can_transition_to(target_state):
            raise InvalidStateTransitionError(
                current_state=self.state,
                target_state=target_state,
                message=(
                    f"Invalid state transition: cannot transition from "
                    f"'{self.state.value}' to '{target_state.value}'. "
                    f"Valid transitions from '{self.state.value}' are: "
                    f"{', '.join(sorted(s.value for s in VALID_TRANSITIONS[self.state]))}"
                    if VALID_TRANSITIONS[self.state]
                    else f"Invalid state transition: '{self.state.value}' is a terminal state, "
                    f"no transitions are allowed."
                ),
            )

        old_state = self.state
        self.state = target_state
        logger.debug("Session %s: %s -> %s", self.session_id, old_state.value, target_state.value)
        self.record(
            STATE_TO_EVENT_TYPE[target_state],
            actor,
            {"fromState": old_state.value, "toState": target_state.value, **(payload or {})},
        )

    def move_to_step(self, index: int, actor: Optional[Submitter] = None) -> None:
        """Move to another step while editing.

        Raises:
            InvalidStateTransitionError: If the session is not editing
            IndexError: If ``index`` is outside ``[0, step_count)``
        """
        if self.state is not WizardState.EDITING:
            raise InvalidStateTransitionError(
                current_state=self.state,
                target_state=WizardState.EDITING,
                message=f"Cannot change steps while the session is '{self.state.value}'",
            )
        if not 0 <= index < self.step_count:
            raise IndexError(f"Step {index} is out of range for {self.step_count} step(s)")

        old_step = self.step
        self.step = index
        event_type = EventType.STEP_ADVANCED if index > old_step else EventType.STEP_RETREATED
        self.record(event_type, actor, {"fromStep": old_step, "toStep": index})

    def is_terminal(self) -> bool:
        """Check if the current state is terminal."""
        return len(VALID_TRANSITIONS[self.state]) == 0

    def record(
        self,
        event_type: EventType,
        actor: Optional[Submitter] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> FormEvent:
        """Append an event to this session's stream and dispatch it."""
        event = make_event(event_type, self.session_id, actor=actor, payload=payload)
        self._events.append(event)
        if self.emitter is not None:
            self.emitter.emit(event)
        return event

    def get_events(self) -> List[FormEvent]:
        """Get all events recorded by this state machine, in order."""
        return list(self._events)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the state machine to a dictionary.

        Examples:
            >>> WizardStateMachine(session_id="fill_1", step_count=2).to_dict()
            {'sessionId': 'fill_1', 'stepCount': 2, 'state': 'editing', 'step': 0}
        """
        return {
            "sessionId": self.session_id,
            "stepCount": self.step_count,
            "state": self.state.value,
            "step": self.step,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WizardStateMachine":
        """Deserialize a state machine from a dictionary."""
        return cls(
            session_id=data["sessionId"],
            step_count=data["stepCount"],
            state=WizardState(data["state"]),
            step=data.get("step", 0),
        )


__all__ = [
    "WizardStateMachine",
    "InvalidStateTransitionError",
    "VALID_TRANSITIONS",
]
