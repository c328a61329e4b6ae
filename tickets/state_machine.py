"""
Ticket status state machine.

Board columns: todo -> inprogress -> review -> done. Any status may be
set from any other (moving a card back is allowed); the derived
timestamps follow these rules whenever the status actually changes:

- entering inprogress with no started_at stamps started_at
- entering done with no completed_at stamps completed_at
- any status other than done clears completed_at

started_at is never cleared. A write that keeps the same status has no
side effects.
"""
from dataclasses import dataclass, replace
from typing import Optional, Tuple
import logging

from django.utils import timezone

from core.exceptions import ValidationFailed

logger = logging.getLogger("tracker.tickets")


STATUS_TODO = "todo"
STATUS_INPROGRESS = "inprogress"
STATUS_REVIEW = "review"
STATUS_DONE = "done"

STATUS_CHOICES = [
    (STATUS_TODO, "To do"),
    (STATUS_INPROGRESS, "In progress"),
    (STATUS_REVIEW, "Review"),
    (STATUS_DONE, "Done"),
]

STATUSES = tuple(value for value, _ in STATUS_CHOICES)

# from_status -> allowed to_statuses. Every move is currently allowed.
ALLOWED_TRANSITIONS = {
    status: frozenset(STATUSES) for status in STATUSES
}

STATUS_CHANGED = "ticket.status_changed"


@dataclass(frozen=True)
class StatusTimestamps:
    status: Optional[str]
    started_at: Optional[object] = None
    completed_at: Optional[object] = None


@dataclass(frozen=True)
class TransitionResult:
    state: StatusTimestamps
    events: Tuple[str, ...] = ()

    @property
    def changed(self) -> bool:
        return STATUS_CHANGED in self.events


def is_valid_status(status) -> bool:
    return status in STATUSES


def can_transition(current_status, new_status) -> Tuple[bool, str]:
    """
    Check if a ticket can move from current_status to new_status.

    Returns (can_transition: bool, reason: str)
    """
    if not is_valid_status(new_status):
        return False, f"Invalid status: {new_status}"

    if current_status is None or new_status == current_status:
        return True, ""

    if new_status not in ALLOWED_TRANSITIONS.get(current_status, ()):
        return False, f"Cannot transition from '{current_status}' to '{new_status}'"

    return True, ""


def transition(current: StatusTimestamps, requested_status: str, now=None) -> TransitionResult:
    """
    Pure transition: (stored state, requested status) -> (new state, events).

    A current.status of None means the ticket is being created, which
    counts as a change.
    """
    can, reason = can_transition(current.status, requested_status)
    if not can:
        raise ValidationFailed(reason)

    if requested_status == current.status:
        return TransitionResult(state=current)

    now = now or timezone.now()
    started_at = current.started_at
    completed_at = current.completed_at

    if requested_status == STATUS_INPROGRESS and started_at is None:
        started_at = now

    if requested_status == STATUS_DONE:
        if completed_at is None:
            completed_at = now
    else:
        completed_at = None

    state = replace(
        current,
        status=requested_status,
        started_at=started_at,
        completed_at=completed_at,
    )
    return TransitionResult(state=state, events=(STATUS_CHANGED,))


def apply_status_transition(ticket, requested_status, now=None):
    """
    Apply a requested status to a ticket instance (not saved).

    `ticket._state.adding` tells creation apart from an update, so a new
    ticket created straight into inprogress or done gets its timestamps.

    Returns (ticket, changed: bool)
    """
    current_status = None if ticket._state.adding else ticket.status
    current = StatusTimestamps(
        status=current_status,
        started_at=ticket.started_at,
        completed_at=ticket.completed_at,
    )

    result = transition(current, requested_status, now=now)
    if not result.changed:
        return ticket, False

    ticket.status = result.state.status
    ticket.started_at = result.state.started_at
    ticket.completed_at = result.state.completed_at

    if current_status == STATUS_DONE:
        logger.info(
            f"Ticket reopened: ticket={ticket.pk}, from={current_status}, to={ticket.status}"
        )
    elif current_status is not None:
        logger.debug(
            f"Ticket status transition: ticket={ticket.pk}, from={current_status}, to={ticket.status}"
        )

    return ticket, True
