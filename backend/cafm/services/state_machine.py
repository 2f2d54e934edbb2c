"""
Work order lifecycle state machine.

Both the explicit actions and the progress-driven status changes are plain
lookup tables, so every (status, trigger) pair has exactly one answer: a
target status, or InvalidStateTransition.
"""
import enum
import logging
from typing import Dict, NamedTuple, Optional, Tuple

from cafm.core.clock import Clock, utcnow
from cafm.core.exceptions import InvalidAssignment, InvalidInput, InvalidStateTransition
from cafm.models.work_order import WorkOrder, WorkOrderStatus
from cafm.services import costs
from cafm.services.directory import TechnicianInfo

logger = logging.getLogger(__name__)

S = WorkOrderStatus


class WorkOrderAction(str, enum.Enum):
    ASSIGN = "assign"
    START = "start"
    HOLD = "hold"
    RESUME = "resume"
    COMPLETE = "complete"
    VERIFY = "verify"
    CANCEL = "cancel"


A = WorkOrderAction

TRANSITIONS: Dict[Tuple[WorkOrderStatus, WorkOrderAction], WorkOrderStatus] = {
    (S.PENDING, A.ASSIGN): S.ASSIGNED,
    (S.ASSIGNED, A.ASSIGN): S.ASSIGNED,
    (S.ASSIGNED, A.START): S.IN_PROGRESS,
    (S.IN_PROGRESS, A.HOLD): S.ON_HOLD,
    (S.ON_HOLD, A.RESUME): S.IN_PROGRESS,
    (S.IN_PROGRESS, A.COMPLETE): S.COMPLETED,
    (S.COMPLETED, A.VERIFY): S.VERIFIED,
    (S.PENDING, A.CANCEL): S.CANCELLED,
    (S.ASSIGNED, A.CANCEL): S.CANCELLED,
    (S.IN_PROGRESS, A.CANCEL): S.CANCELLED,
    (S.ON_HOLD, A.CANCEL): S.CANCELLED,
}

# Status each action would lead to, used to describe rejected attempts
ACTION_TARGETS: Dict[WorkOrderAction, WorkOrderStatus] = {
    A.ASSIGN: S.ASSIGNED,
    A.START: S.IN_PROGRESS,
    A.HOLD: S.ON_HOLD,
    A.RESUME: S.IN_PROGRESS,
    A.COMPLETE: S.COMPLETED,
    A.VERIFY: S.VERIFIED,
    A.CANCEL: S.CANCELLED,
}


class ProgressBand(str, enum.Enum):
    """Which part of the 0-100 range a progress update falls in."""
    NONE = "NONE"  # 0
    PARTIAL = "PARTIAL"  # 1-99
    FULL = "FULL"  # 100

    @classmethod
    def of(cls, percentage: int) -> "ProgressBand":
        if percentage <= 0:
            return cls.NONE
        if percentage >= 100:
            return cls.FULL
        return cls.PARTIAL


PROGRESS_RULES: Dict[Tuple[WorkOrderStatus, ProgressBand], WorkOrderStatus] = {
    (S.PENDING, ProgressBand.NONE): S.PENDING,
    (S.PENDING, ProgressBand.PARTIAL): S.IN_PROGRESS,
    (S.PENDING, ProgressBand.FULL): S.COMPLETED,
    (S.ASSIGNED, ProgressBand.NONE): S.ASSIGNED,
    (S.ASSIGNED, ProgressBand.PARTIAL): S.IN_PROGRESS,
    (S.ASSIGNED, ProgressBand.FULL): S.COMPLETED,
    (S.IN_PROGRESS, ProgressBand.NONE): S.IN_PROGRESS,
    (S.IN_PROGRESS, ProgressBand.PARTIAL): S.IN_PROGRESS,
    (S.IN_PROGRESS, ProgressBand.FULL): S.COMPLETED,
    (S.ON_HOLD, ProgressBand.NONE): S.ON_HOLD,
    (S.ON_HOLD, ProgressBand.PARTIAL): S.ON_HOLD,
}

_BAND_TARGETS = {
    ProgressBand.NONE: S.IN_PROGRESS,
    ProgressBand.PARTIAL: S.IN_PROGRESS,
    ProgressBand.FULL: S.COMPLETED,
}


class Transition(NamedTuple):
    from_status: WorkOrderStatus
    to_status: WorkOrderStatus

    @property
    def changed(self) -> bool:
        return self.from_status != self.to_status


def transition(status: WorkOrderStatus, action: WorkOrderAction) -> WorkOrderStatus:
    """Target status for an action, or InvalidStateTransition."""
    try:
        return TRANSITIONS[(status, action)]
    except KeyError:
        raise InvalidStateTransition(status, ACTION_TARGETS[action], action.value) from None


def progress_target(status: WorkOrderStatus, percentage: int) -> WorkOrderStatus:
    band = ProgressBand.of(percentage)
    try:
        return PROGRESS_RULES[(status, band)]
    except KeyError:
        raise InvalidStateTransition(status, _BAND_TARGETS[band], "update_progress") from None


def ensure_open(work_order: WorkOrder, action: str) -> None:
    """Reject task/material changes on completed, verified or cancelled orders."""
    if work_order.status.is_closed:
        raise InvalidStateTransition(work_order.status, work_order.status, action)


def completion_from_tasks(completed: int, total: int) -> int:
    return (completed * 100) // total


def _require_reason(reason: Optional[str], action: str) -> str:
    if reason is None or not reason.strip():
        raise InvalidInput(f"A reason is required to {action} a work order")
    return reason.strip()


def _append_note(existing: Optional[str], note: str) -> str:
    return f"{existing}\n{note}" if existing else note


class WorkOrderStateMachine:
    """
    Applies lifecycle actions to a loaded WorkOrder. No I/O happens here; the
    caller persists the instance and records the returned Transition.
    """

    def __init__(self, clock: Clock = utcnow):
        self.clock = clock

    def _move(self, work_order: WorkOrder, action: WorkOrderAction) -> Transition:
        source = work_order.status
        target = transition(source, action)
        work_order.status = target
        return Transition(source, target)

    def assign(
        self,
        work_order: WorkOrder,
        technician: TechnicianInfo,
        assigned_by_id: Optional[int] = None,
    ) -> Transition:
        target = transition(work_order.status, A.ASSIGN)
        if not technician.is_technician:
            raise InvalidAssignment(technician.id, "user is not a technician")
        if not technician.is_available:
            raise InvalidAssignment(technician.id, "technician is not available")

        source = work_order.status
        work_order.status = target
        work_order.assigned_to_id = technician.id
        work_order.assigned_by_id = assigned_by_id
        work_order.assignment_date = self.clock()
        return Transition(source, target)

    def start(self, work_order: WorkOrder, technician_id: int) -> Transition:
        result = self._move(work_order, A.START)
        self._mark_started(work_order)
        work_order.started_by_id = technician_id
        if work_order.assigned_to_id is None:
            work_order.assigned_to_id = technician_id
            work_order.assignment_date = self.clock()
        return result

    def hold(self, work_order: WorkOrder, reason: Optional[str]) -> Transition:
        transition(work_order.status, A.HOLD)
        reason = _require_reason(reason, "hold")
        result = self._move(work_order, A.HOLD)
        work_order.completion_notes = _append_note(work_order.completion_notes, f"On Hold: {reason}")
        return result

    def resume(self, work_order: WorkOrder) -> Transition:
        return self._move(work_order, A.RESUME)

    def complete(
        self,
        work_order: WorkOrder,
        hourly_rate: Optional[float] = None,
        notes: Optional[str] = None,
        actual_hours: Optional[float] = None,
        signature_url: Optional[str] = None,
    ) -> Transition:
        transition(work_order.status, A.COMPLETE)
        if actual_hours is not None and actual_hours < 0:
            raise InvalidInput("Actual hours cannot be negative")
        result = self._move(work_order, A.COMPLETE)
        self._finish(work_order, hourly_rate, actual_hours)
        if notes is not None:
            work_order.completion_notes = notes
        if signature_url is not None:
            work_order.signature_url = signature_url
        return result

    def verify(self, work_order: WorkOrder, verifier_id: int) -> Transition:
        result = self._move(work_order, A.VERIFY)
        work_order.verified_by_id = verifier_id
        work_order.verified_at = self.clock()
        return result

    def cancel(self, work_order: WorkOrder, reason: Optional[str]) -> Transition:
        transition(work_order.status, A.CANCEL)
        reason = _require_reason(reason, "cancel")
        result = self._move(work_order, A.CANCEL)
        work_order.actual_end = self.clock()
        work_order.completion_notes = f"Cancelled: {reason}"
        return result

    def update_progress(
        self,
        work_order: WorkOrder,
        percentage: int,
        notes: Optional[str] = None,
        actual_hours: Optional[float] = None,
        hourly_rate: Optional[float] = None,
    ) -> Transition:
        """
        Manual progress update. A positive value starts a pending or assigned
        order and 100 completes it; see PROGRESS_RULES.

        When the order has tasks, the task-derived percentage is used instead
        of the supplied one.
        """
        if percentage < 0 or percentage > 100:
            raise InvalidInput("Completion percentage must be between 0 and 100")
        if actual_hours is not None and actual_hours < 0:
            raise InvalidInput("Actual hours cannot be negative")

        if work_order.tasks:
            derived = completion_from_tasks(
                sum(1 for t in work_order.tasks if t.is_completed), len(work_order.tasks)
            )
            if derived != percentage:
                logger.info(
                    f"Work order {work_order.id} has tasks; using task progress {derived}% instead of {percentage}%"
                )
            percentage = derived

        source = work_order.status
        target = progress_target(source, percentage)

        if notes:
            stamp = self.clock().isoformat(timespec="seconds")
            work_order.completion_notes = _append_note(work_order.completion_notes, f"[{stamp}] {notes}")
        if actual_hours is not None:
            work_order.actual_hours = actual_hours

        work_order.completion_percentage = percentage
        if target in (S.IN_PROGRESS, S.COMPLETED):
            self._mark_started(work_order)
        if target == S.COMPLETED:
            self._finish(work_order, hourly_rate, actual_hours)
        work_order.status = target
        return Transition(source, target)

    def recompute_completion(self, work_order: WorkOrder) -> int:
        """Set completion percentage from the loaded tasks, if there are any."""
        if work_order.tasks:
            completed = sum(1 for t in work_order.tasks if t.is_completed)
            work_order.completion_percentage = completion_from_tasks(completed, len(work_order.tasks))
        return work_order.completion_percentage

    def _mark_started(self, work_order: WorkOrder) -> None:
        if work_order.actual_start is None:
            work_order.actual_start = self.clock()

    def _finish(
        self,
        work_order: WorkOrder,
        hourly_rate: Optional[float],
        actual_hours: Optional[float],
    ) -> None:
        work_order.completion_percentage = 100
        work_order.actual_end = self.clock()
        if actual_hours is not None:
            work_order.actual_hours = actual_hours
        else:
            work_order.actual_hours = work_order.calculate_actual_duration()

        labor = costs.labor_cost_for(work_order.actual_hours, hourly_rate)
        if labor is not None:
            work_order.labor_cost = labor
        costs.recompute(work_order)
