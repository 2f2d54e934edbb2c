"""
Checklist tasks of a work order.
"""
from typing import Optional

from cafm.core.clock import Clock, utcnow
from cafm.core.exceptions import InvalidInput
from cafm.models.work_order import WorkOrder, WorkOrderTask, TASK_COMPLETED, TASK_PENDING
from cafm.services.state_machine import WorkOrderStateMachine, ensure_open


class TaskLedger:
    """
    Adds and toggles tasks on a loaded work order. Every change recomputes the
    parent's completion percentage on the same instance, so one commit covers
    both.
    """

    def __init__(self, state_machine: WorkOrderStateMachine, clock: Clock = utcnow):
        self.state_machine = state_machine
        self.clock = clock

    def add(
        self,
        work_order: WorkOrder,
        description: str,
        created_by_id: Optional[int] = None,
    ) -> WorkOrderTask:
        ensure_open(work_order, "add_task")
        if not description or not description.strip():
            raise InvalidInput("Task description is required")

        sequence = max((t.sequence for t in work_order.tasks), default=0) + 1
        task = WorkOrderTask(
            description=description.strip(),
            sequence=sequence,
            status=TASK_PENDING,
            created_by_id=created_by_id,
        )
        work_order.tasks.append(task)
        self.state_machine.recompute_completion(work_order)
        return task

    def set_status(
        self,
        work_order: WorkOrder,
        task: WorkOrderTask,
        completed: bool,
        user_id: Optional[int] = None,
    ) -> WorkOrderTask:
        ensure_open(work_order, "update_task")

        if completed:
            if not task.is_completed:
                task.completed_at = self.clock()
                task.completed_by_id = user_id
            task.status = TASK_COMPLETED
        else:
            task.status = TASK_PENDING
            task.completed_at = None
            task.completed_by_id = None
        task.updated_by_id = user_id

        self.state_machine.recompute_completion(work_order)
        return task
