"""
Error taxonomy for the work order engine.

The request layer translates these into HTTP responses (see cafm.main).
"""
from typing import Optional


class WorkOrderError(Exception):
    """Base class for all work order engine errors."""

    error_code = "WORK_ORDER_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(WorkOrderError):
    """Referenced record does not exist or belongs to another tenant."""

    error_code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class InvalidStateTransition(WorkOrderError):
    """Attempted transition is not allowed from the current status."""

    error_code = "INVALID_STATE_TRANSITION"

    def __init__(self, source, target, action: Optional[str] = None):
        source_name = getattr(source, "value", source)
        target_name = getattr(target, "value", target)
        if source == target and action:
            # Mutation attempted on a closed work order, no status change involved
            message = f"Cannot {action} work order in status {source_name}"
        else:
            message = f"Cannot transition from {source_name} to {target_name}"
            if action:
                message = f"{message} ({action})"
        super().__init__(message)
        self.source = source
        self.target = target
        self.action = action


class InvalidAssignment(WorkOrderError):
    """User is not a technician or is not available for assignment."""

    error_code = "INVALID_ASSIGNMENT"

    def __init__(self, technician_id, reason: str):
        super().__init__(f"Cannot assign technician {technician_id}: {reason}")
        self.technician_id = technician_id
        self.reason = reason


class ConcurrentModification(WorkOrderError):
    """Optimistic-lock conflict; the caller should re-fetch and retry."""

    error_code = "CONCURRENT_MODIFICATION"

    def __init__(self, work_order_id=None):
        target = f"Work order {work_order_id}" if work_order_id is not None else "Work order"
        super().__init__(f"{target} was modified by another request")
        self.work_order_id = work_order_id


class NoCapacityAvailable(WorkOrderError):
    """Auto-schedule found no eligible technician; nothing was changed."""

    error_code = "NO_CAPACITY_AVAILABLE"

    def __init__(self, company_id):
        super().__init__(f"No available technicians for company {company_id}")
        self.company_id = company_id


class InvalidInput(WorkOrderError, ValueError):
    """Argument failed validation (missing reason, out-of-range value, ...)."""

    error_code = "INVALID_INPUT"
