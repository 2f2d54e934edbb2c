"""
Test the work order state machine, ledgers and cost roll-up without a database
"""
from datetime import datetime, timedelta

import pytest

from cafm.core.exceptions import InvalidAssignment, InvalidInput, InvalidStateTransition
from cafm.models.work_order import WorkOrder, WorkOrderStatus, WorkOrderTask, TASK_COMPLETED
from cafm.services import costs
from cafm.services.directory import TechnicianInfo
from cafm.services.material_ledger import MaterialLedger
from cafm.services.state_machine import (
    TRANSITIONS,
    WorkOrderAction,
    WorkOrderStateMachine,
    completion_from_tasks,
    progress_target,
    transition,
)
from cafm.services.task_ledger import TaskLedger

from conftest import FrozenClock

S = WorkOrderStatus
A = WorkOrderAction

LEGAL = {
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

TECH = TechnicianInfo(id=7, hourly_rate=40.0, is_technician=True, is_available=True)


def make_order(status=S.PENDING, **kwargs) -> WorkOrder:
    fields = dict(
        id=1,
        company_id=1,
        work_order_number="WO-20240605-0001",
        title="Leaking tap",
        status=status,
        completion_percentage=0,
        actual_hours=0,
        labor_cost=0,
        material_cost=0,
        other_cost=0,
        total_cost=0,
        tasks=[],
        materials=[],
    )
    fields.update(kwargs)
    return WorkOrder(**fields)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 6, 5, 10, 0))


@pytest.fixture
def machine(clock):
    return WorkOrderStateMachine(clock)


class TestTransitionTable:
    """Test the (status, action) rule table."""

    @pytest.mark.parametrize("status", list(WorkOrderStatus))
    @pytest.mark.parametrize("action", list(WorkOrderAction))
    def test_every_pair_has_one_answer(self, status, action):
        """Test that each pair either has a target or is rejected."""
        if (status, action) in LEGAL:
            assert transition(status, action) == LEGAL[(status, action)]
        else:
            with pytest.raises(InvalidStateTransition) as exc_info:
                transition(status, action)
            assert exc_info.value.source == status

    def test_table_matches_lifecycle(self):
        """Test the rule table holds exactly the legal transitions."""
        assert TRANSITIONS == LEGAL

    @pytest.mark.parametrize("status", [S.VERIFIED, S.CANCELLED])
    def test_terminal_statuses_accept_nothing(self, status):
        """Test that verified and cancelled orders reject every action."""
        for action in WorkOrderAction:
            with pytest.raises(InvalidStateTransition):
                transition(status, action)


    @pytest.mark.parametrize("reason", [None, ""])
    @pytest.mark.parametrize("status", [S.COMPLETED, S.VERIFIED, S.CANCELLED])
    def test_cancel_closed_order_without_reason(self, machine, status, reason):
        """Test that the state check wins over the missing reason."""
        wo = make_order(status)
        with pytest.raises(InvalidStateTransition):
            machine.cancel(wo, reason)
        assert wo.status == status

    @pytest.mark.parametrize("reason", [None, ""])
    @pytest.mark.parametrize("status", [S.PENDING, S.ASSIGNED, S.COMPLETED, S.CANCELLED])
    def test_hold_illegal_status_without_reason(self, machine, status, reason):
        wo = make_order(status)
        with pytest.raises(InvalidStateTransition):
            machine.hold(wo, reason)
        assert wo.status == status

    def test_complete_pending_with_negative_hours(self, machine):
        with pytest.raises(InvalidStateTransition):
            machine.complete(make_order(S.PENDING), actual_hours=-1)


class TestProgressRules:
    """Test the progress-driven status rules."""

    @pytest.mark.parametrize(
        "status,percentage,expected",
        [
            (S.PENDING, 0, S.PENDING),
            (S.PENDING, 40, S.IN_PROGRESS),
            (S.PENDING, 100, S.COMPLETED),
            (S.ASSIGNED, 0, S.ASSIGNED),
            (S.ASSIGNED, 1, S.IN_PROGRESS),
            (S.ASSIGNED, 100, S.COMPLETED),
            (S.IN_PROGRESS, 0, S.IN_PROGRESS),
            (S.IN_PROGRESS, 99, S.IN_PROGRESS),
            (S.IN_PROGRESS, 100, S.COMPLETED),
            (S.ON_HOLD, 0, S.ON_HOLD),
            (S.ON_HOLD, 60, S.ON_HOLD),
        ],
    )
    def test_progress_target(self, status, percentage, expected):
        assert progress_target(status, percentage) == expected

    @pytest.mark.parametrize(
        "status,percentage",
        [
            (S.ON_HOLD, 100),
            (S.COMPLETED, 50),
            (S.VERIFIED, 0),
            (S.CANCELLED, 100),
        ],
    )
    def test_progress_rejected(self, status, percentage):
        with pytest.raises(InvalidStateTransition):
            progress_target(status, percentage)

    def test_completion_from_tasks_floors(self):
        assert completion_from_tasks(2, 3) == 66
        assert completion_from_tasks(1, 3) == 33
        assert completion_from_tasks(3, 3) == 100
        assert completion_from_tasks(0, 5) == 0


class TestLifecycleActions:
    """Test side effects of lifecycle actions."""

    def test_assign_sets_assignee(self, machine, clock):
        """Test assigning a pending order to a technician."""
        wo = make_order()
        result = machine.assign(wo, TECH, assigned_by_id=3)

        assert result.from_status == S.PENDING
        assert result.to_status == S.ASSIGNED
        assert wo.assigned_to_id == 7
        assert wo.assigned_by_id == 3
        assert wo.assignment_date == clock.now

    def test_assign_rejects_non_technician(self, machine):
        wo = make_order()
        viewer = TechnicianInfo(id=8, hourly_rate=None, is_technician=False, is_available=True)
        with pytest.raises(InvalidAssignment):
            machine.assign(wo, viewer)
        assert wo.status == S.PENDING
        assert wo.assigned_to_id is None

    def test_assign_rejects_unavailable_technician(self, machine):
        wo = make_order()
        away = TechnicianInfo(id=9, hourly_rate=None, is_technician=True, is_available=False)
        with pytest.raises(InvalidAssignment):
            machine.assign(wo, away)

    def test_assign_in_progress_rejected_before_technician_checks(self, machine):
        wo = make_order(S.IN_PROGRESS)
        viewer = TechnicianInfo(id=8, hourly_rate=None, is_technician=False, is_available=True)
        with pytest.raises(InvalidStateTransition):
            machine.assign(wo, viewer)

    def test_start_sets_actual_start(self, machine, clock):
        wo = make_order(S.ASSIGNED, assigned_to_id=7)
        machine.start(wo, technician_id=7)

        assert wo.status == S.IN_PROGRESS
        assert wo.actual_start == clock.now
        assert wo.started_by_id == 7

    def test_hold_requires_reason(self, machine):
        wo = make_order(S.IN_PROGRESS)
        with pytest.raises(InvalidInput):
            machine.hold(wo, "   ")
        assert wo.status == S.IN_PROGRESS

    def test_hold_and_resume(self, machine):
        wo = make_order(S.IN_PROGRESS, completion_notes="Checked valve")
        machine.hold(wo, "Waiting for parts")
        assert wo.status == S.ON_HOLD
        assert wo.completion_notes == "Checked valve\nOn Hold: Waiting for parts"

        machine.resume(wo)
        assert wo.status == S.IN_PROGRESS

    def test_complete_computes_hours_and_costs(self, machine, clock):
        """Test completion derives hours from the actual duration and prices labor."""
        wo = make_order(S.ASSIGNED, assigned_to_id=7, other_cost=5.0)
        machine.start(wo, technician_id=7)
        MaterialLedger().add(wo, "Washer", 4, 2.5)

        clock.now += timedelta(minutes=90)
        machine.complete(wo, hourly_rate=40.0, notes="Replaced washer", signature_url="https://files/sig.png")

        assert wo.status == S.COMPLETED
        assert wo.completion_percentage == 100
        assert wo.actual_end == clock.now
        assert wo.actual_hours == 1.5
        assert wo.labor_cost == 60.0
        assert wo.material_cost == 10.0
        assert wo.total_cost == 75.0
        assert wo.completion_notes == "Replaced washer"
        assert wo.signature_url == "https://files/sig.png"

    def test_complete_with_supplied_hours_and_no_rate(self, machine):
        wo = make_order(S.IN_PROGRESS, actual_start=datetime(2024, 6, 5, 8, 0))
        machine.complete(wo, hourly_rate=None, actual_hours=3.0)

        assert wo.actual_hours == 3.0
        assert wo.labor_cost == 0
        assert wo.total_cost == 0

    def test_verify_records_verifier(self, machine, clock):
        wo = make_order(S.COMPLETED)
        machine.verify(wo, verifier_id=2)
        assert wo.status == S.VERIFIED
        assert wo.verified_by_id == 2
        assert wo.verified_at == clock.now

    def test_cancel_sets_end_and_reason(self, machine, clock):
        wo = make_order(S.ASSIGNED)
        machine.cancel(wo, "Duplicate request")
        assert wo.status == S.CANCELLED
        assert wo.actual_end == clock.now
        assert wo.completion_notes == "Cancelled: Duplicate request"

    def test_cancel_completed_rejected(self, machine):
        wo = make_order(S.COMPLETED)
        with pytest.raises(InvalidStateTransition):
            machine.cancel(wo, "Too late")
        assert wo.status == S.COMPLETED


class TestProgressUpdates:
    """Test manual progress updates through the state machine."""

    def test_partial_progress_starts_work(self, machine, clock):
        wo = make_order(S.ASSIGNED)
        machine.update_progress(wo, 40, notes="Half the tiles done")

        assert wo.status == S.IN_PROGRESS
        assert wo.completion_percentage == 40
        assert wo.actual_start == clock.now
        assert wo.completion_notes == "[2024-06-05T10:00:00] Half the tiles done"

    def test_full_progress_completes(self, machine):
        wo = make_order(S.IN_PROGRESS, actual_start=datetime(2024, 6, 5, 8, 0))
        machine.update_progress(wo, 100, hourly_rate=20.0)

        assert wo.status == S.COMPLETED
        assert wo.actual_hours == 2.0
        assert wo.labor_cost == 40.0
        assert wo.total_cost == 40.0

    def test_out_of_range_rejected(self, machine):
        wo = make_order(S.IN_PROGRESS)
        with pytest.raises(InvalidInput):
            machine.update_progress(wo, 101)
        with pytest.raises(InvalidInput):
            machine.update_progress(wo, -1)

    def test_tasks_override_supplied_percentage(self, machine):
        wo = make_order(S.IN_PROGRESS)
        ledger = TaskLedger(machine)
        for description in ("Isolate", "Replace", "Test"):
            ledger.add(wo, description)
        wo.tasks[0].status = TASK_COMPLETED

        machine.update_progress(wo, 90)
        assert wo.completion_percentage == 33
        assert wo.status == S.IN_PROGRESS


class TestLedgers:
    """Test task and material ledgers on in-memory orders."""

    def test_tasks_drive_completion(self, machine):
        wo = make_order(S.IN_PROGRESS)
        ledger = TaskLedger(machine)
        tasks = [ledger.add(wo, d) for d in ("One", "Two", "Three")]

        assert [t.sequence for t in tasks] == [1, 2, 3]
        ledger.set_status(wo, tasks[0], True, user_id=7)
        ledger.set_status(wo, tasks[1], True, user_id=7)
        assert wo.completion_percentage == 66

        ledger.set_status(wo, tasks[1], False, user_id=7)
        assert wo.completion_percentage == 33
        assert tasks[1].completed_at is None

    @pytest.mark.parametrize("status", [S.COMPLETED, S.VERIFIED, S.CANCELLED])
    def test_closed_orders_reject_tasks_and_materials(self, machine, status):
        wo = make_order(status, tasks=[WorkOrderTask(description="Done", sequence=1, status="pending")])
        with pytest.raises(InvalidStateTransition):
            TaskLedger(machine).add(wo, "Late task")
        with pytest.raises(InvalidStateTransition):
            TaskLedger(machine).set_status(wo, wo.tasks[0], True)
        with pytest.raises(InvalidStateTransition):
            MaterialLedger().add(wo, "Pipe", 1, 10.0)

    def test_material_validation(self):
        wo = make_order(S.IN_PROGRESS)
        ledger = MaterialLedger()
        with pytest.raises(InvalidInput):
            ledger.add(wo, "Pipe", 0, 10.0)
        with pytest.raises(InvalidInput):
            ledger.add(wo, "Pipe", 1, -1.0)
        with pytest.raises(InvalidInput):
            ledger.add(wo, "", 1, 1.0)
        assert wo.materials == []

    def test_offsetting_material_entry(self):
        wo = make_order(S.IN_PROGRESS, labor_cost=12.5)
        ledger = MaterialLedger()
        ledger.add(wo, "Pipe", 3, 10.0)
        ledger.add(wo, "Pipe", -1, 10.0, notes="Returned one")

        assert [m.total_cost for m in wo.materials] == [30.0, -10.0]
        assert wo.material_cost == 20.0
        assert wo.total_cost == 32.5


class TestCosts:
    """Test the cost aggregator."""

    def test_total_is_sum_of_parts(self):
        wo = make_order(S.IN_PROGRESS, labor_cost=10.1, other_cost=0.2)
        MaterialLedger().add(wo, "Sealant", 3, 1.1)
        costs.recompute(wo)
        assert wo.material_cost == 3.3
        assert wo.total_cost == round(wo.labor_cost + wo.material_cost + wo.other_cost, 2)

    def test_labor_cost_without_rate(self):
        assert costs.labor_cost_for(2.0, None) is None
        assert costs.labor_cost_for(2.5, 30.0) == 75.0
