"""
Cost aggregation for work orders.

total_cost = labor_cost + material_cost + other_cost, where material_cost is
the sum of every material entry. Called by the material ledger and the state
machine; request handlers never call it directly.
"""
from typing import Optional

from cafm.models.work_order import WorkOrder


def _money(value: float) -> float:
    return round(value, 2)


def material_line_total(quantity: float, unit_cost: float) -> float:
    return _money(quantity * unit_cost)


def labor_cost_for(hours: float, hourly_rate: Optional[float]) -> Optional[float]:
    """Labor cost for the given hours, or None when no rate is known."""
    if hourly_rate is None:
        return None
    return _money(hours * hourly_rate)


def recompute(work_order: WorkOrder) -> WorkOrder:
    """Recalculate material and total cost from the loaded material entries."""
    work_order.material_cost = _money(sum(m.total_cost for m in work_order.materials))
    work_order.total_cost = _money(
        (work_order.labor_cost or 0) + work_order.material_cost + (work_order.other_cost or 0)
    )
    return work_order
