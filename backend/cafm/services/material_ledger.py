"""
Material consumption entries of a work order.
"""
from typing import Optional

from cafm.core.exceptions import InvalidInput
from cafm.models.work_order import WorkOrder, WorkOrderMaterial
from cafm.services import costs
from cafm.services.state_machine import ensure_open


class MaterialLedger:
    """Append-only material entries; each one refreshes the order's costs."""

    def add(
        self,
        work_order: WorkOrder,
        item_reference: str,
        quantity: float,
        unit_cost: float,
        notes: Optional[str] = None,
        created_by_id: Optional[int] = None,
    ) -> WorkOrderMaterial:
        ensure_open(work_order, "add_material")
        if not item_reference or not item_reference.strip():
            raise InvalidInput("Material item reference is required")
        # Negative quantities are offsetting corrections; zero records nothing
        if quantity == 0:
            raise InvalidInput("Material quantity cannot be zero")
        if unit_cost < 0:
            raise InvalidInput("Material unit cost cannot be negative")

        material = WorkOrderMaterial(
            company_id=work_order.company_id,
            item_reference=item_reference.strip(),
            quantity=quantity,
            unit_cost=unit_cost,
            total_cost=costs.material_line_total(quantity, unit_cost),
            notes=notes,
            created_by_id=created_by_id,
        )
        work_order.materials.append(material)
        costs.recompute(work_order)
        return material
