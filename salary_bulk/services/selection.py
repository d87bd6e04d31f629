"""
SelectionContext -- request-scoped employee selection.

Contract:
    Built from a snapshot of active employees.  Manual picks and
    department/position filters mutate the selected set; ``selected_ids``
    always reports it in directory order.

Invariants enforced:
    - Filter-based selection REPLACES the current selection.
    - Every operation is idempotent: repeating a call with the same
      arguments leaves the same set.
    - Only ids present in the snapshot can be selected.

Non-goals:
    - No global state; each request builds its own context.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from salary_kernel.exceptions import ValidationError
from salary_kernel.logging_config import get_logger

from salary_bulk.domain.types import Employee, EmployeeFilter
from salary_bulk.services.directory import EmployeeDirectory

logger = get_logger("bulk.selection")


class SelectionContext:
    def __init__(self, employees: Iterable[Employee]):
        self._employees: tuple[Employee, ...] = tuple(employees)
        self._by_id = {e.employee_id: e for e in self._employees}
        self._selected: set[UUID] = set()

    @classmethod
    def from_directory(
        cls,
        directory: EmployeeDirectory,
        employee_filter: EmployeeFilter | None = None,
    ) -> SelectionContext:
        return cls(directory.list(employee_filter or EmployeeFilter()))

    # Queries

    @property
    def employees(self) -> tuple[Employee, ...]:
        return self._employees

    @property
    def selected_ids(self) -> tuple[UUID, ...]:
        return tuple(
            e.employee_id for e in self._employees if e.employee_id in self._selected
        )

    @property
    def selected_employees(self) -> tuple[Employee, ...]:
        return tuple(e for e in self._employees if e.employee_id in self._selected)

    @property
    def departments(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(e.department for e in self._employees))

    @property
    def positions(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(e.position for e in self._employees))

    def is_selected(self, employee_id: UUID) -> bool:
        return employee_id in self._selected

    def __len__(self) -> int:
        return len(self._selected)

    # Mutations

    def select_all(self) -> tuple[UUID, ...]:
        self._selected = set(self._by_id)
        return self.selected_ids

    def deselect_all(self) -> tuple[UUID, ...]:
        self._selected = set()
        return self.selected_ids

    def select_by_department(self, department: str) -> tuple[UUID, ...]:
        # Replaces the current selection
        self._selected = {
            e.employee_id for e in self._employees if e.department == department
        }
        logger.debug(
            "selection_filtered",
            extra={"department": department, "selected": len(self._selected)},
        )
        return self.selected_ids

    def select_by_position(self, position: str) -> tuple[UUID, ...]:
        self._selected = {
            e.employee_id for e in self._employees if e.position == position
        }
        logger.debug(
            "selection_filtered",
            extra={"position": position, "selected": len(self._selected)},
        )
        return self.selected_ids

    def toggle(self, employee_id: UUID) -> bool:
        """Flip one employee's membership; returns the new state."""
        self._require_known(employee_id)
        if employee_id in self._selected:
            self._selected.discard(employee_id)
            return False
        self._selected.add(employee_id)
        return True

    def set_selected(self, employee_id: UUID, selected: bool) -> None:
        self._require_known(employee_id)
        if selected:
            self._selected.add(employee_id)
        else:
            self._selected.discard(employee_id)

    def _require_known(self, employee_id: UUID) -> None:
        if employee_id not in self._by_id:
            raise ValidationError(
                f"Employee {employee_id} is not available for selection",
                "employee_id",
                str(employee_id),
            )
