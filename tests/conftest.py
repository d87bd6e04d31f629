"""
Pytest fixtures for the bulk salary test suite.

Provides:
- In-memory SQLite sessions with every kernel and bulk table created
- A DeterministicClock pinned to 2024-03-01 09:00 UTC
- A seeded employee directory
- A wired BulkSalaryOrchestrator with a private lock registry
- Captured structured logs
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from salary_kernel.db.base import Base
from salary_kernel.db.engine import enable_sqlite_savepoints
from salary_kernel.domain.clock import DeterministicClock
from salary_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from salary_kernel.models import import_kernel_models

from salary_bulk.domain.types import (
    AdjustmentConfig,
    AdjustmentType,
    ComponentChange,
    ComponentType,
    Employee,
    EmployeeStatus,
    OperationMetadata,
    OperationType,
    SalaryComponent,
)
from salary_bulk.models import import_bulk_models
from salary_bulk.orchestrator import BulkSalaryOrchestrator
from salary_bulk.services.directory import SqlEmployeeDirectory
from salary_bulk.services.locks import EmployeeLockRegistry

from salary_config.schema import BulkOperationsConfig


# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

START_TIME = datetime(2024, 3, 1, 9, 0, 0, tzinfo=timezone.utc)
EFFECTIVE_DATE = date(2024, 4, 1)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture salary_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.execute_operation(operation_id)
            logs = captured_logs()
            assert any(r["message"] == "operation_executed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("salary_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    import_kernel_models()
    import_bulk_models()
    eng = create_engine("sqlite:///:memory:")
    enable_sqlite_savepoints(eng)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return DeterministicClock(start=START_TIME)


@pytest.fixture
def test_actor_id():
    return TEST_ACTOR_ID


@pytest.fixture
def bulk_config():
    return BulkOperationsConfig()


@pytest.fixture
def lock_registry():
    """Private registry so tests never contend with each other."""
    return EmployeeLockRegistry()


# =============================================================================
# Employee directory
# =============================================================================


def make_employee(
    number: str,
    name: str,
    department: str,
    position: str,
    basic: str | None,
    allowance: str | None = None,
    variable: str | None = None,
    status: EmployeeStatus = EmployeeStatus.ACTIVE,
) -> Employee:
    components = []
    if basic is not None:
        components.append(SalaryComponent(
            component_id=uuid4(),
            name="Basic Salary",
            component_type=ComponentType.BASIC_SALARY,
            amount=Decimal(basic),
        ))
    if allowance is not None:
        components.append(SalaryComponent(
            component_id=uuid4(),
            name="Transport Allowance",
            component_type=ComponentType.FIXED_ALLOWANCE,
            amount=Decimal(allowance),
        ))
    if variable is not None:
        components.append(SalaryComponent(
            component_id=uuid4(),
            name="Sales Commission",
            component_type=ComponentType.VARIABLE,
            amount=Decimal(variable),
        ))
    return Employee(
        employee_id=uuid4(),
        employee_number=number,
        name=name,
        department=department,
        position=position,
        status=status,
        components=tuple(components),
    )


@pytest.fixture
def directory(db_session, clock):
    return SqlEmployeeDirectory(db_session, clock=clock)


@pytest.fixture
def employees(directory, test_actor_id):
    """
    Seeded staff, keyed by first name.

    Gross salaries (basic + fixed allowance):
        alice 10M, budi 15M, citra 8M, dewi 6M, fajar 4M (no basic
        component), eko resigned.
    """
    staff = {
        "alice": make_employee(
            "E001", "Alice", "Engineering", "Engineer", "8000000", "2000000", "1000000",
        ),
        "budi": make_employee(
            "E002", "Budi", "Engineering", "Senior Engineer", "12000000", "3000000",
        ),
        "citra": make_employee("E003", "Citra", "Finance", "Analyst", "8000000"),
        "dewi": make_employee("E004", "Dewi", "Sales", "Analyst", "5000000", "1000000"),
        "eko": make_employee(
            "E005", "Eko", "Engineering", "Engineer", "7000000",
            status=EmployeeStatus.RESIGNED,
        ),
        "fajar": make_employee("E006", "Fajar", "Sales", "Driver", None, "4000000"),
    }
    return {key: directory.add(emp, test_actor_id) for key, emp in staff.items()}


# =============================================================================
# Orchestrator
# =============================================================================


@pytest.fixture
def orchestrator(db_session, clock, bulk_config, lock_registry, test_actor_id, employees):
    return BulkSalaryOrchestrator.from_session(
        db_session,
        clock=clock,
        config=bulk_config,
        lock_registry=lock_registry,
        actor_id=test_actor_id,
    )


def percentage_adjustment(value: str = "10", **kwargs) -> AdjustmentConfig:
    return AdjustmentConfig(
        operation_type=kwargs.pop("operation_type", OperationType.ANNUAL_REVIEW),
        adjustment_type=AdjustmentType.PERCENTAGE,
        adjustment_value=Decimal(value),
        name=kwargs.pop("name", "Annual Review 2024"),
        reason=kwargs.pop("reason", "Annual performance cycle"),
        **kwargs,
    )


def metadata_for(adjustment: AdjustmentConfig, actor_id=TEST_ACTOR_ID) -> OperationMetadata:
    return OperationMetadata.from_config(adjustment, EFFECTIVE_DATE, actor_id)


@pytest.fixture
def run_adjustment(orchestrator):
    """
    Preview, create and execute an adjustment for the given employees.

    Returns ``(operation, result)``.
    """

    def _run(employee_list, adjustment=None, execute=True, on_progress=None):
        adjustment = adjustment or percentage_adjustment()
        preview = orchestrator.preview_adjustment(
            [e.employee_id for e in employee_list], adjustment,
        )
        operation = orchestrator.create_operation(metadata_for(adjustment), preview)
        if not execute:
            return operation, None
        result = orchestrator.execute_operation(
            operation.operation_id, on_progress=on_progress,
        )
        return operation, result

    return _run


def edit_basic_salary(directory, employee_id, new_amount: str, actor_id=TEST_ACTOR_ID):
    """Change an employee's basic salary outside any bulk operation."""
    current = directory.get_by_id(employee_id)
    basic = next(
        c for c in current.components if c.component_type == ComponentType.BASIC_SALARY
    )
    directory.update_salary_components(
        employee_id,
        [ComponentChange(
            component_id=basic.component_id,
            component_name=basic.name,
            component_type=basic.component_type,
            previous_amount=basic.amount,
            new_amount=Decimal(new_amount),
        )],
        operation_id=None,
        changed_by=actor_id,
    )
