"""
Pytest fixtures for the stock kernel test suite.

Provides:
- A fresh in-memory SQLite database per test (StaticPool, foreign keys on)
- A DeterministicClock
- Structured log capture
- Seed helpers for types, employees and approved requisitions

Environment Variables:
- STOCK_KERNEL_TEST_DATABASE_URL: run against another database (e.g. a
  PostgreSQL URL) instead of in-memory SQLite.
"""

import json
import logging
import os
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from stock_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from stock_kernel.domain.clock import DeterministicClock
from stock_kernel.domain.requisition import ItemSpec
from stock_kernel.domain.values import RequisitionAction, TrackingMode
from stock_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from stock_kernel.models.catalog import ItemType
from stock_kernel.models.employee import Employee
from stock_kernel.services.inventory_orchestrator import InventoryOrchestrator

DEFAULT_TEST_DATABASE_URL = "sqlite://"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


def get_database_url() -> str:
    return os.environ.get("STOCK_KERNEL_TEST_DATABASE_URL", DEFAULT_TEST_DATABASE_URL)


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
    Capture stock_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.use_consumable(...)
            logs = captured_logs()
            assert any(r["message"] == "inventory_operation_failed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("stock_kernel")
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
# Database
# =============================================================================


@pytest.fixture
def engine():
    """Fresh schema per test."""
    eng = init_engine_from_url(get_database_url())
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session(engine):
    s = get_session()
    yield s
    s.rollback()
    s.close()


@pytest.fixture
def session_factory(engine):
    from stock_kernel.db.engine import get_session_factory

    return get_session_factory()


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


# =============================================================================
# Seed helpers
# =============================================================================


@pytest.fixture
def make_employee(session):
    """Create and commit an employee; returns its id."""
    counter = {"n": 0}

    def _make(first_name: str = "Employee"):
        counter["n"] += 1
        employee = Employee(
            first_name=first_name,
            last_name=f"No{counter['n']}",
            email=f"{first_name.lower()}{counter['n']}@example.com",
        )
        session.add(employee)
        session.commit()
        return employee.id

    return _make


@pytest.fixture
def make_type(session):
    """Create and commit an item type; returns its id."""

    def _make(name: str, mode: TrackingMode = TrackingMode.ASSET):
        item_type = ItemType(name=name, tracking_mode=mode.value)
        session.add(item_type)
        session.commit()
        return item_type.id

    return _make


@pytest.fixture
def test_actor_id(make_employee):
    """The employee performing operations in tests."""
    return make_employee("Actor")


@pytest.fixture
def asset_type_id(make_type):
    return make_type("Smart Phone Case")


@pytest.fixture
def consumable_type_id(make_type):
    return make_type("Printer Paper", TrackingMode.CONSUMABLE)


@pytest.fixture
def orchestrator(session, deterministic_clock):
    return InventoryOrchestrator(session, deterministic_clock)


@pytest.fixture
def approved_requisition(orchestrator, test_actor_id):
    """
    Create and approve a single-item requisition.

    Returns the approved RequisitionInfo.
    """
    vendor_id = uuid4()

    def _make(type_id, quantity: int = 5, cost: Decimal = Decimal("100.00")):
        created = orchestrator.create_requisition(
            "Quarterly purchase",
            [ItemSpec(type_id=type_id, vendor_id=vendor_id, quantity_requested=quantity,
                      estimated_cost=cost)],
            test_actor_id,
        )
        assert created.is_success, created.message
        approved = orchestrator.act_on_requisition(
            created.data.id, RequisitionAction.APPROVE, test_actor_id,
        )
        assert approved.is_success, approved.message
        return approved.data

    return _make
