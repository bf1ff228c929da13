"""
Sequence safety tests.

Serials must come from the atomic counter upsert in SequenceService.
Deriving the next identifier from MAX(existing)+1 is forbidden: two
concurrent creators would read the same maximum and collide.

Covers:
- No MAX()-based allocation anywhere in the package
- Concurrent allocators on a shared database receive distinct, gapless
  values
- Concurrent product creation yields distinct product identifiers
"""

import ast
import threading
from decimal import Decimal
from pathlib import Path

import pytest

from stock_kernel.domain.values import TrackingMode
from stock_kernel.models.catalog import ItemType
from stock_kernel.models.employee import Employee
from stock_kernel.services.inventory_orchestrator import InventoryOrchestrator
from stock_kernel.services.sequence_service import SequenceService

PACKAGE_ROOT = Path(__file__).resolve().parents[2] / "stock_kernel"

WORKERS = 4
ALLOCATIONS_PER_WORKER = 10


def _max_calls(filepath: Path) -> list[int]:
    """Line numbers of ``func.max`` or raw ``SELECT MAX(...)`` in a module."""
    tree = ast.parse(filepath.read_text(), filename=str(filepath))
    lines: list[int] = []
    for node in ast.walk(tree):
        if (
            isinstance(node, ast.Attribute)
            and node.attr == "max"
            and isinstance(node.value, ast.Name)
            and node.value.id == "func"
        ):
            lines.append(node.lineno)
        if isinstance(node, ast.Constant) and isinstance(node.value, str):
            text = node.value.upper()
            if "SELECT" in text and "MAX(" in text:
                lines.append(node.lineno)
    return lines


class TestNoMaxPlusOne:
    def test_package_never_uses_sql_max(self):
        offenders = {
            str(path.relative_to(PACKAGE_ROOT)): lines
            for path in sorted(PACKAGE_ROOT.rglob("*.py"))
            if (lines := _max_calls(path))
        }
        assert offenders == {}, f"MAX()-based allocation found: {offenders}"

    @pytest.mark.parametrize(
        "module", ["services/sequence_service.py", "services/identifier_service.py"],
    )
    def test_allocators_go_through_upsert(self, module):
        source = (PACKAGE_ROOT / module).read_text()
        if module.endswith("sequence_service.py"):
            assert "on_conflict_do_update" in source
        else:
            assert "next_value(" in source


def test_concurrent_allocations_are_distinct(file_database, run_workers):
    factory = file_database
    values: list[int] = []
    lock = threading.Lock()

    def allocate():
        for _ in range(ALLOCATIONS_PER_WORKER):
            session = factory()
            try:
                value = SequenceService(session).next_value("product:SPC")
                session.commit()
            finally:
                session.close()
            with lock:
                values.append(value)

    errors = run_workers(allocate, WORKERS)

    assert errors == []
    total = WORKERS * ALLOCATIONS_PER_WORKER
    assert sorted(values) == list(range(1, total + 1))


def test_concurrent_product_creation_yields_unique_ids(file_database, run_workers):
    factory = file_database
    with factory() as session:
        actor = Employee(first_name="Actor", last_name="One", email="actor@example.com")
        item_type = ItemType(name="Smart Phone Case", tracking_mode=TrackingMode.ASSET.value)
        session.add_all([actor, item_type])
        session.commit()
        actor_id, type_id = actor.id, item_type.id

    codes: list[str] = []
    failures: list[str] = []
    lock = threading.Lock()

    def create():
        for i in range(3):
            session = factory()
            try:
                result = InventoryOrchestrator(session).create_product(
                    type_id, f"Case {i}", "Blue case", Decimal("15.00"), actor_id,
                )
            finally:
                session.close()
            with lock:
                if result.is_success:
                    codes.append(result.data.product_id)
                else:
                    failures.append(result.message)

    errors = run_workers(create, WORKERS)

    assert errors == []
    assert failures == []
    assert len(codes) == WORKERS * 3
    assert len(set(codes)) == len(codes)
    assert sorted(codes)[0] == "SPC000001"
