"""
Fixtures for the threaded concurrency tests.

Every worker opens its own session against a file-backed SQLite
database, so writes contend for real instead of sharing one connection.
"""

import threading

import pytest

from stock_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)


@pytest.fixture
def file_database(tmp_path):
    """A file-backed SQLite database shared by several connections."""
    init_engine_from_url(f"sqlite:///{tmp_path / 'stock.db'}")
    create_tables()
    yield get_session_factory()
    drop_tables()
    reset_engine()


@pytest.fixture
def run_workers():
    """
    Start ``workers`` threads behind a barrier and return their exceptions.

    Usage::

        errors = run_workers(target, workers=4)
        assert errors == []
    """

    def _run(target, workers: int) -> list[BaseException]:
        errors: list[BaseException] = []
        barrier = threading.Barrier(workers)

        def worker():
            try:
                barrier.wait()
                target()
            except BaseException as exc:  # noqa: BLE001 - surfaced to the test
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)
        return errors

    return _run
