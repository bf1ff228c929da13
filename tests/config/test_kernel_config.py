"""
Tests for KernelConfig loading and validation.

Covers:
- Deployed defaults
- from_dict rejects unknown keys
- from_yaml with top-level and nested ``stock_kernel`` sections
- from_env reads STOCK_KERNEL_* variables
- Invalid time zone, log level and widths are rejected
- The configured time zone drives requisition numbering
- bootstrap configures logging and the engine
"""

import logging
from datetime import datetime, timezone

import pytest
import yaml
from sqlalchemy import text

from stock_kernel.config import KernelConfig, bootstrap
from stock_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    reset_engine,
)
from stock_kernel.domain.clock import DeterministicClock
from stock_kernel.logging_config import configure_logging, reset_logging
from stock_kernel.services.identifier_service import IdentifierService


class TestDefaults:
    def test_with_defaults(self):
        config = KernelConfig.with_defaults()
        assert config.requisition_timezone == "Asia/Dhaka"
        assert config.serial_width == 6
        assert config.log_level == "INFO"
        assert config.timezone.key == "Asia/Dhaka"


class TestFromDict:
    def test_known_keys(self):
        config = KernelConfig.from_dict({"database_url": "sqlite://", "serial_width": 8})
        assert config.database_url == "sqlite://"
        assert config.serial_width == 8

    def test_unknown_key_rejected(self):
        with pytest.raises(KeyError, match="serial_digits"):
            KernelConfig.from_dict({"serial_digits": 8})


class TestFromYaml:
    def test_top_level(self, tmp_path):
        path = tmp_path / "kernel.yaml"
        path.write_text(yaml.safe_dump({"requisition_timezone": "UTC", "log_level": "DEBUG"}))
        config = KernelConfig.from_yaml(path)
        assert config.requisition_timezone == "UTC"
        assert config.log_level == "DEBUG"

    def test_nested_section(self, tmp_path):
        path = tmp_path / "app.yaml"
        path.write_text(yaml.safe_dump({"stock_kernel": {"database_url": "sqlite:///x.db"}}))
        assert KernelConfig.from_yaml(path).database_url == "sqlite:///x.db"

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert KernelConfig.from_yaml(path) == KernelConfig()

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="Expected a mapping"):
            KernelConfig.from_yaml(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            KernelConfig.from_yaml(tmp_path / "nope.yaml")


class TestFromEnv:
    def test_reads_prefixed_variables(self):
        config = KernelConfig.from_env({
            "STOCK_KERNEL_DATABASE_URL": "postgresql://u:p@localhost/stock",
            "STOCK_KERNEL_TIMEZONE": "Europe/London",
            "STOCK_KERNEL_LOG_LEVEL": "WARNING",
            "UNRELATED": "ignored",
        })
        assert config.database_url == "postgresql://u:p@localhost/stock"
        assert config.requisition_timezone == "Europe/London"
        assert config.log_level == "WARNING"

    def test_empty_environment_gives_defaults(self):
        assert KernelConfig.from_env({}) == KernelConfig()


class TestValidation:
    def test_unknown_timezone(self):
        with pytest.raises(ValueError, match="requisition_timezone"):
            KernelConfig(requisition_timezone="Mars/Olympus_Mons")

    def test_unknown_log_level(self):
        with pytest.raises(ValueError, match="log_level"):
            KernelConfig(log_level="LOUD")

    @pytest.mark.parametrize("field", ["serial_width", "pool_size"])
    def test_non_positive_sizes(self, field):
        with pytest.raises(ValueError, match=field):
            KernelConfig(**{field: 0})


def test_timezone_decides_requisition_month(session):
    # 20:00 UTC on 31 July is already August in Dhaka but still July in UTC.
    clock = DeterministicClock(datetime(2025, 7, 31, 20, 0, tzinfo=timezone.utc))
    dhaka = IdentifierService(session, clock, KernelConfig().requisition_timezone)
    utc = IdentifierService(session, clock, KernelConfig(requisition_timezone="UTC").requisition_timezone)
    assert dhaka.current_requisition_prefix() == "REQ0825"
    assert utc.current_requisition_prefix() == "REQ0725"


class TestBootstrap:
    @pytest.fixture
    def fresh_logging(self):
        reset_logging()
        yield
        reset_logging()
        configure_logging(level=logging.DEBUG)

    def test_configures_logging_and_engine(self, fresh_logging, tmp_path):
        config = KernelConfig(database_url=f"sqlite:///{tmp_path / 'boot.db'}", log_level="warning")
        engine = bootstrap(config)
        try:
            assert engine is get_engine()
            assert engine.dialect.name == "sqlite"
            assert logging.getLogger("stock_kernel").level == logging.WARNING
            create_tables()
            with get_session() as session:
                assert session.execute(text("SELECT 1")).scalar() == 1
        finally:
            drop_tables()
            reset_engine()
