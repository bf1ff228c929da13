"""
Stock kernel configuration.

Defines the runtime settings for the kernel with sensible defaults.
Values may come from code, a YAML file, or environment variables:

    config = KernelConfig.from_yaml(Path("stock_kernel.yaml"))
    engine = bootstrap(config)
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Self
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from sqlalchemy.engine import Engine

from stock_kernel.logging_config import configure_logging, get_logger

logger = get_logger("config")

ENV_DATABASE_URL = "STOCK_KERNEL_DATABASE_URL"
ENV_TIMEZONE = "STOCK_KERNEL_TIMEZONE"
ENV_LOG_LEVEL = "STOCK_KERNEL_LOG_LEVEL"


@dataclass
class KernelConfig:
    """
    Configuration schema for the stock kernel.

    Field defaults match the deployed system: requisition numbers are
    partitioned by month in Asia/Dhaka time and serials are six digits.
    """

    # Storage
    database_url: str = "sqlite:///stock_kernel.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800

    # Identifiers
    requisition_timezone: str = "Asia/Dhaka"
    serial_width: int = 6

    # Logging
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.database_url:
            raise ValueError("database_url must be set")
        if self.serial_width < 1:
            raise ValueError(f"serial_width must be positive, got {self.serial_width}")
        if self.pool_size < 1:
            raise ValueError(f"pool_size must be positive, got {self.pool_size}")
        try:
            ZoneInfo(self.requisition_timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(
                f"Unknown requisition_timezone: {self.requisition_timezone!r}"
            ) from exc
        if logging.getLevelName(self.log_level.upper()) not in (
            logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL,
        ):
            raise ValueError(f"Unknown log_level: {self.log_level!r}")

        logger.info(
            "kernel_config_initialized",
            extra={
                "dialect": self.database_url.split(":", 1)[0],
                "requisition_timezone": self.requisition_timezone,
                "serial_width": self.serial_width,
                "log_level": self.log_level,
            },
        )

    @property
    def timezone(self) -> ZoneInfo:
        return ZoneInfo(self.requisition_timezone)

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the deployed defaults."""
        logger.info("kernel_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create config from a dictionary (e.g., loaded from a file)."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise KeyError(f"Unknown configuration keys: {unknown}")
        logger.info(
            "kernel_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: Path) -> Self:
        """
        Load config from a YAML file.

        The file may hold the settings at top level or under a
        ``stock_kernel`` key.

        Raises:
            FileNotFoundError: if the file does not exist.
            yaml.YAMLError: if the file contains invalid YAML.
        """
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Expected a mapping in {path}, got {type(data).__name__}")
        if "stock_kernel" in data:
            data = data["stock_kernel"] or {}
        logger.info("kernel_config_loaded_from_yaml", extra={"path": str(path)})
        return cls.from_dict(data)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Self:
        """Create config from ``STOCK_KERNEL_*`` environment variables."""
        env = os.environ if environ is None else environ
        data: dict[str, Any] = {}
        if env.get(ENV_DATABASE_URL):
            data["database_url"] = env[ENV_DATABASE_URL]
        if env.get(ENV_TIMEZONE):
            data["requisition_timezone"] = env[ENV_TIMEZONE]
        if env.get(ENV_LOG_LEVEL):
            data["log_level"] = env[ENV_LOG_LEVEL]
        return cls.from_dict(data)


def bootstrap(config: KernelConfig) -> Engine:
    """
    Initialise logging and the database engine from ``config``.

    Returns the engine; sessions are then obtained from
    ``stock_kernel.db.engine.get_session``.
    """
    from stock_kernel.db.engine import init_engine_from_url

    configure_logging(level=config.log_level.upper())
    return init_engine_from_url(
        config.database_url,
        echo=config.echo,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout,
        pool_recycle=config.pool_recycle,
    )
