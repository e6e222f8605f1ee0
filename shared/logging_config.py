"""Centralized logging configuration with correlation and execution ID support."""

import logging
import sys
from contextvars import ContextVar
from pythonjsonlogger import jsonlogger

correlation_id_var: ContextVar[str] = ContextVar('correlation_id', default='')
execution_id_var: ContextVar[str] = ContextVar('execution_id', default='')


class ContextFilter(logging.Filter):
    """Adds correlation_id and execution_id to all log records"""

    def filter(self, record):
        record.correlation_id = correlation_id_var.get('')
        if not getattr(record, "execution_id", None):
            record.execution_id = execution_id_var.get('')
        return True


def setup_logging(service_name: str, level: int = logging.INFO) -> None:
    """Sets up JSON logging on the root logger"""
    logger = logging.getLogger()
    logger.setLevel(level)
    logger.handlers = []

    json_handler = logging.StreamHandler(sys.stdout)
    formatter = jsonlogger.JsonFormatter(
        '%(asctime)s %(name)s %(levelname)s %(correlation_id)s %(execution_id)s %(message)s',
        rename_fields={
            'asctime': 'timestamp',
            'name': 'logger',
            'levelname': 'level',
        },
        static_fields={'service': service_name},
    )

    json_handler.setFormatter(formatter)
    json_handler.addFilter(ContextFilter())
    logger.addHandler(json_handler)
    logging.info(f"{service_name} logging configured", extra={"service": service_name})


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def get_correlation_id() -> str:
    return correlation_id_var.get('')


def set_execution_id(execution_id: str) -> None:
    execution_id_var.set(execution_id)
