"""Logging setup for the SpendWise API.

Production and staging emit one JSON document per record; development gets a
readable header line followed by the structured fields. Any structured field
whose name looks like a credential is masked before it reaches a handler.
"""
from __future__ import annotations

import json
import logging
import os
import socket
import sys
import time
from typing import Any, Dict

from flask import Flask

_LOG_RECORD_RESERVED = {
    'args',
    'asctime',
    'created',
    'exc_info',
    'exc_text',
    'filename',
    'funcName',
    'levelname',
    'levelno',
    'lineno',
    'module',
    'msecs',
    'message',
    'msg',
    'name',
    'pathname',
    'process',
    'processName',
    'relativeCreated',
    'stack_info',
    'taskName',
    'thread',
    'threadName',
}

SENSITIVE_FIELDS = frozenset({
    'password',
    'new_password',
    'requested_password',
    'supplied_password',
    'token',
    'reset_token',
    'access_token',
    'link',
    'reset_link',
})

REDACTED = '***'


def _extract_extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _LOG_RECORD_RESERVED and not key.startswith('_')
    }


class RedactSecretsFilter(logging.Filter):
    """Mask credential-like structured fields on every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key in SENSITIVE_FIELDS:
            if key in record.__dict__ and record.__dict__[key] is not None:
                record.__dict__[key] = REDACTED
        return True


class JsonLogFormatter(logging.Formatter):
    def __init__(self, service_name: str) -> None:
        super().__init__()
        self._service = service_name
        self._host = socket.gethostname()

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            'timestamp': int(record.created * 1000),
            'logger': record.name,
            'msg': record.getMessage(),
            'host': self._host,
            'service': self._service,
            'status': record.levelname.lower(),
        }

        extras = _extract_extras(record)
        if extras:
            payload.update(extras)

        if record.exc_info:
            payload['exception'] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class HybridDevFormatter(logging.Formatter):
    """Readable header line plus the structured extras underneath."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self._service = service_name

    def format(self, record: logging.LogRecord) -> str:
        timestamp = time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(record.created))
        header = f"[{timestamp}] | {record.levelname} | [{record.name}] {record.getMessage()}"

        extras = _extract_extras(record)
        if not extras and not record.exc_info:
            return header

        extras['service'] = self._service
        structured = json.dumps(extras, ensure_ascii=False, indent=2, default=str)
        if record.exc_info:
            structured = '\n'.join([structured, self.formatException(record.exc_info)])
        return f"{header}\n{structured}"


def configure_logging(app: Flask) -> None:
    """Install a single stdout handler on the root logger."""
    service_name = app.config.get('SERVICE_NAME', 'spendwise')
    log_level = str(app.config.get('LOG_LEVEL', os.environ.get('LOG_LEVEL', 'INFO'))).upper()
    env = app.config.get('ENV', os.environ.get('ENV', 'development'))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in tuple(root_logger.handlers):
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    if env in {'production', 'staging'}:
        formatter: logging.Formatter = JsonLogFormatter(service_name)
    else:
        formatter = HybridDevFormatter(service_name)
    handler.setFormatter(formatter)
    handler.addFilter(RedactSecretsFilter())

    root_logger.addHandler(handler)

    logging.captureWarnings(True)

    root_logger.info(
        'Logging initialized',
        extra={
            'event': 'logging_initialized',
            'service': service_name,
            'environment': env,
            'level': log_level,
        },
    )
