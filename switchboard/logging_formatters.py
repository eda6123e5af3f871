"""
Custom logging formatters for Switchboard project.
"""
import logging
import json


class DetailedFormatter(logging.Formatter):
    """
    Custom formatter that includes extra fields from structured logging.

    Webhook, routing and automation code passes call control ids, event types
    and automation ids via the 'extra' parameter; this formatter appends them
    to the line as JSON.
    """

    # Attributes every LogRecord carries; anything else came in through 'extra'
    standard_fields = {
        'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
        'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
        'thread', 'threadName', 'processName', 'process', 'getMessage',
        'exc_info', 'exc_text', 'stack_info', 'asctime', 'message', 'taskName',
    }

    def format(self, record):
        formatted = super().format(record)

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self.standard_fields
        }

        if extra_fields:
            try:
                extra_str = json.dumps(extra_fields, default=str, sort_keys=True)
            except (TypeError, ValueError):
                extra_str = ", ".join(f"{k}={v}" for k, v in extra_fields.items())
            formatted += f" | EXTRA: {extra_str}"

        return formatted
