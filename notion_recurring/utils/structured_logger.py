"""
Run and stage logging for recurring task runs.

Every line carries the run id and the current stage, so one run can be
followed in the Pipedream log viewer or picked out of an aggregator by
filtering on run_id.
"""

import json
import logging
import threading
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

UTC = timezone.utc


class LogContext:
    """Per-thread fields attached to every JSON log line."""

    def __init__(self):
        self._local = threading.local()

    @property
    def data(self) -> Dict[str, Any]:
        if not hasattr(self._local, 'data'):
            self._local.data = {}
        return self._local.data

    def set(self, key: str, value: Any):
        self.data[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def clear(self):
        self.data.clear()

    def update(self, **kwargs):
        self.data.update(kwargs)


log_context = LogContext()


class JsonFormatter(logging.Formatter):
    """One JSON object per line: level, message, logger, context, extras."""

    def __init__(self, include_timestamp: bool = True):
        super().__init__()
        self.include_timestamp = include_timestamp

    def format(self, record):
        entry = {
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name,
        }
        if self.include_timestamp:
            entry['timestamp'] = datetime.now(UTC).isoformat()
        if log_context.data:
            entry['context'] = dict(log_context.data)

        fields = getattr(record, 'extra', None)
        if isinstance(fields, dict):
            for key, value in fields.items():
                entry.setdefault(key, value)

        return json.dumps(entry, default=str)


class StructuredLogger:
    """
    Logger for one recurring task run.

    run_context() tags every line with a run id and logs the run's outcome
    and duration; step_context() does the same for each stage (schema
    resolution, timezone sync, task query, reconciliation).
    """

    def __init__(
        self,
        name: str,
        level: int = logging.INFO,
        json_format: bool = True,
        include_timestamp: bool = True
    ):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)
        self.json_format = json_format

        # A scheduled workflow builds a new logger per run; keep one handler
        self.logger.handlers = []
        self.logger.propagate = False

        handler = logging.StreamHandler()
        handler.setLevel(level)
        if json_format:
            handler.setFormatter(JsonFormatter(include_timestamp))
        else:
            parts = ['%(asctime)s'] if include_timestamp else []
            parts += ['[%(levelname)s]', '%(name)s', '%(message)s']
            handler.setFormatter(logging.Formatter(' - '.join(parts)))
        self.logger.addHandler(handler)

    def info(self, msg: str, **fields):
        self.logger.info(msg, extra={'extra': fields})

    def error(self, msg: str, **fields):
        self.logger.error(msg, extra={'extra': fields})

    @contextmanager
    def _timed(self, label: str, **fields):
        self.info(f"{label} started", **fields)
        started = time.time()
        try:
            yield
        except Exception as e:
            self.error(
                f"{label} failed",
                duration_seconds=time.time() - started,
                error_type=type(e).__name__,
                error_message=str(e),
                **fields
            )
            raise
        self.info(f"{label} completed", duration_seconds=time.time() - started, **fields)

    @contextmanager
    def run_context(self, run_id: Optional[str] = None, **context):
        """
        Track a whole run.

        Args:
            run_id: Run id; a uuid4 is generated when omitted
            **context: Fields added to the log context for the run

        Yields:
            The run id
        """
        run_id = run_id or str(uuid.uuid4())
        saved = dict(log_context.data)
        log_context.update(run_id=run_id, **context)
        try:
            with self._timed("Run", run_id=run_id):
                yield run_id
        finally:
            log_context.clear()
            log_context.update(**saved)

    @contextmanager
    def step_context(self, step_name: str, **context):
        """Track one stage of a run; stages may nest."""
        outer_step = log_context.get('step')
        log_context.update(step=step_name, **context)
        try:
            with self._timed(f"Step {step_name}"):
                yield
        finally:
            if outer_step:
                log_context.set('step', outer_step)
            else:
                log_context.data.pop('step', None)


def get_logger(name: str, level: int = logging.INFO, **kwargs) -> StructuredLogger:
    """Build a StructuredLogger; kwargs go to its constructor."""
    return StructuredLogger(name, level, **kwargs)
