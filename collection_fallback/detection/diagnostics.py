"""Diagnostic stream for one request.

The wrapped collaborator reports trouble through its log output. Rather
than patching process-wide log functions, each request owns a
DiagnosticEmitter; the detector registers a scoped observer on it and
releases it when detection ends.

Collaborators running in-process that log through the standard logging
module are connected with LoggingBridge, one shared handler per logger
name that routes each record to the request it came from.
"""

import logging
from typing import Any, Callable, Optional

from .schemas import DiagnosticMessage
from .surface import Subscription

logger = logging.getLogger(__name__)

DiagnosticListener = Callable[[DiagnosticMessage], None]


class DiagnosticEmitter:
    """Per-request fan-out of diagnostic messages to observers."""

    def __init__(self) -> None:
        self._listeners: list[DiagnosticListener] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: DiagnosticListener) -> Subscription:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Subscription(_remove)

    def emit(
        self,
        message: str,
        level: str = "warning",
        payload: Optional[dict[str, Any]] = None,
    ) -> None:
        self.publish(DiagnosticMessage(level=level, message=message, payload=payload))

    def publish(self, message: DiagnosticMessage) -> None:
        for listener in list(self._listeners):
            listener(message)


class LoggingBridge(logging.Handler):
    """Routes records from the collaborator's logger tree to per-request emitters.

    One bridge per logger name is shared by every request in the process
    (see get_logging_bridge). Each request attaches its emitter under a
    key and logs through the child logger ``<logger_name>.<key>``; a
    record reaches only the emitter whose key matches the logger that
    produced it. Records logged on the parent logger itself belong to no
    request and are dropped.

    Structured data is taken from a ``payload`` attribute on the record,
    i.e. ``log.warning("unsupported collection view", extra={"payload": view})``.

    The handler sits on the logger only while at least one request is
    attached.
    """

    def __init__(self, logger_name: str):
        super().__init__(level=logging.DEBUG)
        self.logger_name = logger_name
        self._routes: dict[str, DiagnosticEmitter] = {}
        self._installed = False

    @property
    def installed(self) -> bool:
        return self._installed

    @property
    def route_count(self) -> int:
        return len(self._routes)

    def child_logger_name(self, key: str) -> str:
        return f"{self.logger_name}.{key}"

    def attach(self, key: str, emitter: DiagnosticEmitter) -> Subscription:
        """Deliver records from ``<logger_name>.<key>`` to ``emitter``."""
        if not key or "." in key:
            raise ValueError(f"Invalid bridge route key: {key!r}")
        if key in self._routes:
            raise ValueError(f"Bridge route '{key}' is already attached")
        self._routes[key] = emitter
        self._install()

        def _detach() -> None:
            if self._routes.get(key) is emitter:
                del self._routes[key]
            if not self._routes:
                self._uninstall()

        return Subscription(_detach)

    def _install(self) -> None:
        if self._installed:
            return
        log = logging.getLogger(self.logger_name)
        # Rebind rather than mutate: callHandlers may be iterating the old list
        log.handlers = [*log.handlers, self]
        self._installed = True
        logger.debug(f"Diagnostic bridge installed on '{self.logger_name}'")

    def _uninstall(self) -> None:
        if not self._installed:
            return
        log = logging.getLogger(self.logger_name)
        log.handlers = [handler for handler in log.handlers if handler is not self]
        self._installed = False
        logger.debug(f"Diagnostic bridge removed from '{self.logger_name}'")

    def route_key(self, logger_name: str) -> Optional[str]:
        """Request key of a child logger name, or None."""
        prefix = f"{self.logger_name}."
        if not logger_name.startswith(prefix):
            return None
        return logger_name[len(prefix):].split(".", 1)[0] or None

    def emit(self, record: logging.LogRecord) -> None:
        key = self.route_key(record.name)
        emitter = self._routes.get(key) if key else None
        if emitter is None:
            return
        try:
            payload = getattr(record, "payload", None)
            emitter.publish(
                DiagnosticMessage(
                    level=record.levelname.lower(),
                    message=record.getMessage(),
                    payload=payload if isinstance(payload, dict) else None,
                )
            )
        except Exception:
            self.handleError(record)


# Shared bridges, one per logger name
_bridges: dict[str, LoggingBridge] = {}


def get_logging_bridge(logger_name: str) -> LoggingBridge:
    """Get the process-wide bridge for a logger name."""
    bridge = _bridges.get(logger_name)
    if bridge is None:
        bridge = LoggingBridge(logger_name)
        _bridges[logger_name] = bridge
    return bridge
