"""
Debug Logging Utility
Clause-level tracing for the grammar and extractor, switched on process-wide
"""
import logging

_trace_logger = logging.getLogger('sql_visualizer.debug')

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


class DebugLogger:
    """Centralized debug logging utility."""

    _enabled = False  # Set to True (or SQL_VISUALIZER_DEBUG_TRACE=1) for verbose traces

    @classmethod
    def log(cls, message: str, *args):
        """Log a debug message."""
        if cls._enabled:
            formatted = message.format(*args) if args else message
            _trace_logger.debug(formatted)

    @classmethod
    def disable(cls):
        """Disable debug logging."""
        cls._enabled = False

    @classmethod
    def enable(cls):
        """Enable debug logging."""
        cls._enabled = True

    @classmethod
    def is_enabled(cls) -> bool:
        return cls._enabled


def configure_logging(level: str = 'info'):
    """Install a root handler; uvicorn adds its own loggers on top of this."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    if DebugLogger.is_enabled():
        _trace_logger.setLevel(logging.DEBUG)
