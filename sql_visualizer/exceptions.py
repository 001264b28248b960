"""
Exception hierarchy for the SQL visualizer
"""


class VisualizerError(RuntimeError):
    """Base exception for visualizer errors."""


class SQLSyntaxError(VisualizerError, ValueError):
    """Raised by the grammar when query text cannot be tokenized into a statement."""


class ParseError(VisualizerError, ValueError):
    """Raised by the extractor when a query cannot be turned into a structural graph."""


class StorageError(VisualizerError):
    """Raised by a storage backend when a value cannot be read or written."""


__all__ = [
    'VisualizerError',
    'SQLSyntaxError',
    'ParseError',
    'StorageError',
]
