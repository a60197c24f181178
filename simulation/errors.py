"""
Exception hierarchy for the pLTV simulation engine.

Numerical edge cases never raise; these are reserved for structural problems
with inputs and for caller-driven cancellation.
"""

from typing import Any, Dict, List, Optional


class PLTVError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class InvalidConfigError(PLTVError):
    """Raised by explicit config validation, listing every offending field."""

    def __init__(self, fields: List[str], details: Optional[Dict[str, Any]] = None):
        self.fields = list(fields)
        super().__init__(f"Invalid configuration: {', '.join(self.fields)}", details)


class MalformedInputError(PLTVError):
    """Raised when a raw table or feature matrix lacks required columns."""

    def __init__(self, table: str, missing: List[str]):
        self.table = table
        self.missing = list(missing)
        super().__init__(
            f"Table '{table}' is missing required column(s): {', '.join(self.missing)}",
            {'table': table, 'missing': self.missing},
        )


class OperationCancelled(PLTVError):
    """Raised when a caller's cancellation callback asks a long run to stop."""

    def __init__(self, stage: str, progress: int):
        self.stage = stage
        self.progress = progress
        super().__init__(f"{stage} cancelled after {progress} step(s)",
                         {'stage': stage, 'progress': progress})
