"""Error taxonomy for Block-Canvas.

Only programming errors against the registry escape as exceptions.
Malformed documents are caught at the ingestion boundary and turned into a
failed ``IngestResult``; dangling references are recorded, never raised.
"""

from __future__ import annotations
from dataclasses import dataclass


class BlockCanvasError(Exception):
    """Base class for every error raised by this package."""


class MalformedInputError(BlockCanvasError):
    """The document is missing its block list or has an invalid shape."""


class UnknownSystemError(BlockCanvasError, KeyError):
    """No loaded system has the requested id."""

    def __init__(self, system_id: str):
        super().__init__(system_id)
        self.system_id = system_id

    def __str__(self) -> str:
        return f"Unknown system: {self.system_id}"


class DragSessionError(BlockCanvasError):
    """A drag session was opened twice or used after it ended."""


@dataclass(frozen=True)
class DanglingReference:
    """A ``FeedsInto`` target that names no granular block in the system."""
    source_id: str
    target_id: str
