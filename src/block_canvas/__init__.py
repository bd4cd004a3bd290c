"""
Block-Canvas - composable layouts for block-architecture documents

Lays out System > HighLevelBlock > IntermediateBlock > GranularBlock
documents as nested, namespaced nodes and edges, and composes several
systems on one canvas without overlap.

Example:
    >>> from block_canvas import CompositionManager, ingest_document
    >>> manager = CompositionManager()
    >>> result = ingest_document(manager, {"HighBlocks": []})
    >>> result.ok
    True
    >>> len(manager.view().nodes)
    4
"""

from .collision import DragOutcome, DragSession, Rect, collides_with_any, rects_overlap
from .composition import CompositionManager, absolute_positions
from .errors import (
    BlockCanvasError,
    DanglingReference,
    DragSessionError,
    MalformedInputError,
    UnknownSystemError,
)
from .ingest import IngestResult, ValidationResult, ingest_document, ingest_file, ingest_text, validate_document
from .layout import layout_document, layout_system
from .models import (
    CanvasSize,
    CanvasView,
    EdgeStyle,
    GranularBlock,
    HighLevelBlock,
    IntermediateBlock,
    LayoutEdge,
    LayoutNode,
    LayoutResult,
    LoadedSystem,
    NodeKind,
    Position,
    RemovalHandle,
    Size,
    SystemBlock,
)
from .namespace import Namespacer, namespaced
from .parser import normalize_document, parse_file, parse_json, parse_yaml

__version__ = "0.1.0"

__all__ = [
    # Ingestion
    "ingest_document",
    "ingest_text",
    "ingest_file",
    "validate_document",
    "IngestResult",
    "ValidationResult",
    # Composition
    "CompositionManager",
    "absolute_positions",
    # Layout
    "layout_system",
    "layout_document",
    "Namespacer",
    "namespaced",
    # Collision
    "Rect",
    "rects_overlap",
    "collides_with_any",
    "DragSession",
    "DragOutcome",
    # Parser
    "normalize_document",
    "parse_json",
    "parse_yaml",
    "parse_file",
    # Models
    "SystemBlock",
    "HighLevelBlock",
    "IntermediateBlock",
    "GranularBlock",
    "LayoutNode",
    "LayoutEdge",
    "LayoutResult",
    "LoadedSystem",
    "CanvasView",
    "CanvasSize",
    "NodeKind",
    "EdgeStyle",
    "Position",
    "Size",
    "RemovalHandle",
    # Errors
    "BlockCanvasError",
    "MalformedInputError",
    "UnknownSystemError",
    "DragSessionError",
    "DanglingReference",
]
