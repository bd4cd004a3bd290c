"""Ingestion of block documents into a ``CompositionManager``.

Ingestion never raises for bad input.  A document that cannot be parsed or
has no block list produces a failed ``IngestResult`` carrying a
human-readable message, and the registry is left unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .composition import CompositionManager
from .errors import MalformedInputError
from .layout import layout_system
from .models import LoadedSystem, RemovalHandle, Size
from .parser import BLOCK_LIST_KEYS, find_block_list, normalize_document, parse_file, parse_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    message: str = ""


@dataclass
class IngestResult:
    """Outcome of one ingestion attempt."""
    ok: bool
    system: Optional[LoadedSystem] = None
    error: Optional[str] = None


def validate_document(document: Any) -> ValidationResult:
    """Check the document has a block list under one of the accepted names."""
    if not isinstance(document, dict):
        return ValidationResult(ok=False, message="Invalid JSON structure: expected an object")
    if find_block_list(document) is None:
        names = " or ".join(BLOCK_LIST_KEYS)
        return ValidationResult(ok=False, message=f"Invalid JSON structure: Missing {names}")
    return ValidationResult(ok=True)


def ingest_document(manager: CompositionManager, document: Any) -> IngestResult:
    """Validate, lay out and register one parsed document."""
    validation = validate_document(document)
    if not validation.ok:
        logger.warning(f"Rejected document: {validation.message}")
        return IngestResult(ok=False, error=validation.message)

    try:
        tree = normalize_document(document)
    except MalformedInputError as e:
        logger.warning(f"Rejected document: {e}")
        return IngestResult(ok=False, error=str(e))

    system_id = manager.new_system_id()
    origin = manager.next_origin()
    removal = RemovalHandle(system_id=system_id).bind(manager.remove)

    result = layout_system(tree, origin, namespace=system_id, removal=removal)
    if result.dangling_references:
        logger.debug(
            f"System {system_id} has {len(result.dangling_references)} dangling FeedsInto reference(s)"
        )

    system = LoadedSystem(
        id=system_id,
        name=tree.name,
        origin=origin,
        size=Size(width=result.width, height=result.height),
        nodes=result.nodes,
        edges=result.edges,
        removal=removal,
        dangling_references=result.dangling_references,
    )
    manager.add(system)
    return IngestResult(ok=True, system=system)


def ingest_text(manager: CompositionManager, text: str, fmt: str = "json") -> IngestResult:
    """Parse ``text`` and ingest it."""
    try:
        document = parse_text(text, fmt)
    except MalformedInputError as e:
        logger.warning(f"Rejected document: {e}")
        return IngestResult(ok=False, error=str(e))
    return ingest_document(manager, document)


def ingest_file(manager: CompositionManager, path: str | Path) -> IngestResult:
    """Read and ingest a JSON or YAML document file."""
    try:
        document = parse_file(path)
    except MalformedInputError as e:
        logger.warning(f"Rejected {path}: {e}")
        return IngestResult(ok=False, error=str(e))
    except OSError as e:
        logger.warning(f"Could not read {path}: {e}")
        return IngestResult(ok=False, error=f"Error reading file: {e}")
    return ingest_document(manager, document)
