"""
Hierarchical layout engine for Block-Canvas.

Turns one ``SystemBlock`` tree into positioned, namespaced nodes and edges.
Layout is deterministic and purely structural: sizes depend only on how
many children each block has, never on text or edge topology.

The engine runs two passes:

  1. Sizing (bottom-up): intermediate blocks are sized from their
     granular count, high-level blocks from their intermediates.
  2. Placement (top-down): high-level blocks go left to right inside the
     system envelope, intermediates stack inside them, granular circles
     stack inside the intermediates.

Every node position is relative to its parent container.  Only the system
envelope is placed on the canvas, at the origin supplied by the caller, so
moving a system later only ever changes that one position.

Spacing constants:
  - Envelope margin: 50px on every side of the high-level row
  - High-level blocks: 150px horizontal gap
  - Intermediate blocks: 30px vertical gap, 50px top offset
  - Granular blocks: 130px vertical pitch, 50px top offset, 110px circles
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from .errors import DanglingReference
from .models import (
    EdgeStyle,
    GranularBlock,
    HighLevelBlock,
    IntermediateBlock,
    LayoutEdge,
    LayoutNode,
    LayoutResult,
    NodeKind,
    Position,
    RemovalHandle,
    Size,
    SystemBlock,
)
from .namespace import Namespacer
from .parser import find_block_list, normalize_document

logger = logging.getLogger(__name__)


# --- Sizing constants ---

INTERMEDIATE_WIDTH = 250
INTERMEDIATE_EMPTY_HEIGHT = 120
INTERMEDIATE_PADDING = 60

HIGH_LEVEL_MIN_WIDTH = 350
HIGH_LEVEL_PADDING_X = 80
HIGH_LEVEL_MIN_HEIGHT = 180
HIGH_LEVEL_PADDING_Y = 60

GRANULAR_SIZE = 110

# --- Placement constants ---

SYSTEM_MARGIN = 50
HIGH_LEVEL_START_X = 50
HIGH_LEVEL_START_Y = 50
HIGH_LEVEL_GAP = 150

INTERMEDIATE_START_Y = 50
INTERMEDIATE_GAP = 30

GRANULAR_START_Y = 50
GRANULAR_SPACING = 130

# --- Decoration constants ---

LABEL_SIZES: dict[NodeKind, tuple[float, float]] = {
    NodeKind.SYSTEM: (220, 40),
    NodeKind.HIGH_LEVEL_GROUP: (150, 36),
    NodeKind.INTERMEDIATE_GROUP: (120, 32),
}

REMOVAL_CONTROL_SIZE = 36
DRAG_HANDLE_SIZE = 24

# --- Edge styling ---

INTERACTION_BLOCK_NAME = "Interaction"
DATA_EDGE_Z_ORDER = 9999
INTERACTION_EDGE_Z_ORDER = 1000


@dataclass
class IntermediateSizing:
    """Computed size of one intermediate block."""
    width: float
    height: float
    granular_count: int


@dataclass
class HighLevelSizing:
    """Computed size of one high-level block and its intermediates."""
    width: float
    height: float
    intermediates: list[IntermediateSizing] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Sizing pass
# ---------------------------------------------------------------------------

def size_intermediate(block: IntermediateBlock) -> IntermediateSizing:
    """Size an intermediate block from its granular count."""
    count = len(block.granular_blocks)
    if count == 0:
        height = INTERMEDIATE_EMPTY_HEIGHT
    else:
        height = count * GRANULAR_SPACING + INTERMEDIATE_PADDING
    return IntermediateSizing(width=INTERMEDIATE_WIDTH, height=height, granular_count=count)


def size_high_level(block: HighLevelBlock) -> HighLevelSizing:
    """Size a high-level block from its (already sized) intermediates."""
    intermediates = [size_intermediate(b) for b in block.intermediate_blocks]

    if intermediates:
        width = max(HIGH_LEVEL_MIN_WIDTH, max(s.width for s in intermediates)) + HIGH_LEVEL_PADDING_X
    else:
        width = HIGH_LEVEL_MIN_WIDTH

    stacked = sum(s.height + INTERMEDIATE_GAP for s in intermediates)
    height = max(HIGH_LEVEL_MIN_HEIGHT, stacked + HIGH_LEVEL_PADDING_Y)

    return HighLevelSizing(width=width, height=height, intermediates=intermediates)


# ---------------------------------------------------------------------------
# Node builders
# ---------------------------------------------------------------------------

def _label_node(
    node_id: str,
    parent_id: str,
    owner_kind: NodeKind,
    text: str,
    level: str,
) -> LayoutNode:
    """Title ribbon pinned to the top-left corner of a container."""
    width, height = LABEL_SIZES[owner_kind]
    return LayoutNode(
        id=node_id,
        kind=NodeKind.LABEL,
        position=Position(x=0, y=0),
        size=Size(width=width, height=height),
        parent_id=parent_id,
        draggable=False,
        payload={"label": text, "level": level},
    )


def _granular_payload(block: GranularBlock, system_id: str) -> dict[str, Any]:
    return {
        "label": block.name,
        "blockId": block.id,
        "systemId": system_id,
        "inputs": list(block.inputs),
        "outputs": list(block.outputs),
        "feedsInto": list(block.feeds_into),
        "description": block.description,
        "citation": block.citation,
    }


def _edge_style(high_level_name: str) -> EdgeStyle:
    if high_level_name == INTERACTION_BLOCK_NAME:
        return EdgeStyle.INTERACTION_DEPENDENCY
    return EdgeStyle.DATA_DEPENDENCY


# ---------------------------------------------------------------------------
# Edge construction
# ---------------------------------------------------------------------------

def _unique_edge_id(base: str, emitted: set[str]) -> str:
    """Return ``base`` or the first free ``base-N`` (N >= 2), and claim it.

    Block ids may contain dashes, so a suffixed id can equal another
    pair's plain id; every candidate is checked against ``emitted``.
    """
    candidate = base
    suffix = 1
    while candidate in emitted:
        suffix += 1
        candidate = f"{base}-{suffix}"
    emitted.add(candidate)
    return candidate


def _build_edges(
    system: SystemBlock,
    ns: Namespacer,
) -> tuple[list[LayoutEdge], list[DanglingReference]]:
    """Resolve ``feeds_into`` references into styled edges.

    Targets that name no granular block in this system are skipped and
    returned as dangling references.  Repeated (source, target) pairs each
    get their own edge with a numeric suffix.
    """
    known_ids = {block.id for block in system.all_granular_blocks()}

    edges: list[LayoutEdge] = []
    dangling: list[DanglingReference] = []
    emitted: set[str] = set()

    for high in system.high_level_blocks:
        style = _edge_style(high.name)
        is_data = style == EdgeStyle.DATA_DEPENDENCY

        for intermediate in high.intermediate_blocks:
            for block in intermediate.granular_blocks:
                for target_id in block.feeds_into:
                    if target_id not in known_ids:
                        dangling.append(DanglingReference(source_id=block.id, target_id=target_id))
                        continue

                    local_id = _unique_edge_id(f"edge-{block.id}-{target_id}", emitted)

                    edges.append(LayoutEdge(
                        id=ns(local_id),
                        source=ns(f"gran-{block.id}"),
                        target=ns(f"gran-{target_id}"),
                        style_class=style,
                        z_order=DATA_EDGE_Z_ORDER if is_data else INTERACTION_EDGE_Z_ORDER,
                        animated=is_data,
                        arrowhead=is_data,
                        payload={"systemId": ns.namespace, "highLevelBlock": high.name},
                    ))

    return edges, dangling


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def layout_system(
    system: SystemBlock,
    origin: Position,
    namespace: str,
    removal: Optional[RemovalHandle] = None,
) -> LayoutResult:
    """
    Lay out one system tree.

    Args:
        system: The normalized block tree.
        origin: Absolute canvas position of the system envelope.
        namespace: Prefix for every generated id (the system id).
        removal: Capability attached to the removal control node.

    Returns:
        A ``LayoutResult`` whose ``width``/``height`` are the envelope size.
    """
    ns = Namespacer(namespace)
    envelope_id = ns("system")

    nodes: list[LayoutNode] = []

    # --- Step 1: Size every block bottom-up ---
    sizings = [size_high_level(high) for high in system.high_level_blocks]

    # --- Step 2: Place high-level blocks left to right ---
    high_x = HIGH_LEVEL_START_X
    right_edge = 0.0
    bottom_edge = 0.0

    for hi, (high, high_size) in enumerate(zip(system.high_level_blocks, sizings)):
        high_id = ns(f"high-group-{hi}")
        nodes.append(LayoutNode(
            id=high_id,
            kind=NodeKind.HIGH_LEVEL_GROUP,
            position=Position(x=high_x, y=HIGH_LEVEL_START_Y),
            size=Size(width=high_size.width, height=high_size.height),
            parent_id=envelope_id,
            payload={"label": high.name, "level": "highest", "systemId": namespace},
        ))
        nodes.append(_label_node(
            ns(f"high-label-{hi}"), high_id, NodeKind.HIGH_LEVEL_GROUP, high.name, "highest",
        ))

        # --- Step 3: Stack intermediates, centered in the high-level block ---
        int_y = INTERMEDIATE_START_Y
        for ii, (intermediate, int_size) in enumerate(
            zip(high.intermediate_blocks, high_size.intermediates)
        ):
            int_id = ns(f"int-group-{hi}-{ii}")
            nodes.append(LayoutNode(
                id=int_id,
                kind=NodeKind.INTERMEDIATE_GROUP,
                position=Position(x=(high_size.width - int_size.width) / 2, y=int_y),
                size=Size(width=int_size.width, height=int_size.height),
                parent_id=high_id,
                payload={
                    "label": intermediate.name,
                    "level": "intermediate",
                    "systemId": namespace,
                },
            ))
            nodes.append(_label_node(
                ns(f"int-label-{hi}-{ii}"), int_id, NodeKind.INTERMEDIATE_GROUP,
                intermediate.name, "intermediate",
            ))

            # --- Step 4: Stack granular circles inside the intermediate ---
            center_x = int_size.width / 2
            for gi, block in enumerate(intermediate.granular_blocks):
                nodes.append(LayoutNode(
                    id=ns(f"gran-{block.id}"),
                    kind=NodeKind.GRANULAR,
                    position=Position(
                        x=center_x - GRANULAR_SIZE / 2,
                        y=GRANULAR_START_Y + gi * GRANULAR_SPACING,
                    ),
                    size=Size(width=GRANULAR_SIZE, height=GRANULAR_SIZE),
                    parent_id=int_id,
                    payload=_granular_payload(block, namespace),
                ))

            int_y += int_size.height + INTERMEDIATE_GAP

        right_edge = max(right_edge, high_x + high_size.width)
        bottom_edge = max(bottom_edge, HIGH_LEVEL_START_Y + high_size.height)
        high_x += high_size.width + HIGH_LEVEL_GAP

    # --- Step 5: Envelope around the high-level row, plus its controls ---
    width = right_edge + SYSTEM_MARGIN if sizings else 2 * SYSTEM_MARGIN
    height = bottom_edge + SYSTEM_MARGIN if sizings else 2 * SYSTEM_MARGIN

    envelope = LayoutNode(
        id=envelope_id,
        kind=NodeKind.SYSTEM,
        position=Position(x=origin.x, y=origin.y),
        size=Size(width=width, height=height),
        parent_id=None,
        draggable=True,
        payload={"label": system.name, "level": "system", "systemId": namespace},
    )
    controls = [
        _label_node(ns("system-label"), envelope_id, NodeKind.SYSTEM, system.name, "system"),
        LayoutNode(
            id=ns("remove-button"),
            kind=NodeKind.REMOVAL_CONTROL,
            position=Position(x=width - REMOVAL_CONTROL_SIZE, y=0),
            size=Size(width=REMOVAL_CONTROL_SIZE, height=REMOVAL_CONTROL_SIZE),
            parent_id=envelope_id,
            payload={"systemId": namespace, "removal": removal},
        ),
        LayoutNode(
            id=ns("drag-handle"),
            kind=NodeKind.DRAG_HANDLE,
            position=Position(x=-DRAG_HANDLE_SIZE / 2, y=-DRAG_HANDLE_SIZE / 2),
            size=Size(width=DRAG_HANDLE_SIZE, height=DRAG_HANDLE_SIZE),
            parent_id=envelope_id,
            payload={"systemId": namespace},
        ),
    ]

    # Parents precede their children in the node list
    nodes = [envelope] + controls + nodes

    # --- Step 6: Resolve cross-references ---
    edges, dangling = _build_edges(system, ns)
    for ref in dangling:
        logger.debug(f"Skipping dangling reference {ref.source_id} -> {ref.target_id} in {namespace}")

    return LayoutResult(
        nodes=nodes,
        edges=edges,
        width=width,
        height=height,
        dangling_references=dangling,
    )


def layout_document(
    document: Any,
    origin: Position,
    namespace: str,
    removal: Optional[RemovalHandle] = None,
) -> LayoutResult:
    """Lay out a raw parsed document.

    A document with no block list under either accepted name yields an
    empty result instead of an error.
    """
    if find_block_list(document) is None:
        return LayoutResult()
    return layout_system(normalize_document(document), origin, namespace, removal)
