"""
Data models for Block-Canvas: the block ontology and the layout records.

The input ontology is a four-level hierarchy describing an architecture:

    System
    └── HighLevelBlock        a broad functional area
        └── IntermediateBlock     a group of related steps
            └── GranularBlock         a single step (the leaf)

Granular blocks reference each other through ``feeds_into``; those
references become the edges of the laid-out graph.

The output side is a flat list of ``LayoutNode`` and ``LayoutEdge`` records.
Node positions are relative to the parent container (``parent_id``); only
the system envelope carries an absolute canvas position.  Output records
serialize with camelCase keys (``parentId``, ``styleClass``, ``zOrder``)
because that is what the rendering substrate consumes.
"""

from __future__ import annotations
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from pydantic.alias_generators import to_camel

from .errors import DanglingReference


# ---------------------------------------------------------------------------
# Input tree
# ---------------------------------------------------------------------------

class GranularBlock(BaseModel):
    """A granular block, the leaf of the hierarchy.

    ``id`` is the cross-reference key used by ``feeds_into``.  Ids are
    normalized to strings by the parser, so a document may mix ``1`` and
    ``"1"`` freely.
    """
    id: str
    name: str = ""
    inputs: list[str] = Field(default_factory=list)
    outputs: list[str] = Field(default_factory=list)
    feeds_into: list[str] = Field(default_factory=list)
    description: Optional[str] = None
    citation: Optional[str] = None


class IntermediateBlock(BaseModel):
    """A named group of granular blocks, stacked vertically when laid out."""
    name: str = ""
    granular_blocks: list[GranularBlock] = Field(default_factory=list)


class HighLevelBlock(BaseModel):
    """A broad functional area holding intermediate blocks.

    The reserved name ``"Interaction"`` marks every edge declared inside
    it as an interaction dependency instead of a data dependency.
    """
    name: str = ""
    intermediate_blocks: list[IntermediateBlock] = Field(default_factory=list)


class SystemBlock(BaseModel):
    """The root of one ingested document."""
    name: str = "Unnamed System"
    high_level_blocks: list[HighLevelBlock] = Field(default_factory=list)

    def all_granular_blocks(self) -> list[GranularBlock]:
        """Return every granular block in document order."""
        blocks = []
        for high in self.high_level_blocks:
            for intermediate in high.intermediate_blocks:
                blocks.extend(intermediate.granular_blocks)
        return blocks


# ---------------------------------------------------------------------------
# Layout output
# ---------------------------------------------------------------------------

class NodeKind(str, Enum):
    """Explicit role of a layout node."""
    SYSTEM = "system"
    HIGH_LEVEL_GROUP = "highLevelGroup"
    INTERMEDIATE_GROUP = "intermediateGroup"
    LABEL = "label"
    GRANULAR = "granular"
    REMOVAL_CONTROL = "removalControl"
    DRAG_HANDLE = "dragHandle"


class EdgeStyle(str, Enum):
    """Rendering class of an edge."""
    DATA_DEPENDENCY = "dataDependency"
    INTERACTION_DEPENDENCY = "interactionDependency"


class _HandoffModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Position(_HandoffModel):
    x: float = 0.0
    y: float = 0.0


class Size(_HandoffModel):
    width: float = 0.0
    height: float = 0.0


class RemovalHandle(_HandoffModel):
    """Capability to remove one loaded system.

    The handle is plain data (``action`` + ``system_id``) when serialized.
    The bound callback lives in a private attribute, so calling the handle
    removes exactly the system it was created for.
    """
    system_id: str
    action: str = "removeSystem"
    _callback: Optional[Callable[[str], Any]] = PrivateAttr(default=None)

    def bind(self, callback: Callable[[str], Any]) -> "RemovalHandle":
        self._callback = callback
        return self

    def __call__(self) -> Any:
        if self._callback is None:
            raise RuntimeError(f"Removal handle for {self.system_id} is not bound")
        return self._callback(self.system_id)


class LayoutNode(_HandoffModel):
    """A positioned node.

    ``position`` is relative to the node identified by ``parent_id``; a
    node without a parent (the system envelope) is positioned on the canvas.
    """
    id: str
    kind: NodeKind
    position: Position = Field(default_factory=Position)
    size: Size = Field(default_factory=Size)
    parent_id: Optional[str] = None
    draggable: bool = False
    payload: dict[str, Any] = Field(default_factory=dict)


class LayoutEdge(_HandoffModel):
    """A directed edge between two granular nodes."""
    id: str
    source: str
    target: str
    style_class: EdgeStyle = EdgeStyle.DATA_DEPENDENCY
    z_order: int = 0
    animated: bool = False
    arrowhead: bool = False
    payload: dict[str, Any] = Field(default_factory=dict)


class LayoutResult(BaseModel):
    """Output of the layout engine for one system."""
    nodes: list[LayoutNode] = Field(default_factory=list)
    edges: list[LayoutEdge] = Field(default_factory=list)
    width: float = 0.0
    height: float = 0.0
    dangling_references: list[DanglingReference] = Field(default_factory=list)

    def get_node(self, node_id: str) -> Optional[LayoutNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def nodes_of_kind(self, kind: NodeKind) -> list[LayoutNode]:
        return [n for n in self.nodes if n.kind == kind]


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------

class LoadedSystem(BaseModel):
    """One ingested system placed on the shared canvas.

    After creation only ``origin`` changes (on drag commit).  The nodes and
    edges keep the coordinates the layout engine gave them; the envelope is
    re-anchored at ``origin`` when the merged view is built.
    """
    id: str
    name: str
    origin: Position
    size: Size
    nodes: list[LayoutNode] = Field(default_factory=list)
    edges: list[LayoutEdge] = Field(default_factory=list)
    removal: Optional[RemovalHandle] = None
    dangling_references: list[DanglingReference] = Field(default_factory=list)

    @property
    def envelope_id(self) -> Optional[str]:
        for node in self.nodes:
            if node.kind == NodeKind.SYSTEM:
                return node.id
        return None

    @property
    def right(self) -> float:
        return self.origin.x + self.size.width

    @property
    def bottom(self) -> float:
        return self.origin.y + self.size.height


class CanvasSize(_HandoffModel):
    width: float
    height: float


class CanvasView(_HandoffModel):
    """Merged snapshot handed to the rendering substrate."""
    nodes: list[LayoutNode] = Field(default_factory=list)
    edges: list[LayoutEdge] = Field(default_factory=list)
    canvas: CanvasSize

    def get_node(self, node_id: str) -> Optional[LayoutNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None
