"""
Composition of multiple systems on one shared canvas.

``CompositionManager`` owns the ordered registry of ``LoadedSystem``s and
is the only place that mutates it.  Three operations change the registry,
``add``, ``remove`` and ``reposition``, and each one completes before any
listener is notified, so no partial state is ever observable.

Placement constants:
  - First system at (50, 50)
  - Each new system 200px below the lowest existing one, left-aligned at x=50
  - Canvas at least 2000×2000, with 200px of slack past the furthest system
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable, Iterator, Optional

from .collision import DragSession, Rect
from .errors import DragSessionError, UnknownSystemError
from .models import (
    CanvasSize,
    CanvasView,
    LayoutEdge,
    LayoutNode,
    LoadedSystem,
    NodeKind,
    Position,
)

logger = logging.getLogger(__name__)


START_X = 50
START_Y = 50
STACK_GAP = 200

MIN_CANVAS_WIDTH = 2000
MIN_CANVAS_HEIGHT = 2000
CANVAS_SLACK = 200

SYSTEM_ID_LENGTH = 8


ChangeListener = Callable[[CanvasView], None]


def absolute_positions(view: CanvasView) -> dict[str, tuple[float, float]]:
    """Canvas coordinates of every node, resolved through parent chains."""
    by_id = {n.id: n for n in view.nodes}
    resolved: dict[str, tuple[float, float]] = {}

    def resolve(node: LayoutNode) -> tuple[float, float]:
        if node.id in resolved:
            return resolved[node.id]
        x, y = node.position.x, node.position.y
        parent = by_id.get(node.parent_id) if node.parent_id else None
        if parent is not None:
            px, py = resolve(parent)
            x, y = x + px, y + py
        resolved[node.id] = (x, y)
        return resolved[node.id]

    for node in view.nodes:
        resolve(node)
    return resolved


class CompositionManager:
    """Ordered registry of loaded systems plus the merged canvas view."""

    def __init__(self):
        self._systems: list[LoadedSystem] = []
        self._listeners: list[ChangeListener] = []
        self._drag: Optional[DragSession] = None

    # ------------------------------------------------------------------
    # Registry access
    # ------------------------------------------------------------------

    @property
    def systems(self) -> list[LoadedSystem]:
        """Snapshot of the registry in load order."""
        return list(self._systems)

    def __len__(self) -> int:
        return len(self._systems)

    def __iter__(self) -> Iterator[LoadedSystem]:
        return iter(list(self._systems))

    def __contains__(self, system_id: object) -> bool:
        return any(s.id == system_id for s in self._systems)

    def get(self, system_id: str) -> LoadedSystem:
        for system in self._systems:
            if system.id == system_id:
                return system
        raise UnknownSystemError(system_id)

    def new_system_id(self) -> str:
        """Return an opaque id no loaded system uses yet."""
        while True:
            candidate = uuid.uuid4().hex[:SYSTEM_ID_LENGTH]
            if candidate not in self:
                return candidate

    # ------------------------------------------------------------------
    # Placement and bounds
    # ------------------------------------------------------------------

    def next_origin(self) -> Position:
        """Origin for the next system: stacked below everything loaded so far."""
        if not self._systems:
            return Position(x=START_X, y=START_Y)
        max_bottom = max(s.bottom for s in self._systems)
        return Position(x=START_X, y=max_bottom + STACK_GAP)

    def canvas_size(self) -> CanvasSize:
        """Canvas extent derived from the current registry."""
        if not self._systems:
            return CanvasSize(width=MIN_CANVAS_WIDTH, height=MIN_CANVAS_HEIGHT)
        return CanvasSize(
            width=max(MIN_CANVAS_WIDTH, max(s.right for s in self._systems) + CANVAS_SLACK),
            height=max(MIN_CANVAS_HEIGHT, max(s.bottom for s in self._systems) + CANVAS_SLACK),
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, system: LoadedSystem) -> LoadedSystem:
        if system.id in self:
            raise ValueError(f"System id already loaded: {system.id}")
        self._systems.append(system)
        logger.info(f"Loaded system {system.id} ({system.name}) at ({system.origin.x}, {system.origin.y})")
        self._notify()
        return system

    def remove(self, system_id: str) -> LoadedSystem:
        """Remove a system.  The remaining systems keep their origins."""
        system = self.get(system_id)
        if self._drag is not None and self._drag.system_id == system_id:
            raise DragSessionError(f"Cannot remove {system_id} while it is being dragged")
        self._systems = [s for s in self._systems if s.id != system_id]
        logger.info(f"Removed system {system_id} ({system.name})")
        self._notify()
        return system

    def reposition(self, system_id: str, origin: Position) -> LoadedSystem:
        """Move a system's envelope.  Internal layout is untouched."""
        system = self.get(system_id)
        system.origin = Position(x=origin.x, y=origin.y)
        logger.debug(f"Repositioned system {system_id} to ({origin.x}, {origin.y})")
        self._notify()
        return system

    # ------------------------------------------------------------------
    # Drag sessions
    # ------------------------------------------------------------------

    @property
    def active_drag(self) -> Optional[DragSession]:
        return self._drag

    def begin_drag(self, system_id: str) -> DragSession:
        """Open the single drag session for ``system_id``."""
        if self._drag is not None:
            raise DragSessionError(
                f"A drag session for {self._drag.system_id} is already in progress"
            )
        system = self.get(system_id)
        self._drag = DragSession(
            system_id=system_id,
            start=system.origin,
            size=system.size,
            obstacles=lambda: self._obstacles_for(system_id),
            commit=self.reposition,
            on_close=self._close_drag,
        )
        return self._drag

    def cancel_drag(self) -> None:
        """Abandon the active drag session, if any.  The system keeps its origin."""
        if self._drag is None:
            return
        self._drag.cancel()
        self._notify()

    def _obstacles_for(self, system_id: str) -> list[Rect]:
        # Read at every collision test; systems added mid-drag are obstacles too
        return [Rect.at(s.origin, s.size) for s in self._systems if s.id != system_id]

    def _close_drag(self, session: DragSession) -> None:
        if self._drag is session:
            self._drag = None

    # ------------------------------------------------------------------
    # Merged output
    # ------------------------------------------------------------------

    def _display_origin(self, system: LoadedSystem) -> Position:
        if self._drag is not None and self._drag.system_id == system.id:
            return self._drag.visual_position
        return system.origin

    def view(self) -> CanvasView:
        """Concatenate every system's nodes and edges in registry order.

        Each envelope is re-anchored at its system's origin (or at the
        visual position of an in-progress drag).
        """
        nodes: list[LayoutNode] = []
        edges: list[LayoutEdge] = []

        for system in self._systems:
            origin = self._display_origin(system)
            for node in system.nodes:
                if node.kind == NodeKind.SYSTEM:
                    node = node.model_copy(update={"position": Position(x=origin.x, y=origin.y)}, deep=True)
                nodes.append(node)
            edges.extend(system.edges)

        return CanvasView(nodes=nodes, edges=edges, canvas=self.canvas_size())

    def absolute_position(self, node_id: str) -> Position:
        """Canvas position of one node in the current view."""
        positions = absolute_positions(self.view())
        if node_id not in positions:
            raise KeyError(node_id)
        x, y = positions[node_id]
        return Position(x=x, y=y)

    def connections_of(self, node_id: str) -> tuple[list[LayoutEdge], set[str]]:
        """Edges touching ``node_id`` and the node ids they connect.

        Only edges from the node's own system are considered.
        """
        for system in self._systems:
            if any(n.id == node_id for n in system.nodes):
                edges = [e for e in system.edges if e.source == node_id or e.target == node_id]
                connected = {node_id}
                for edge in edges:
                    connected.add(edge.source)
                    connected.add(edge.target)
                return edges, connected
        raise KeyError(node_id)

    def trigger_removal(self, node_id: str) -> LoadedSystem:
        """Invoke the removal capability attached to a removal control node."""
        for system in self._systems:
            for node in system.nodes:
                if node.id == node_id:
                    if node.kind != NodeKind.REMOVAL_CONTROL:
                        raise ValueError(f"Node {node_id} is not a removal control")
                    handle = node.payload.get("removal")
                    if handle is None:
                        return self.remove(system.id)
                    return handle()
        raise KeyError(node_id)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Call ``listener`` with the new view after every change.

        Returns a function that unsubscribes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        view = self.view()
        for listener in list(self._listeners):
            listener(view)
