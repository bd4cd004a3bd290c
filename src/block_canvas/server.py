"""Block-Canvas server: MCP tools for composing block-architecture canvases."""

from __future__ import annotations

import json
import logging
import os
import uuid
from pathlib import Path

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool
from pydantic import ValidationError

from .composition import CompositionManager
from .errors import BlockCanvasError
from .ingest import ingest_text
from .models import LoadedSystem, Position
from .renderer import CanvasRenderer
from .themes import EDGE_LEGEND

logger = logging.getLogger(__name__)


# --- Constants ---
OUTPUT_DIR = Path(os.environ.get("BLOCK_CANVAS_OUTPUT_DIR", Path.home() / ".block-canvas"))
LOG_LEVEL = os.environ.get("BLOCK_CANVAS_LOG_LEVEL", "INFO")

server = Server("block-canvas")
manager = CompositionManager()


def _ensure_output_dir():
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)


def _system_summary(system: LoadedSystem) -> dict:
    return {
        "id": system.id,
        "name": system.name,
        "origin": {"x": system.origin.x, "y": system.origin.y},
        "size": {"width": system.size.width, "height": system.size.height},
        "nodes": len(system.nodes),
        "edges": len(system.edges),
        "dangling_references": [
            {"source": ref.source_id, "target": ref.target_id}
            for ref in system.dangling_references
        ],
    }


def _position(point: dict) -> Position:
    return Position(x=point["x"], y=point["y"])


def _text(payload: dict) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload))]


# --- Tool definitions ---

@server.list_tools()
async def list_tools() -> list[Tool]:
    return [
        Tool(
            name="load_system",
            description=(
                "Load a block-architecture document onto the shared canvas. "
                "The document holds HighestLevelBlocks (or HighBlocks) > "
                "IntermediateBlocks > GranularBlocks, with FeedsInto references "
                "between granular block IDs. The new system is stacked below the "
                "systems already loaded. Returns the new system id."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "document": {
                        "type": "string",
                        "description": "JSON (or YAML) document text.",
                    },
                    "format": {
                        "type": "string",
                        "enum": ["json", "yaml"],
                        "description": "Document format. Default: json.",
                        "default": "json",
                    },
                },
                "required": ["document"],
            },
        ),
        Tool(
            name="list_systems",
            description="List the systems currently on the canvas, in load order.",
            inputSchema={
                "type": "object",
                "properties": {},
            },
        ),
        Tool(
            name="move_system",
            description=(
                "Drag a system envelope to a new top-left position. Intermediate "
                "pointer positions may be given as 'path'. If the final position "
                "overlaps another system, the system snaps back to the last "
                "non-overlapping position."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "system_id": {"type": "string"},
                    "x": {"type": "number"},
                    "y": {"type": "number"},
                    "path": {
                        "type": "array",
                        "description": "Optional intermediate positions, in order.",
                        "items": {
                            "type": "object",
                            "properties": {
                                "x": {"type": "number"},
                                "y": {"type": "number"},
                            },
                            "required": ["x", "y"],
                        },
                    },
                },
                "required": ["system_id", "x", "y"],
            },
        ),
        Tool(
            name="remove_system",
            description="Remove a system from the canvas. Other systems keep their positions.",
            inputSchema={
                "type": "object",
                "properties": {
                    "system_id": {"type": "string"},
                },
                "required": ["system_id"],
            },
        ),
        Tool(
            name="get_canvas",
            description=(
                "Return the merged node and edge lists of every loaded system "
                "plus the canvas size, ready for a graph-rendering front end."
            ),
            inputSchema={
                "type": "object",
                "properties": {},
            },
        ),
        Tool(
            name="render_canvas",
            description="Render a PNG preview of the whole canvas. Returns the file path.",
            inputSchema={
                "type": "object",
                "properties": {
                    "filename": {
                        "type": "string",
                        "description": "Output filename (without extension). Default: auto-generated UUID.",
                    },
                    "scale": {
                        "type": "number",
                        "description": "Render scale factor (default 0.5)",
                        "default": 0.5,
                    },
                    "theme": {
                        "type": "string",
                        "enum": ["light", "dark"],
                        "default": "light",
                    },
                },
            },
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    if name == "load_system":
        return await _load_system(arguments)
    elif name == "list_systems":
        return await _list_systems(arguments)
    elif name == "move_system":
        return await _move_system(arguments)
    elif name == "remove_system":
        return await _remove_system(arguments)
    elif name == "get_canvas":
        return await _get_canvas(arguments)
    elif name == "render_canvas":
        return await _render_canvas(arguments)
    else:
        return [TextContent(type="text", text=f"Unknown tool: {name}")]


async def _load_system(args: dict) -> list[TextContent]:
    """Ingest a document and place it on the canvas."""
    result = ingest_text(manager, args["document"], args.get("format", "json"))
    if not result.ok:
        return [TextContent(type="text", text=f"Failed to load system: {result.error}")]

    canvas = manager.canvas_size()
    return _text({
        "status": "success",
        "system": _system_summary(result.system),
        "canvas": {"width": canvas.width, "height": canvas.height},
    })


async def _list_systems(args: dict) -> list[TextContent]:
    return _text({"systems": [_system_summary(s) for s in manager.systems]})


async def _move_system(args: dict) -> list[TextContent]:
    """Run one drag session: start, each path point, end."""
    system_id = args["system_id"]
    try:
        path = [_position(point) for point in args.get("path") or []]
        final = _position(args)
    except (KeyError, TypeError, ValidationError) as e:
        return [TextContent(type="text", text=f"Move failed: invalid position: {e}")]

    try:
        session = manager.begin_drag(system_id)
        try:
            for point in path:
                session.move(point)
            outcome = session.end(final)
        finally:
            if not session.closed:
                manager.cancel_drag()
    except BlockCanvasError as e:
        return [TextContent(type="text", text=f"Move failed: {e}")]

    canvas = manager.canvas_size()
    return _text({
        "status": "snapped_back" if outcome.snapped_back else "moved",
        "system_id": outcome.system_id,
        "origin": {"x": outcome.committed.x, "y": outcome.committed.y},
        "canvas": {"width": canvas.width, "height": canvas.height},
    })


async def _remove_system(args: dict) -> list[TextContent]:
    system_id = args["system_id"]
    try:
        system = manager.get(system_id)
        if system.removal is not None:
            system.removal()
        else:
            manager.remove(system_id)
    except BlockCanvasError as e:
        return [TextContent(type="text", text=f"Remove failed: {e}")]

    return _text({"status": "removed", "system_id": system_id, "remaining": len(manager)})


async def _get_canvas(args: dict) -> list[TextContent]:
    view = manager.view()
    payload = view.model_dump(mode="json", by_alias=True)
    payload["legend"] = {style.value: text for style, text in EDGE_LEGEND.items()}
    return _text(payload)


async def _render_canvas(args: dict) -> list[TextContent]:
    """Render the merged canvas to PNG."""
    _ensure_output_dir()

    filename = args.get("filename") or str(uuid.uuid4())[:8]
    output_path = str(OUTPUT_DIR / f"{filename}.png")

    try:
        renderer = CanvasRenderer(scale=args.get("scale", 0.5), theme=args.get("theme", "light"))
        renderer.render(manager.view(), output_path=output_path)
    except (ValueError, OSError) as e:
        logger.error(f"Render error: {e}")
        return [TextContent(type="text", text=f"Rendering failed: {e}")]

    return _text({
        "status": "success",
        "path": output_path,
        "systems": len(manager),
    })


def main():
    """Entry point for the MCP server."""
    import asyncio

    logging.basicConfig(
        level=LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    asyncio.run(_run())


async def _run():
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


if __name__ == "__main__":
    main()
