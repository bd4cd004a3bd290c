"""Document parser for Block-Canvas.

Supports two document variants that differ only in field names:

1. ``HighestLevelBlocks`` / ``HighestLevelBlockName`` / ``SystemName``
2. ``HighBlocks`` / ``HighBlockName`` / ``PaperTitle``

Both are normalized into one ``SystemBlock`` tree.  Defaults for optional
fields are applied here and nowhere else.  Documents may be JSON or YAML.
"""

from __future__ import annotations
import json
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from .errors import MalformedInputError
from .models import GranularBlock, HighLevelBlock, IntermediateBlock, SystemBlock


BLOCK_LIST_KEYS = ("HighestLevelBlocks", "HighBlocks")
HIGH_NAME_KEYS = ("HighestLevelBlockName", "HighBlockName")
SYSTEM_NAME_KEYS = ("SystemName", "PaperTitle")
DEFAULT_SYSTEM_NAME = "Unnamed System"


def parse_json(text: str) -> Any:
    """Parse a JSON string."""
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedInputError(f"Error parsing JSON: {e}") from e


def parse_yaml(text: str) -> Any:
    """Parse a YAML string."""
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise MalformedInputError(f"Error parsing YAML: {e}") from e


def parse_text(text: str, fmt: str = "json") -> Any:
    """Parse ``text`` as ``"json"`` or ``"yaml"``."""
    if fmt == "json":
        return parse_json(text)
    if fmt in ("yaml", "yml"):
        return parse_yaml(text)
    raise ValueError(f"Unknown document format '{fmt}'. Valid formats: json, yaml")


def parse_file(path: str | Path) -> Any:
    """Parse a document file; the suffix selects JSON or YAML."""
    path = Path(path)
    content = path.read_text()
    fmt = "yaml" if path.suffix.lower() in (".yaml", ".yml") else "json"
    return parse_text(content, fmt)


def find_block_list(data: Any) -> Optional[list]:
    """Return the top-level block list under either accepted name, if any."""
    if not isinstance(data, dict):
        return None
    for key in BLOCK_LIST_KEYS:
        value = data.get(key)
        if isinstance(value, list):
            return value
    return None


def _first(data: dict, keys: tuple[str, ...], default: Any = None) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return default


def normalize_id(value: Any) -> str:
    """Normalize a granular id (string or number) to its string form."""
    if isinstance(value, bool) or value is None or isinstance(value, (dict, list)):
        raise MalformedInputError(f"Invalid granular block ID: {value!r}")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def _as_list(data: dict, key: str, where: str) -> list:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedInputError(f"{where}: '{key}' must be a list")
    return value


def _as_mapping(value: Any, where: str) -> dict:
    if not isinstance(value, dict):
        raise MalformedInputError(f"{where} must be an object")
    return value


def _optional_text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def normalize_document(data: Any) -> SystemBlock:
    """Map either document variant onto the canonical ``SystemBlock`` tree.

    Raises:
        MalformedInputError: if the block list is missing under both names
            or any nested element has the wrong shape.
    """
    blocks = find_block_list(data)
    if blocks is None:
        names = " or ".join(BLOCK_LIST_KEYS)
        raise MalformedInputError(f"Invalid JSON structure: Missing {names}")

    try:
        system = SystemBlock(name=str(_first(data, SYSTEM_NAME_KEYS, DEFAULT_SYSTEM_NAME)))

        for hi, high_data in enumerate(blocks):
            where = f"{BLOCK_LIST_KEYS[0]}[{hi}]"
            high_data = _as_mapping(high_data, where)
            high = HighLevelBlock(name=str(_first(high_data, HIGH_NAME_KEYS, "")))

            for ii, int_data in enumerate(_as_list(high_data, "IntermediateBlocks", where)):
                int_where = f"{where}.IntermediateBlocks[{ii}]"
                int_data = _as_mapping(int_data, int_where)
                intermediate = IntermediateBlock(
                    name=str(int_data.get("IntermediateBlockName") or ""),
                )

                for gi, gran_data in enumerate(_as_list(int_data, "GranularBlocks", int_where)):
                    gran_where = f"{int_where}.GranularBlocks[{gi}]"
                    intermediate.granular_blocks.append(
                        _parse_granular(_as_mapping(gran_data, gran_where), gran_where)
                    )

                high.intermediate_blocks.append(intermediate)
            system.high_level_blocks.append(high)
    except ValidationError as e:
        raise MalformedInputError(f"Invalid block document: {e}") from e

    return system


def _parse_granular(data: dict, where: str) -> GranularBlock:
    """Parse a single granular block."""
    if "ID" not in data:
        raise MalformedInputError(f"{where}: missing 'ID'")

    return GranularBlock(
        id=normalize_id(data["ID"]),
        name=str(data.get("GranularBlockName") or ""),
        inputs=[str(v) for v in _as_list(data, "Inputs", where)],
        outputs=[str(v) for v in _as_list(data, "Outputs", where)],
        feeds_into=[normalize_id(v) for v in _as_list(data, "FeedsInto", where)],
        description=_optional_text(data.get("PaperDescription")),
        citation=_optional_text(data.get("ReferenceCitation")),
    )


def system_to_document(system: SystemBlock) -> dict:
    """Serialize a ``SystemBlock`` back to the primary document variant."""
    data: dict[str, Any] = {
        "SystemName": system.name,
        "HighestLevelBlocks": [],
    }

    for high in system.high_level_blocks:
        high_data = {"HighestLevelBlockName": high.name, "IntermediateBlocks": []}

        for intermediate in high.intermediate_blocks:
            int_data = {"IntermediateBlockName": intermediate.name, "GranularBlocks": []}

            for block in intermediate.granular_blocks:
                gran_data: dict[str, Any] = {
                    "ID": block.id,
                    "GranularBlockName": block.name,
                }
                if block.inputs:
                    gran_data["Inputs"] = block.inputs
                if block.outputs:
                    gran_data["Outputs"] = block.outputs
                if block.feeds_into:
                    gran_data["FeedsInto"] = block.feeds_into
                if block.description:
                    gran_data["PaperDescription"] = block.description
                if block.citation:
                    gran_data["ReferenceCitation"] = block.citation

                int_data["GranularBlocks"].append(gran_data)
            high_data["IntermediateBlocks"].append(int_data)
        data["HighestLevelBlocks"].append(high_data)

    return data


def system_to_yaml(system: SystemBlock) -> str:
    """Serialize a ``SystemBlock`` to YAML."""
    return yaml.dump(system_to_document(system), default_flow_style=False, sort_keys=False)


def system_to_json(system: SystemBlock, indent: int = 2) -> str:
    """Serialize a ``SystemBlock`` to JSON."""
    return json.dumps(system_to_document(system), indent=indent)
