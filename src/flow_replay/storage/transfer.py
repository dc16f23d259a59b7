"""
Flow Transfer - Export and import of flows as versioned JSON.

An export is an envelope ``{version, exportedAt, flow}`` for one flow or
``{version, exportedAt, flows}`` for a backup of several. On import,
every flow and step receives a fresh id and the timestamps are stamped
anew. The whole file is validated before anything is written to the
store, so a malformed file leaves existing flows untouched.

Example:
    >>> text = dumps(export_flow(flow))
    >>> imported = await import_flows(store, text)
"""

import json
import logging
import re
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from flow_replay.exceptions import ImportValidationError, StorageError
from flow_replay.interfaces.storage import IFlowStore
from flow_replay.models.flow import Flow, RecordedStep, StepType
from flow_replay.utils.ids import generate_id, now_ms

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0.0"


# =============================================================================
# ENVELOPE MODELS
# =============================================================================

class ExportedPoint(BaseModel):
    x: float = 0
    y: float = 0


class ExportedTarget(BaseModel):
    """Element selector as stored in an export."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    css: str = ""
    xpath: str = ""
    tag_name: str = Field(default="", alias="tagName")
    text: Optional[str] = None
    attributes: Dict[str, str] = Field(default_factory=dict)


class ExportedStep(BaseModel):
    """A step as stored in an export; the id is replaced on import."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    type: StepType
    timestamp: int = 0
    target: ExportedTarget = Field(default_factory=ExportedTarget)
    delay: int = Field(default=0, ge=0)
    value: Optional[str] = None
    position: Optional[ExportedPoint] = None
    scroll_position: Optional[ExportedPoint] = Field(default=None, alias="scrollPosition")
    url: Optional[str] = None
    description: Optional[str] = None



class ExportedFlow(BaseModel):
    """A flow as stored in an export; id and timestamps are replaced on import."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    name: str = Field(min_length=1)
    start_url: Optional[str] = Field(default=None, alias="startUrl")
    steps: List[ExportedStep]


class ExportFile(BaseModel):
    """Top level of an export: one ``flow`` or a ``flows`` backup."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    version: str = Field(min_length=1)
    flow: Optional[Any] = None
    flows: Optional[List[Any]] = None


# =============================================================================
# EXPORT
# =============================================================================

def export_flow(flow: Flow) -> Dict[str, Any]:
    """Envelope for a single flow."""
    return {"version": EXPORT_VERSION, "exportedAt": now_ms(), "flow": flow.to_dict()}


def export_flows(flows: List[Flow]) -> Dict[str, Any]:
    """Envelope for a backup of several flows."""
    return {
        "version": EXPORT_VERSION,
        "exportedAt": now_ms(),
        "flows": [flow.to_dict() for flow in flows],
    }


def dumps(envelope: Dict[str, Any]) -> str:
    return json.dumps(envelope, indent=2)


def sanitize_filename(name: str) -> str:
    """
    File-safe form of a flow name.

    Non-alphanumerics become '-', runs collapse, edges are trimmed, the
    result is lowercased and capped at 50 characters. Empty results
    become 'flow'.
    """
    cleaned = re.sub(r"[^a-zA-Z0-9]", "-", name)
    cleaned = re.sub(r"-+", "-", cleaned).strip("-").lower()
    return cleaned[:50] or "flow"


def flow_filename(flow: Flow) -> str:
    return f"{sanitize_filename(flow.name)}.json"


def backup_filename(day: Optional[date] = None) -> str:
    day = day or datetime.now(timezone.utc).date()
    return f"flow-recorder-backup-{day.isoformat()}.json"


def write_export(envelope: Dict[str, Any], path: Union[str, Path]) -> Path:
    """Write an envelope to disk and return the path written."""
    target = Path(path).expanduser()
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(dumps(envelope), encoding="utf-8")
    except OSError as e:
        raise StorageError(f"Cannot write export: {e}", path=str(target))
    logger.info(f"Exported to {target}")
    return target


# =============================================================================
# IMPORT
# =============================================================================

def parse_import(content: str) -> List[Flow]:
    """
    Validate an export file and prepare its flows for the store.

    Args:
        content: File content

    Returns:
        Flows with fresh ids and timestamps, in file order

    Raises:
        ImportValidationError: If anything in the file is malformed
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ImportValidationError("Invalid JSON", details={"error": str(e)})

    try:
        envelope = ExportFile.model_validate(data)
    except ValidationError as e:
        failed = {error["loc"][0] if error["loc"] else "" for error in e.errors()}
        if failed & {"", "version"}:
            raise ImportValidationError("Invalid file format: missing version")
        raise ImportValidationError("Invalid file format: no flow data found")

    if envelope.flow:
        raw_flows = [envelope.flow]
    elif envelope.flows is not None:
        raw_flows = envelope.flows
    else:
        raise ImportValidationError("Invalid file format: no flow data found")

    return [_prepare_flow(raw, index) for index, raw in enumerate(raw_flows)]


def _invalid_flow(error: ValidationError, index: int) -> ImportValidationError:
    loc = error.errors()[0]["loc"]
    if not loc:
        return ImportValidationError("Invalid flow data", details={"flow": index})
    if loc[0] == "steps" and len(loc) > 1 and isinstance(loc[1], int):
        return ImportValidationError(
            "Invalid step data",
            details={"flow": index, "step": loc[1], "errors": error.error_count()},
        )
    return ImportValidationError(
        "Invalid flow structure",
        details={"flow": index, "field": ".".join(str(part) for part in loc)},
    )


def _prepare_flow(raw: Any, index: int) -> Flow:
    try:
        model = ExportedFlow.model_validate(raw)
    except ValidationError as e:
        raise _invalid_flow(e, index) from e

    steps: List[RecordedStep] = []
    for exported in model.steps:
        step_data = exported.model_dump(by_alias=True, exclude_none=True, mode="json")
        step_data["id"] = generate_id()
        steps.append(RecordedStep.from_dict(step_data))

    stamp = now_ms()
    return Flow(
        id=generate_id(),
        name=model.name,
        steps=steps,
        created_at=stamp,
        updated_at=stamp,
        start_url=model.start_url or "",
    )


async def import_flows(store: IFlowStore, content: str) -> List[Flow]:
    """
    Import every flow of an export file into the store.

    Nothing is saved unless the whole file validates.

    Raises:
        ImportValidationError: If the file is malformed
    """
    flows = parse_import(content)
    for flow in flows:
        await store.save_flow(flow)
    logger.info(f"Imported {len(flows)} flow(s)")
    return flows


def read_import_file(path: Union[str, Path]) -> str:
    source = Path(path).expanduser()
    try:
        return source.read_text(encoding="utf-8")
    except OSError as e:
        raise StorageError(f"Failed to read file: {e}", path=str(source))
