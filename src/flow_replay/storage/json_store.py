"""
JSON Flow Store - Flows and settings in a single JSON file.

The file holds one object, ``{"flows": [...], "settings": {...}}``, the
same flat key-value layout the extension storage used. Flows are kept
newest first.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

from flow_replay.exceptions import StorageError
from flow_replay.interfaces.storage import IFlowStore
from flow_replay.models.flow import Flow
from flow_replay.models.state import PlaybackOptions
from flow_replay.utils.ids import now_ms

logger = logging.getLogger(__name__)

DEFAULT_STORED_SETTINGS: Dict[str, Any] = {
    "defaultPlaybackSpeed": 1,
    "highlightElements": True,
    "stopOnError": True,
}


def options_from_stored_settings(settings: Dict[str, Any]) -> PlaybackOptions:
    """Default playback options from the persisted settings object."""
    defaults = PlaybackOptions()
    return PlaybackOptions(
        speed=float(settings.get("defaultPlaybackSpeed", defaults.speed)),
        stop_on_error=bool(settings.get("stopOnError", defaults.stop_on_error)),
        highlight_elements=bool(settings.get("highlightElements", defaults.highlight_elements)),
    )


class JsonFlowStore(IFlowStore):
    """
    File-backed flow store.

    Args:
        path: Location of the JSON file; created on first write

    Example:
        >>> store = JsonFlowStore("~/.local/share/flow-replay/flows.json")
        >>> await store.save_flow(flow)
        >>> flows = await store.get_flows()
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings) -> "JsonFlowStore":
        return cls(settings.storage.path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"flows": [], "settings": dict(DEFAULT_STORED_SETTINGS)}

        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as e:
            raise StorageError(f"Flow store is not valid JSON: {e}", path=str(self.path))
        except OSError as e:
            raise StorageError(f"Cannot read flow store: {e}", path=str(self.path))

        if not isinstance(data, dict):
            raise StorageError("Flow store must contain a JSON object", path=str(self.path))
        data.setdefault("flows", [])
        data.setdefault("settings", dict(DEFAULT_STORED_SETTINGS))
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp = self.path.with_suffix(self.path.suffix + ".tmp")
            temp.write_text(json.dumps(data, indent=2), encoding="utf-8")
            temp.replace(self.path)
        except OSError as e:
            raise StorageError(f"Cannot write flow store: {e}", path=str(self.path))

    async def get_flows(self) -> List[Flow]:
        data = self._read()
        try:
            return [Flow.from_dict(item) for item in data["flows"]]
        except (KeyError, TypeError, ValueError) as e:
            raise StorageError(f"Flow store holds a malformed flow: {e}", path=str(self.path))

    async def save_flow(self, flow: Flow) -> None:
        async with self._lock:
            data = self._read()
            flows: List[Dict[str, Any]] = data["flows"]

            for index, existing in enumerate(flows):
                if existing.get("id") == flow.id:
                    flow.updated_at = now_ms()
                    flows[index] = flow.to_dict()
                    break
            else:
                flows.insert(0, flow.to_dict())

            self._write(data)
        logger.debug(f"Saved flow '{flow.name}' ({flow.id})")

    async def delete_flow(self, flow_id: str) -> None:
        async with self._lock:
            data = self._read()
            remaining = [item for item in data["flows"] if item.get("id") != flow_id]
            if len(remaining) == len(data["flows"]):
                logger.debug(f"No flow {flow_id} to delete")
                return
            data["flows"] = remaining
            self._write(data)
        logger.debug(f"Deleted flow {flow_id}")

    async def get_settings(self) -> Dict[str, Any]:
        return dict(self._read()["settings"])

    async def save_settings(self, settings: Dict[str, Any]) -> None:
        async with self._lock:
            data = self._read()
            data["settings"] = {**data["settings"], **settings}
            self._write(data)
