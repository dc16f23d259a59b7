"""
In-memory flow store.
"""

import copy
from typing import Any, Dict, List, Optional

from flow_replay.interfaces.storage import IFlowStore
from flow_replay.models.flow import Flow
from flow_replay.storage.json_store import DEFAULT_STORED_SETTINGS
from flow_replay.utils.ids import now_ms


class MemoryFlowStore(IFlowStore):
    """
    Flow store kept in process memory, newest first.

    Flows are copied in and out so callers never share state with the store.
    """

    def __init__(self, flows: Optional[List[Flow]] = None):
        self._flows: List[Flow] = [copy.deepcopy(flow) for flow in flows or []]
        self._settings: Dict[str, Any] = dict(DEFAULT_STORED_SETTINGS)

    async def get_flows(self) -> List[Flow]:
        return [copy.deepcopy(flow) for flow in self._flows]

    async def save_flow(self, flow: Flow) -> None:
        for index, existing in enumerate(self._flows):
            if existing.id == flow.id:
                flow.updated_at = now_ms()
                self._flows[index] = copy.deepcopy(flow)
                return
        self._flows.insert(0, copy.deepcopy(flow))

    async def delete_flow(self, flow_id: str) -> None:
        self._flows = [flow for flow in self._flows if flow.id != flow_id]

    async def get_settings(self) -> Dict[str, Any]:
        return dict(self._settings)

    async def save_settings(self, settings: Dict[str, Any]) -> None:
        self._settings.update(settings)
