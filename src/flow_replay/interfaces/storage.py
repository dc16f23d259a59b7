"""
Storage Interface - Persistence of recorded flows.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from flow_replay.models.flow import Flow

if TYPE_CHECKING:
    from flow_replay.config.settings import Settings


class IFlowStore(ABC):
    """
    Abstract interface for the flow store.
    
    Flows are owned by the store once saved. Listing order is newest
    first.
    """
    
    @classmethod
    def from_settings(cls, settings: "Settings") -> "IFlowStore":
        """Build the store the registry creates for these settings."""
        return cls()
    
    @abstractmethod
    async def get_flows(self) -> List[Flow]:
        pass
    
    async def get_flow(self, flow_id: str) -> Optional[Flow]:
        for flow in await self.get_flows():
            if flow.id == flow_id:
                return flow
        return None
    
    @abstractmethod
    async def save_flow(self, flow: Flow) -> None:
        """Insert or replace a flow by id, stamping updated_at."""
        pass
    
    @abstractmethod
    async def delete_flow(self, flow_id: str) -> None:
        pass
    
    async def rename_flow(self, flow_id: str, name: str) -> Optional[Flow]:
        flow = await self.get_flow(flow_id)
        if flow is None:
            return None
        flow.name = name
        await self.save_flow(flow)
        return flow
    
    async def duplicate_flow(self, flow_id: str) -> Optional[Flow]:
        """Copy a flow under '<name> (Copy)' with fresh ids."""
        flow = await self.get_flow(flow_id)
        if flow is None:
            return None
        copy = flow.copy_with_new_ids(name=f"{flow.name} (Copy)")
        await self.save_flow(copy)
        return copy
    
    @abstractmethod
    async def get_settings(self) -> Dict[str, Any]:
        """Persisted user settings (default playback options)."""
        pass
    
    @abstractmethod
    async def save_settings(self, settings: Dict[str, Any]) -> None:
        """Merge settings into the persisted ones."""
        pass
