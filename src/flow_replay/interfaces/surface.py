"""
Surface Interface - Control of the page that flows are recorded on and replayed against.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Awaitable, Callable, Union

from flow_replay.interfaces.document import IDocument

if TYPE_CHECKING:
    from flow_replay.config.settings import Settings


NavigationHandler = Callable[[str], Union[None, Awaitable[None]]]


class ISurface(ABC):
    """
    Abstract interface for a navigable surface (a browser tab).
    
    The playback controller navigates through it, the dispatcher reaches
    the current document through it, and the recording controller learns
    about URL changes from it.
    """
    
    @classmethod
    def from_settings(cls, settings: "Settings") -> "ISurface":
        """Build the surface the registry creates for these settings."""
        return cls()
    
    async def launch(self) -> None:
        """Prepare the surface for use; backends needing no setup do nothing."""
        pass
    
    @property
    @abstractmethod
    def url(self) -> str:
        """URL of the current document."""
        pass
    
    @property
    @abstractmethod
    def is_closed(self) -> bool:
        pass
    
    @abstractmethod
    async def navigate(self, url: str) -> None:
        """
        Navigate to a URL and return once the load has completed.
        
        Raises:
            DestinationClosedError: If the surface has been closed
        """
        pass
    
    @abstractmethod
    async def get_active_surface(self) -> IDocument:
        """The document currently shown."""
        pass
    
    @abstractmethod
    def on_navigation_complete(self, handler: NavigationHandler) -> Callable[[], None]:
        """
        Subscribe to completed navigations of the main document.
        
        Args:
            handler: Called with the new URL; may be a coroutine function
            
        Returns:
            A function that removes the subscription
        """
        pass
    
    @abstractmethod
    async def close(self) -> None:
        pass
