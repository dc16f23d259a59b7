"""
Component Registry - Central registry for pluggable components.

This module provides a registry pattern for the surface backends that
flows are recorded on and replayed against, and for the flow stores
that persist them.

Example:
    >>> from flow_replay.registry import register_surface, get_surface
    >>> 
    >>> @register_surface("memory")
    >>> class MemorySurface(ISurface):
    ...     pass
    >>> 
    >>> surface_class = get_surface("memory")
"""

from typing import Callable, Dict, List, Optional, Type

from flow_replay.config.settings import Settings
from flow_replay.interfaces.storage import IFlowStore
from flow_replay.interfaces.surface import ISurface


class ComponentRegistry:
    """
    Central registry for pluggable components.
    
    Components are registered by name and can be retrieved for
    instantiation. Backends with heavy imports (Playwright) register a
    factory that is only called the first time they are requested.
    """
    
    # Type registries
    _surfaces: Dict[str, Type[ISurface]] = {}
    _stores: Dict[str, Type[IFlowStore]] = {}
    
    # Factory functions for lazy loading
    _surface_factories: Dict[str, Callable[[], Type[ISurface]]] = {}
    _store_factories: Dict[str, Callable[[], Type[IFlowStore]]] = {}
    
    # ==================== Surface Registration ====================
    
    @classmethod
    def register_surface(cls, name: str) -> Callable[[Type[ISurface]], Type[ISurface]]:
        """
        Decorator to register a surface implementation.
        
        Args:
            name: Unique name for the surface (e.g., 'playwright', 'memory')
            
        Returns:
            Decorator function
        """
        def decorator(surface_class: Type[ISurface]) -> Type[ISurface]:
            if name in cls._surfaces:
                raise ValueError(f"Surface '{name}' is already registered")
            cls._surfaces[name] = surface_class
            return surface_class
        return decorator
    
    @classmethod
    def register_surface_factory(
        cls,
        name: str,
        factory: Callable[[], Type[ISurface]],
    ) -> None:
        """Register a factory function for lazy-loading a surface."""
        cls._surface_factories[name] = factory
    
    @classmethod
    def get_surface(cls, name: str) -> Type[ISurface]:
        """
        Get a registered surface class by name.
        
        Raises:
            ValueError: If the surface is not registered
        """
        if name in cls._surfaces:
            return cls._surfaces[name]
        
        if name in cls._surface_factories:
            surface_class = cls._surface_factories[name]()
            cls._surfaces[name] = surface_class
            return surface_class
        
        available = list(cls._surfaces.keys()) + list(cls._surface_factories.keys())
        raise ValueError(
            f"Unknown surface: '{name}'. Available surfaces: {available}"
        )
    
    @classmethod
    def list_surfaces(cls) -> List[str]:
        """List all registered surface names."""
        return sorted(set(cls._surfaces.keys()) | set(cls._surface_factories.keys()))
    
    # ==================== Store Registration ====================
    
    @classmethod
    def register_store(cls, name: str) -> Callable[[Type[IFlowStore]], Type[IFlowStore]]:
        """
        Decorator to register a flow store implementation.
        
        Args:
            name: Unique name for the store (e.g., 'json', 'memory')
        """
        def decorator(store_class: Type[IFlowStore]) -> Type[IFlowStore]:
            if name in cls._stores:
                raise ValueError(f"Store '{name}' is already registered")
            cls._stores[name] = store_class
            return store_class
        return decorator
    
    @classmethod
    def register_store_factory(
        cls,
        name: str,
        factory: Callable[[], Type[IFlowStore]],
    ) -> None:
        """Register a factory function for lazy-loading a store."""
        cls._store_factories[name] = factory
    
    @classmethod
    def get_store(cls, name: str) -> Type[IFlowStore]:
        """
        Get a registered store class by name.
        
        Raises:
            ValueError: If the store is not registered
        """
        if name in cls._stores:
            return cls._stores[name]
        
        if name in cls._store_factories:
            store_class = cls._store_factories[name]()
            cls._stores[name] = store_class
            return store_class
        
        available = list(cls._stores.keys()) + list(cls._store_factories.keys())
        raise ValueError(
            f"Unknown store: '{name}'. Available stores: {available}"
        )
    
    @classmethod
    def list_stores(cls) -> List[str]:
        """List all registered store names."""
        return sorted(set(cls._stores.keys()) | set(cls._store_factories.keys()))
    
    # ==================== Utility Methods ====================
    
    @classmethod
    def clear_all(cls) -> None:
        """Clear all registries. Useful for testing."""
        cls._surfaces.clear()
        cls._stores.clear()
        cls._surface_factories.clear()
        cls._store_factories.clear()


# ==================== Convenience Decorators ====================

def register_surface(name: str) -> Callable[[Type[ISurface]], Type[ISurface]]:
    """Convenience decorator for registering surfaces."""
    return ComponentRegistry.register_surface(name)


def register_store(name: str) -> Callable[[Type[IFlowStore]], Type[IFlowStore]]:
    """Convenience decorator for registering stores."""
    return ComponentRegistry.register_store(name)


# ==================== Convenience Getters ====================

def get_surface(name: str) -> Type[ISurface]:
    """Get a surface class by name."""
    return ComponentRegistry.get_surface(name)


def get_store(name: str) -> Type[IFlowStore]:
    """Get a store class by name."""
    return ComponentRegistry.get_store(name)


def create_surface(settings: Settings, engine: Optional[str] = None) -> ISurface:
    """
    Instantiate the surface backend named by the settings.
    
    Args:
        settings: Settings passed to the backend
        engine: Overrides settings.browser.engine
    """
    return get_surface(engine or settings.browser.engine).from_settings(settings)


def create_store(settings: Settings, backend: Optional[str] = None) -> IFlowStore:
    """
    Instantiate the flow store named by the settings.
    
    Args:
        settings: Settings passed to the store
        backend: Overrides settings.storage.backend
    """
    return get_store(backend or settings.storage.backend).from_settings(settings)
