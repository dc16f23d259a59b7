"""
Registry module - Component registration and discovery.

This module provides a registry pattern for dynamically registering
and discovering pluggable surfaces and flow stores.
"""

from flow_replay.registry.registry import (
    ComponentRegistry,
    register_surface,
    register_store,
    get_surface,
    get_store,
    create_surface,
    create_store,
)

__all__ = [
    "ComponentRegistry",
    "register_surface",
    "register_store",
    "get_surface",
    "get_store",
    "create_surface",
    "create_store",
]
