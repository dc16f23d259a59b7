"""
Storage module - Flow persistence and transfer.
"""

from flow_replay.storage.json_store import (
    JsonFlowStore,
    DEFAULT_STORED_SETTINGS,
    options_from_stored_settings,
)
from flow_replay.storage.memory_store import MemoryFlowStore
from flow_replay.storage.transfer import (
    EXPORT_VERSION,
    export_flow,
    export_flows,
    dumps,
    sanitize_filename,
    flow_filename,
    backup_filename,
    write_export,
    parse_import,
    import_flows,
    read_import_file,
)

__all__ = [
    "JsonFlowStore",
    "MemoryFlowStore",
    "DEFAULT_STORED_SETTINGS",
    "options_from_stored_settings",
    "EXPORT_VERSION",
    "export_flow",
    "export_flows",
    "dumps",
    "sanitize_filename",
    "flow_filename",
    "backup_filename",
    "write_export",
    "parse_import",
    "import_flows",
    "read_import_file",
]


def _register_stores() -> None:
    """Register store implementations with the registry."""
    from flow_replay.registry import ComponentRegistry
    
    ComponentRegistry.register_store("json")(JsonFlowStore)
    ComponentRegistry.register_store("memory")(MemoryFlowStore)


# Auto-register on import
_register_stores()
