"""
Utilities module - Common utility functions.
"""

from flow_replay.utils.logging import JsonLineFormatter, setup_logging
from flow_replay.utils.retry import backoff_delays, retry_async, RetryConfig
from flow_replay.utils.ids import generate_id, now_ms

__all__ = [
    "setup_logging",
    "JsonLineFormatter",
    "backoff_delays",
    "retry_async",
    "RetryConfig",
    "generate_id",
    "now_ms",
]
