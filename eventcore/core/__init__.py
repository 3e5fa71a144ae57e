# eventcore/core/__init__.py
"""
eventcore Core Module
Central location for shared constants and metadata
"""

from eventcore import __version__, __description__

from eventcore.core.app_state import AppState, get_start_time

__all__ = [
    "__version__",
    "__description__",
    "AppState",
    "get_start_time"
]
