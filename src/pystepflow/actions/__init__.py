"""
Actions: descriptors, the registry and legacy id mapping.
"""

from pystepflow.actions.base import ActionDescriptor, function_source
from pystepflow.actions.legacy import LEGACY_ACTION_MAPPINGS, resolve_legacy_id
from pystepflow.actions.registry import DEFAULT_ACTION_IDS, ActionRegistry

__all__ = [
    "ActionDescriptor",
    "ActionRegistry",
    "DEFAULT_ACTION_IDS",
    "LEGACY_ACTION_MAPPINGS",
    "function_source",
    "resolve_legacy_id",
]
