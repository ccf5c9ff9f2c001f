"""
Configuration modules for design generation.
"""

from .config import Settings, settings
from .element_catalog import (
    ELEMENT_KINDS,
    ElementKind,
    GeometryKind,
    get_element_kind,
    is_known_kind,
    list_element_kinds,
)

__all__ = ['Settings', 'settings', 'ELEMENT_KINDS', 'ElementKind', 'GeometryKind',
           'get_element_kind', 'is_known_kind', 'list_element_kinds']
