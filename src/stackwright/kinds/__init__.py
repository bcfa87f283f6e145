"""Resource kind schemas: replacement rules, replace strategy and declared outputs."""

from .registry import KindSchema, KindRegistry, load_kind_registry, load_kinds, parse_kind_definitions

__all__ = [
    "KindSchema",
    "KindRegistry",
    "load_kind_registry",
    "load_kinds",
    "parse_kind_definitions",
]
