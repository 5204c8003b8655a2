"""Classification registry for process-local handle types."""

from .defaults import build_default_registry, default_registry, populate_defaults
from .plugins import load_plugins, resolve_plugin
from .registry import ChildDescriber, ClassificationRegistry, TypeKey
from .verdict import TRANSPARENT, Opaque, ReferenceVerdict, Transparent

__all__ = [
    "ChildDescriber",
    "ClassificationRegistry",
    "Opaque",
    "ReferenceVerdict",
    "TRANSPARENT",
    "Transparent",
    "TypeKey",
    "build_default_registry",
    "default_registry",
    "load_plugins",
    "populate_defaults",
    "resolve_plugin",
]
