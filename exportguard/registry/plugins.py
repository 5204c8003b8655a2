"""Loading of third-party registry extensions named by ``module:attr`` entrypoints."""

from __future__ import annotations

import importlib
import logging
from types import ModuleType
from typing import Callable, Iterable, Tuple

from ..errors import PluginLoadError
from .registry import ClassificationRegistry

LOGGER = logging.getLogger(__name__)

RegistryHook = Callable[[ClassificationRegistry], None]


def resolve_plugin(entrypoint: str) -> RegistryHook:
    """Import the hook an entrypoint names."""

    module_name, attr = _split_entrypoint(entrypoint)
    try:
        module: ModuleType = importlib.import_module(module_name)
    except ImportError as exc:
        raise PluginLoadError(f"Registry plugin module '{module_name}' could not be imported") from exc
    try:
        hook = getattr(module, attr)
    except AttributeError as exc:
        raise PluginLoadError(f"Registry plugin '{entrypoint}' does not exist") from exc
    if not callable(hook):
        raise PluginLoadError(f"Registry plugin '{entrypoint}' is not callable")
    return hook


def load_plugins(registry: ClassificationRegistry, entrypoints: Iterable[str]) -> ClassificationRegistry:
    """Apply each plugin hook to ``registry`` in order."""

    for entrypoint in entrypoints:
        hook = resolve_plugin(entrypoint)
        hook(registry)
        LOGGER.debug("Applied registry plugin %s", entrypoint)
    return registry


def _split_entrypoint(entrypoint: str) -> Tuple[str, str]:
    if ":" not in entrypoint:
        raise PluginLoadError(f"Invalid entrypoint '{entrypoint}', expected format 'module:attr'")
    module_name, attr = entrypoint.split(":", 1)
    if not module_name or not attr:
        raise PluginLoadError(f"Invalid entrypoint '{entrypoint}', expected format 'module:attr'")
    return module_name, attr
