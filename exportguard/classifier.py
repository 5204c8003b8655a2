"""Per-node classification against the registry."""

from __future__ import annotations

import collections
import types
from typing import Any, List, Optional, Tuple

from .graph.describe import describe_children
from .models import EdgeLabel, ReferenceKind
from .registry import TRANSPARENT, ClassificationRegistry, Opaque, ReferenceVerdict

# Never opaque and never registered; skips the registry entirely.
_SCALAR_TYPES = frozenset({type(None), bool, int, float, str, bytes})

# Containers and functions report the offending element, not themselves.
_NO_STRUCTURAL_FALLBACK: Tuple[type, ...] = (
    dict,
    list,
    tuple,
    set,
    frozenset,
    collections.deque,
    types.FunctionType,
    types.MethodType,
    types.BuiltinMethodType,
    types.MethodWrapperType,
)


class ReferenceClassifier:
    """Decides whether a single node is opaque.

    Registry entries decide first (allow-list, then opaque, then inherited and
    module-prefix entries). A node unknown to the registry is still opaque when it
    directly holds a registered native-handle marker.
    """

    def __init__(self, registry: ClassificationRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> ClassificationRegistry:
        return self._registry

    def classify_in_context(
        self,
        node: Any,
        children: Optional[List[Tuple[EdgeLabel, Any]]] = None,
    ) -> ReferenceVerdict:
        cls = type(node)
        if cls in _SCALAR_TYPES:
            return TRANSPARENT
        verdict = self._registry.lookup(cls)
        if verdict is not None:
            return verdict
        if isinstance(node, _NO_STRUCTURAL_FALLBACK):
            return TRANSPARENT
        if children is None:
            children = describe_children(node, self._registry)
        for _label, child in children:
            if self._registry.is_marker(child):
                return Opaque(ReferenceKind.NATIVE_HANDLE)
        return TRANSPARENT
