"""Builders for captured-variable lists.

Dispatch frameworks usually hand the validator their own list of globals; these
helpers cover plain mappings and Python functions.
"""

from __future__ import annotations

import builtins
import types
from typing import Any, Callable, List, Mapping

from .graph.describe import referenced_names
from .models import CapturedVariable


def captured_from_mapping(mapping: Mapping[str, Any], *, binding_scope: str = "global") -> List[CapturedVariable]:
    return [CapturedVariable(name=name, value=value, binding_scope=binding_scope) for name, value in mapping.items()]


def captured_from_function(fn: Callable[..., Any]) -> List[CapturedVariable]:
    """Closure variables first, then the module globals the function's code references."""

    target = fn
    captured: List[CapturedVariable] = []
    if isinstance(fn, types.MethodType):
        captured.append(CapturedVariable(name="self", value=fn.__self__, binding_scope="bound"))
        target = fn.__func__
    if not isinstance(target, types.FunctionType):
        return captured

    code = target.__code__
    for name, cell in zip(code.co_freevars, target.__closure__ or ()):
        try:
            value = cell.cell_contents
        except ValueError:
            continue
        captured.append(CapturedVariable(name=name, value=value, binding_scope="closure"))

    namespace = target.__globals__
    for name in referenced_names(code):
        if name not in namespace:
            continue
        value = namespace[name]
        if isinstance(value, types.ModuleType) or getattr(builtins, name, None) is value:
            continue
        captured.append(CapturedVariable(name=name, value=value, binding_scope="global"))
    return captured
