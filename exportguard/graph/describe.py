"""Child enumeration for values reachable from captured variables.

Each value exposes its outgoing edges as ``(label, child)`` pairs. Resolution
order: a describer registered for the value's class, the value's own
``__export_children__`` method, then the built-in rules below. Errors raised by a
value while it is being described propagate to the caller.
"""

from __future__ import annotations

import collections
import functools
import types
from collections.abc import Mapping
from decimal import Decimal
from fractions import Fraction
from typing import TYPE_CHECKING, Any, Callable, Iterable, Iterator, List, Optional, Tuple

from ..models import EdgeLabel

if TYPE_CHECKING:
    from ..registry import ClassificationRegistry

Edge = Tuple[EdgeLabel, Any]

ATOM_TYPES: Tuple[type, ...] = (
    type(None),
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    bytearray,
    range,
    Decimal,
    Fraction,
    type(Ellipsis),
    type(NotImplemented),
    types.CodeType,
    types.BuiltinFunctionType,
    types.MethodDescriptorType,
    types.WrapperDescriptorType,
    types.MemberDescriptorType,
    types.GetSetDescriptorType,
    types.ClassMethodDescriptorType,
    property,
)

_ATOM_TYPE_SET = frozenset(ATOM_TYPES)

SEQUENCE_TYPES: Tuple[type, ...] = (list, tuple, collections.deque)
SET_TYPES: Tuple[type, ...] = (set, frozenset)

_OBJECT_GETSTATE = getattr(object, "__getstate__", None)


def is_atom(value: Any) -> bool:
    """Values that hold no references worth following; classes and modules ship by reference.

    Only exact atom types count: a ``str`` or ``int`` subclass can carry instance
    attributes and is described like any other object.
    """

    if isinstance(value, (type, types.ModuleType)):
        return True
    cls = type(value)
    if cls is types.BuiltinMethodType:
        owner = value.__self__
        return owner is None or isinstance(owner, types.ModuleType)
    return cls in _ATOM_TYPE_SET


def custom_describer(
    cls: type, registry: Optional["ClassificationRegistry"] = None
) -> Optional[Callable[[Any], Iterable[Edge]]]:
    """The registered describer for ``cls`` or its ``__export_children__`` hook, if any."""

    if registry is not None:
        describer = registry.describer_for(cls)
        if describer is not None:
            return describer
    return getattr(cls, "__export_children__", None)


def is_leaf(value: Any, registry: Optional["ClassificationRegistry"] = None) -> bool:
    return is_atom(value) and custom_describer(type(value), registry) is None


def describe_children(value: Any, registry: Optional["ClassificationRegistry"] = None) -> List[Edge]:
    """Return the outgoing edges of ``value`` in declaration order."""

    describer = custom_describer(type(value), registry)
    if describer is not None:
        return list(describer(value))
    if is_atom(value):
        return []
    return list(_builtin_children(value))


def _builtin_children(value: Any) -> Iterator[Edge]:
    if isinstance(value, types.FunctionType):
        yield from function_children(value)
        return
    if isinstance(value, types.MethodType):
        yield "__self__", value.__self__
        yield "__func__", value.__func__
        return
    if isinstance(value, (types.BuiltinMethodType, types.MethodWrapperType)):
        yield "__self__", value.__self__
        return
    if isinstance(value, functools.partial):
        yield "func", value.func
        yield "args", value.args
        yield "keywords", value.keywords
        return
    if isinstance(value, (classmethod, staticmethod)):
        yield "__func__", value.__func__
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            yield _key_label(key), item
        if isinstance(value, collections.defaultdict) and value.default_factory is not None:
            yield "default_factory", value.default_factory
    elif isinstance(value, SEQUENCE_TYPES):
        fields = getattr(type(value), "_fields", None)
        if isinstance(value, tuple) and fields:
            yield from zip(fields, value)
        else:
            yield from enumerate(value)
    elif isinstance(value, SET_TYPES):
        yield from enumerate(value)
    yield from object_children(value)


def object_children(value: Any) -> Iterator[Edge]:
    """Fields, slots and attached attributes of an arbitrary instance."""

    cls = type(value)
    getstate = getattr(cls, "__getstate__", None)
    if getstate is not None and getstate is not _OBJECT_GETSTATE and not _is_builtin_container(value):
        # A customised __getstate__ is what pickling actually ships.
        state = value.__getstate__()
        if isinstance(state, dict):
            for key, item in state.items():
                yield _key_label(key), item
        elif state is not None:
            yield "__getstate__", state
        return
    try:
        attrs = object.__getattribute__(value, "__dict__")
    except AttributeError:
        attrs = None
    if isinstance(attrs, dict):
        for key, item in attrs.items():
            yield _key_label(key), item
    yield from _slot_children(value, cls)


def function_children(fn: types.FunctionType) -> Iterator[Edge]:
    """Captured environment of a Python function.

    Closure cells, defaults and function attributes always travel with the
    function. Module globals are followed only for functions that are shipped by
    value rather than re-imported by name on the worker.
    """

    code = fn.__code__
    for name, cell in zip(code.co_freevars, fn.__closure__ or ()):
        try:
            contents = cell.cell_contents
        except ValueError:
            continue
        yield name, contents
    if fn.__defaults__:
        yield "__defaults__", fn.__defaults__
    if fn.__kwdefaults__:
        yield "__kwdefaults__", fn.__kwdefaults__
    if fn.__dict__:
        yield from fn.__dict__.items()
    if ships_by_value(fn):
        namespace = fn.__globals__
        for name in referenced_names(code):
            if name in namespace:
                item = namespace[name]
                if not isinstance(item, types.ModuleType):
                    yield name, item


def ships_by_value(fn: types.FunctionType) -> bool:
    return (
        fn.__module__ == "__main__"
        or fn.__name__ == "<lambda>"
        or "<locals>" in fn.__qualname__
    )


def referenced_names(code: types.CodeType) -> Iterable[str]:
    """Global names referenced by ``code`` and its nested code objects, first use first."""

    seen: dict[str, None] = {}
    stack = [code]
    while stack:
        current = stack.pop()
        for name in current.co_names:
            seen.setdefault(name, None)
        nested = [const for const in current.co_consts if isinstance(const, types.CodeType)]
        stack.extend(reversed(nested))
    return list(seen)


def _slot_children(value: Any, cls: type) -> Iterator[Edge]:
    for base in cls.__mro__:
        slots = base.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for name in slots:
            if name in ("__dict__", "__weakref__"):
                continue
            attr = f"_{base.__name__.lstrip('_')}{name}" if name.startswith("__") and not name.endswith("__") else name
            try:
                item = getattr(value, attr)
            except AttributeError:
                continue
            yield name, item


def _is_builtin_container(value: Any) -> bool:
    return type(value) in (dict, list, tuple, set, frozenset, collections.deque)


def _key_label(key: Any) -> EdgeLabel:
    if isinstance(key, str):
        return key
    return repr(key)
