"""Object graph traversal over captured values."""

from .describe import (
    custom_describer,
    describe_children,
    function_children,
    is_atom,
    is_leaf,
    object_children,
    referenced_names,
    ships_by_value,
)
from .walker import GraphWalker, Visit, WalkMode, WalkStats

__all__ = [
    "GraphWalker",
    "Visit",
    "WalkMode",
    "WalkStats",
    "custom_describer",
    "describe_children",
    "function_children",
    "is_atom",
    "is_leaf",
    "object_children",
    "referenced_names",
    "ships_by_value",
]
