import functools
import gc
import threading
import time
from collections import namedtuple

import pytest

from exportguard.classifier import ReferenceClassifier
from exportguard.graph import GraphWalker, WalkMode, describe_children
from exportguard.models import CapturedVariable, ReferenceKind
from exportguard.registry import ClassificationRegistry

_MODULE_LOCK = threading.Lock()

Pair = namedtuple("Pair", ["left", "right"])


class Handle:
    pass


class Holder:
    def __init__(self, handle):
        self.handle = handle

    def use(self):
        return self.handle


class Slotted:
    __slots__ = ("handle", "unset")

    def __init__(self, handle):
        self.handle = handle


class Stateful:
    def __init__(self, handle):
        self._handle = handle

    def __getstate__(self):
        return {"fd": self._handle}


def _make_registry() -> ClassificationRegistry:
    registry = ClassificationRegistry()
    registry.register_opaque(Handle, ReferenceKind.NATIVE_HANDLE)
    registry.register_opaque(type(_MODULE_LOCK), ReferenceKind.OTHER_OPAQUE)
    return registry


def _scan(value, *, mode=WalkMode.EXHAUSTIVE, name="x"):
    registry = _make_registry()
    walker = GraphWalker(registry, mode=mode)
    classifier = ReferenceClassifier(registry)
    return [(visit.path, verdict.kind) for visit, verdict in walker.scan([CapturedVariable(name, value)], classifier)]


def test_walk_is_depth_first_in_declaration_order():
    inner = ["b"]
    walker = GraphWalker()

    visits = list(walker.walk([CapturedVariable("x", ["a", inner])]))

    assert [visit.path for visit in visits] == [(), (0,), (1,), (1, 0)]
    assert [visit.depth for visit in visits] == [0, 1, 1, 2]
    assert visits[2].node is inner
    assert walker.stats.visited == 4
    assert walker.stats.max_depth == 2


def test_nested_paths_through_mappings_and_sequences():
    handle = Handle()

    assert _scan({"a": [1, {"b": handle}]}) == [(("a", 1, "b"), ReferenceKind.NATIVE_HANDLE)]


def test_non_string_mapping_keys_use_repr():
    assert _scan({3: Handle()}) == [(("3",), ReferenceKind.NATIVE_HANDLE)]


def test_namedtuple_fields_label_edges():
    assert _scan(Pair(left=1, right=Handle())) == [(("right",), ReferenceKind.NATIVE_HANDLE)]


def test_closure_cells_are_followed():
    def make():
        lock = threading.Lock()

        def helper():
            return lock

        return helper

    assert _scan(make()) == [(("lock",), ReferenceKind.OTHER_OPAQUE)]


def test_globals_of_functions_shipped_by_value_are_followed():
    job = lambda: _MODULE_LOCK  # noqa: E731

    assert _scan(job) == [(("_MODULE_LOCK",), ReferenceKind.OTHER_OPAQUE)]


def test_defaults_bound_methods_and_partials():
    handle = Handle()

    def with_default(conn=handle):
        return conn

    assert _scan(with_default) == [(("__defaults__", 0), ReferenceKind.NATIVE_HANDLE)]
    assert _scan(Holder(handle).use) == [(("__self__", "handle"), ReferenceKind.NATIVE_HANDLE)]
    assert _scan(functools.partial(print, handle)) == [(("args", 0), ReferenceKind.NATIVE_HANDLE)]


def test_slots_and_custom_state():
    assert _scan(Slotted(Handle())) == [(("handle",), ReferenceKind.NATIVE_HANDLE)]
    assert _scan(Stateful(Handle())) == [(("fd",), ReferenceKind.NATIVE_HANDLE)]


def test_self_referential_graphs_terminate():
    cyclic = {"name": "loop"}
    cyclic["self"] = cyclic
    ring = [cyclic]
    cyclic["ring"] = ring

    walker = GraphWalker()
    visits = list(walker.walk([CapturedVariable("x", cyclic)]))

    assert [visit.node for visit in visits if not isinstance(visit.node, str)] == [cyclic, ring]
    assert walker.stats.revisits == 2


def test_recursive_closure_terminates():
    def make():
        def again():
            return again

        return again

    walker = GraphWalker()

    visits = list(walker.walk([CapturedVariable("fn", make())]))

    assert len(visits) == 1
    assert walker.stats.revisits == 1


def test_work_is_bounded_by_distinct_nodes_not_edges():
    shared = {"k": "v"}
    fan_out = [shared] * 5000
    walker = GraphWalker()

    visits = list(walker.walk([CapturedVariable("x", fan_out)]))

    assert len(visits) == 3
    assert walker.stats.revisits == 4999


def test_deep_nesting_does_not_hit_recursion_limit():
    nested = []
    current = nested
    for _ in range(5000):
        child = []
        current.append(child)
        current = child
    current.append(Handle())

    assert _scan(nested) == [((0,) * 5000 + (0,), ReferenceKind.NATIVE_HANDLE)]


def test_short_circuit_stops_after_first_opaque_node():
    value = [Handle(), Handle(), Handle()]

    assert _scan(value, mode=WalkMode.SHORT_CIRCUIT) == [((0,), ReferenceKind.NATIVE_HANDLE)]
    assert len(_scan(value)) == 3


def test_opaque_nodes_are_not_descended():
    outer = Handle()
    outer.inner = Handle()

    assert _scan(outer) == [((), ReferenceKind.NATIVE_HANDLE)]


def test_shared_nodes_are_reported_under_first_variable_only():
    handle = Handle()
    registry = _make_registry()
    walker = GraphWalker(registry)
    roots = [CapturedVariable("a", {"x": handle}), CapturedVariable("b", [handle])]

    found = list(walker.scan(roots, ReferenceClassifier(registry)))

    assert [(visit.variable_name, visit.path) for visit, _ in found] == [("a", ("x",))]


def test_max_nodes_truncates_walk():
    walker = GraphWalker(max_nodes=2)

    visits = list(walker.walk([CapturedVariable("x", [[1], [2], [3]])]))

    assert walker.stats.truncated
    assert len([visit for visit in visits if isinstance(visit.node, list)]) == 2


def test_describer_errors_propagate():
    class Broken:
        def __export_children__(self):
            raise RuntimeError("introspection failed")

    walker = GraphWalker()

    with pytest.raises(RuntimeError, match="introspection failed"):
        list(walker.walk([CapturedVariable("x", Broken())]))


def test_registered_describer_and_own_children_hook():
    class Opaqueish:
        def __init__(self, payload):
            self.payload = payload

    class SelfDescribing:
        def __init__(self, handle):
            self._private = handle

        def __export_children__(self):
            return [("exposed", self._private)]

    registry = ClassificationRegistry()
    registry.register_children(Opaqueish, lambda value: [("wrapped", value.payload)])
    handle = Handle()

    assert describe_children(Opaqueish(handle), registry) == [("wrapped", handle)]
    assert describe_children(SelfDescribing(handle)) == [("exposed", handle)]
    assert describe_children(42) == []
    assert describe_children(Handle) == []


def test_scalar_subclasses_are_described_like_objects():
    class Label(str):
        pass

    class Code(int):
        def __export_children__(self):
            return [("owner", self.owner)]

    label = Label("db")
    label.conn = Handle()
    code = Code(7)
    code.owner = Handle()

    assert _scan(label) == [(("conn",), ReferenceKind.NATIVE_HANDLE)]
    assert _scan(code) == [(("owner",), ReferenceKind.NATIVE_HANDLE)]
    assert describe_children(Label("plain")) == []


def test_registered_describer_wins_over_atom_rule():
    class Token(bytes):
        pass

    handle = Handle()
    registry = _make_registry()
    registry.register_children(Token, lambda value: [("session", handle)])
    walker = GraphWalker(registry)

    found = list(walker.scan([CapturedVariable("tok", Token(b"x"))], ReferenceClassifier(registry)))

    assert [(visit.path, verdict.kind) for visit, verdict in found] == [(("session",), ReferenceKind.NATIVE_HANDLE)]


def test_method_wrappers_and_bound_builtins_follow_self():
    handle = Handle()
    holder = Holder(handle)

    assert _scan(handle.__str__) == [(("__self__",), ReferenceKind.NATIVE_HANDLE)]
    assert _scan(holder.__sizeof__) == [(("__self__", "handle"), ReferenceKind.NATIVE_HANDLE)]
    assert _scan(len) == []


class Link:
    def __init__(self, nxt):
        self.nxt = nxt


def _chain(length):
    head = None
    for _ in range(length):
        head = Link(head)
    return head


def _best_walk_time(length):
    registry = _make_registry()
    classifier = ReferenceClassifier(registry)
    best = float("inf")
    for _ in range(3):
        roots = [CapturedVariable("chain", _chain(length))]
        started = time.perf_counter()
        found = list(GraphWalker(registry).scan(roots, classifier))
        best = min(best, time.perf_counter() - started)
        assert found == []
    return best


def test_deep_chain_cost_grows_linearly():
    gc_was_enabled = gc.isenabled()
    gc.disable()
    try:
        small = _best_walk_time(5_000)
        large = _best_walk_time(40_000)
    finally:
        if gc_was_enabled:
            gc.enable()

    # 8x the nodes; a path copy per edge would be well over 30x.
    assert large / small < 20


def test_deep_chain_paths_are_materialised_on_demand():
    tail = Link(Handle())
    head = tail
    for _ in range(2_000):
        head = Link(head)

    found = _scan(head)

    assert found == [(("nxt",) * 2_001, ReferenceKind.NATIVE_HANDLE)]
