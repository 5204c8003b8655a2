"""Type classification registry for process-local handle types."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, Optional, Tuple, Union

from ..models import EdgeLabel, qualified_name
from .verdict import TRANSPARENT, Opaque, ReferenceVerdict

LOGGER = logging.getLogger(__name__)

TypeKey = Union[type, str]
ChildDescriber = Callable[[Any], Iterable[Tuple[EdgeLabel, Any]]]

_UNKNOWN = object()


@dataclass(frozen=True)
class _Snapshot:
    """Immutable view published to readers; writers replace it wholesale."""

    allow_types: Dict[type, None] = field(default_factory=dict)
    allow_tags: Dict[str, None] = field(default_factory=dict)
    opaque_types: Dict[type, str] = field(default_factory=dict)
    opaque_tags: Dict[str, str] = field(default_factory=dict)
    opaque_prefixes: Dict[str, str] = field(default_factory=dict)
    marker_types: Tuple[type, ...] = ()
    marker_tags: frozenset = frozenset()
    describers: Dict[type, ChildDescriber] = field(default_factory=dict)
    # Per-snapshot memo of class -> verdict (or _UNKNOWN); discarded on every write.
    cache: Dict[type, Any] = field(default_factory=dict, compare=False)


def _split_key(key: TypeKey) -> Tuple[Optional[type], Optional[str]]:
    if isinstance(key, type):
        return key, None
    if isinstance(key, str) and key.strip():
        return None, key.strip()
    raise TypeError(f"Registry keys must be classes or qualified type tags, got {key!r}")


class ClassificationRegistry:
    """Maps type markers to opaque/transparent verdicts.

    Registration happens at configuration time. Writers are serialised through a
    lock and publish a fresh snapshot; lookups read the current snapshot without
    locking. Once :meth:`freeze` is called the registry is read-only.
    """

    def __init__(self) -> None:
        self._snapshot = _Snapshot()
        self._lock = threading.RLock()
        self._frozen = False
        self.lookup_count = 0

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> "ClassificationRegistry":
        self._frozen = True
        return self

    def copy(self) -> "ClassificationRegistry":
        """Return an unfrozen registry seeded with the current entries."""

        clone = ClassificationRegistry()
        clone._snapshot = replace(self._snapshot, cache={})
        return clone

    # Registration ---------------------------------------------------------------

    def register_opaque(self, key: TypeKey, kind: str) -> None:
        if not kind:
            raise ValueError("Opaque registrations require a reference kind")
        cls, tag = _split_key(key)
        with self._lock:
            snap = self._writable()
            if cls is not None:
                self._publish(snap, opaque_types={**snap.opaque_types, cls: kind})
            elif tag.endswith("."):
                self._publish(snap, opaque_prefixes={**snap.opaque_prefixes, tag: kind})
            else:
                self._publish(snap, opaque_tags={**snap.opaque_tags, tag: kind})
        LOGGER.debug("Registered opaque type %s (%s)", self._describe_key(key), kind)

    def register_transparent(self, key: TypeKey) -> None:
        cls, tag = _split_key(key)
        with self._lock:
            snap = self._writable()
            if cls is not None:
                self._publish(snap, allow_types={**snap.allow_types, cls: None})
            else:
                self._publish(snap, allow_tags={**snap.allow_tags, tag: None})
        LOGGER.debug("Registered transparent override %s", self._describe_key(key))

    def register_marker(self, key: TypeKey) -> None:
        """Register a low-level native-handle primitive.

        Markers are opaque themselves and make any otherwise-unknown object that
        directly holds one opaque as well.
        """

        cls, tag = _split_key(key)
        with self._lock:
            snap = self._writable()
            if cls is not None:
                self._publish(snap, marker_types=snap.marker_types + (cls,))
            else:
                self._publish(snap, marker_tags=snap.marker_tags | {tag})
            self.register_opaque(key, "native-handle")

    def register_children(self, cls: type, describer: ChildDescriber) -> None:
        if not isinstance(cls, type):
            raise TypeError("Child describers are registered against classes")
        with self._lock:
            snap = self._writable()
            self._publish(snap, describers={**snap.describers, cls: describer})
        LOGGER.debug("Registered child describer for %s", qualified_name(cls))

    # Lookup -----------------------------------------------------------------------

    def lookup(self, cls: type) -> Optional[ReferenceVerdict]:
        """Resolve a class to a verdict, or ``None`` when the registry does not know it."""

        self.lookup_count += 1
        snap = self._snapshot
        cached = snap.cache.get(cls, None)
        if cached is None:
            cached = self._resolve(snap, cls)
            snap.cache[cls] = cached
        return None if cached is _UNKNOWN else cached

    def is_marker(self, value: Any) -> bool:
        snap = self._snapshot
        if snap.marker_types and isinstance(value, snap.marker_types):
            return True
        if snap.marker_tags:
            return any(qualified_name(base) in snap.marker_tags for base in type(value).__mro__)
        return False

    def describer_for(self, cls: type) -> Optional[ChildDescriber]:
        describers = self._snapshot.describers
        if not describers:
            return None
        for base in cls.__mro__:
            describer = describers.get(base)
            if describer is not None:
                return describer
        return None

    # Internals --------------------------------------------------------------------

    @staticmethod
    def _resolve(snap: _Snapshot, cls: type) -> Any:
        mro = getattr(cls, "__mro__", (cls,))
        # Closest class first; at the same level an allow-list entry wins.
        for base in mro:
            tag = qualified_name(base)
            if base in snap.allow_types or tag in snap.allow_tags:
                return TRANSPARENT
            kind = snap.opaque_types.get(base) or snap.opaque_tags.get(tag)
            if kind:
                return Opaque(kind)
        # Virtual subclasses (ABC registration) are not visible in the MRO.
        for allowed in snap.allow_types:
            if issubclass(cls, allowed):
                return TRANSPARENT
        for opaque_type, kind in snap.opaque_types.items():
            if issubclass(cls, opaque_type):
                return Opaque(kind)
        module = f"{getattr(cls, '__module__', '')}."
        for prefix, kind in snap.opaque_prefixes.items():
            if module.startswith(prefix):
                return Opaque(kind)
        return _UNKNOWN

    def _writable(self) -> _Snapshot:
        if self._frozen:
            raise RuntimeError("Classification registry is frozen; register types during configuration")
        return self._snapshot

    def _publish(self, snap: _Snapshot, **changes: Any) -> None:
        self._snapshot = replace(snap, cache={}, **changes)

    @staticmethod
    def _describe_key(key: TypeKey) -> str:
        return qualified_name(key) if isinstance(key, type) else str(key)
