"""Identity-deduplicated, explicit-stack traversal of captured values."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterable, Iterator, List, Optional, Protocol, Tuple

from ..models import CapturedVariable, EdgeLabel, Path
from ..registry.verdict import Opaque, ReferenceVerdict
from .describe import describe_children, is_leaf

if TYPE_CHECKING:
    from ..registry import ClassificationRegistry

LOGGER = logging.getLogger(__name__)


class WalkMode(str, Enum):
    EXHAUSTIVE = "exhaustive"
    SHORT_CIRCUIT = "short_circuit"


class ClassifierLike(Protocol):
    def classify_in_context(
        self, node: Any, children: Optional[List[Tuple[EdgeLabel, Any]]] = None
    ) -> ReferenceVerdict: ...


# A path is stored as a chain of (parent_link, label) pairs; the tuple is only
# built when someone reads ``Visit.path``.
PathLink = Optional[Tuple[Any, EdgeLabel]]


def path_of(link: PathLink) -> Path:
    labels: List[EdgeLabel] = []
    while link is not None:
        link, label = link
        labels.append(label)
    labels.reverse()
    return tuple(labels)


@dataclass(frozen=True)
class Visit:
    variable: CapturedVariable
    node: Any
    depth: int
    link: PathLink = field(default=None, repr=False, compare=False)

    @property
    def path(self) -> Path:
        return path_of(self.link)

    @property
    def variable_name(self) -> str:
        return self.variable.name


@dataclass
class WalkStats:
    visited: int = 0
    revisits: int = 0
    max_depth: int = 0
    truncated: bool = False


class GraphWalker:
    """Depth-first walk over every value reachable from a set of captured variables.

    One visited set spans all roots of a walk, so an object shared between two
    variables is produced once, under the first variable that reaches it. Visited
    objects are held until the walk finishes so their identities stay unique.
    """

    def __init__(
        self,
        registry: Optional["ClassificationRegistry"] = None,
        *,
        mode: WalkMode = WalkMode.EXHAUSTIVE,
        max_nodes: Optional[int] = None,
    ) -> None:
        self._registry = registry
        self._mode = WalkMode(mode)
        self._max_nodes = max_nodes
        self.stats = WalkStats()

    @property
    def mode(self) -> WalkMode:
        return self._mode

    def walk(self, roots: Iterable[CapturedVariable]) -> Iterator[Visit]:
        """Yield every distinct reachable node, roots in declaration order."""

        for visit, _verdict in self._traverse(roots, None):
            yield visit

    def scan(self, roots: Iterable[CapturedVariable], classifier: ClassifierLike) -> Iterator[Tuple[Visit, Opaque]]:
        """Yield opaque nodes only; opaque nodes are reported but not descended into."""

        for visit, verdict in self._traverse(roots, classifier):
            if verdict is not None and verdict.opaque:
                yield visit, verdict
                if self._mode is WalkMode.SHORT_CIRCUIT:
                    return

    def _traverse(
        self,
        roots: Iterable[CapturedVariable],
        classifier: Optional[ClassifierLike],
    ) -> Iterator[Tuple[Visit, Optional[ReferenceVerdict]]]:
        stats = self.stats
        registry = self._registry
        seen: Dict[int, Any] = {}
        for root in roots:
            stack: List[Tuple[Any, PathLink, int]] = [(root.value, None, 0)]
            while stack:
                node, link, depth = stack.pop()
                leaf = is_leaf(node, registry)
                if not leaf:
                    key = id(node)
                    if key in seen:
                        stats.revisits += 1
                        continue
                    if self._max_nodes is not None and len(seen) >= self._max_nodes:
                        stats.truncated = True
                        LOGGER.warning(
                            "Export check stopped after %d nodes while walking '%s'; remaining values were not inspected",
                            len(seen),
                            root.name,
                        )
                        return
                    seen[key] = node
                stats.visited += 1
                if depth > stats.max_depth:
                    stats.max_depth = depth
                visit = Visit(variable=root, node=node, depth=depth, link=link)
                if leaf:
                    verdict = classifier.classify_in_context(node, []) if classifier is not None else None
                    yield visit, verdict
                    continue
                children = describe_children(node, registry)
                verdict = classifier.classify_in_context(node, children) if classifier is not None else None
                yield visit, verdict
                if verdict is not None and verdict.opaque:
                    continue
                for label, child in reversed(children):
                    stack.append((child, (link, label), depth + 1))
        LOGGER.debug(
            "Walked %d nodes (%d revisits, max depth %d)",
            stats.visited,
            stats.revisits,
            stats.max_depth,
        )
