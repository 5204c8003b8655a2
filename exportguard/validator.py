"""Policy engine: checks captured variables before a deferred expression is shipped."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Union

from .classifier import ReferenceClassifier
from .errors import OpaqueReferenceDetected
from .graph import GraphWalker, Visit, WalkMode
from .models import CapturedVariable, Policy, ReferenceFinding, ValidationResult, ValidationStatus, type_tag_of
from .registry import ClassificationRegistry, Opaque, default_registry

LOGGER = logging.getLogger(__name__)

_IGNORED = ValidationResult(policy=Policy.IGNORE, checked=False)


def validate(
    captured: Iterable[CapturedVariable],
    policy: Union[Policy, str],
    registry: Optional[ClassificationRegistry] = None,
    *,
    max_nodes: Optional[int] = None,
) -> ValidationResult:
    """Check captured variables for opaque references under ``policy``.

    ``ignore`` returns at once without walking anything. ``warn`` walks every
    variable and returns all findings in traversal order. ``error`` stops at the
    first opaque node and returns it as the single fatal finding.

    ``max_nodes`` bounds ``warn`` walks only; a truncated walk is reported on the
    result. ``error`` ignores the bound: its success means no opaque reference
    exists anywhere in the captured state.
    """

    if policy is Policy.IGNORE:
        return _IGNORED
    policy = Policy.parse(policy)
    if policy is Policy.IGNORE:
        return _IGNORED

    if registry is None:
        registry = default_registry()
    if policy is Policy.ERROR:
        walker = GraphWalker(registry, mode=WalkMode.SHORT_CIRCUIT)
    else:
        walker = GraphWalker(registry, mode=WalkMode.EXHAUSTIVE, max_nodes=max_nodes)
    classifier = ReferenceClassifier(registry)

    findings: List[ReferenceFinding] = []
    for visit, verdict in walker.scan(captured, classifier):
        finding = build_finding(visit, verdict)
        if policy is Policy.ERROR:
            LOGGER.error("%s (at %s)", finding.message(), finding.location())
            return ValidationResult(
                policy=policy,
                status=ValidationStatus.FATAL,
                findings=(finding,),
                nodes_visited=walker.stats.visited,
            )
        LOGGER.warning("%s (at %s)", finding.message(), finding.location())
        findings.append(finding)

    if findings:
        LOGGER.warning("Export check found %d non-exportable reference(s)", len(findings))
    return ValidationResult(
        policy=policy,
        status=ValidationStatus.SUCCESS,
        findings=tuple(findings),
        nodes_visited=walker.stats.visited,
        truncated=walker.stats.truncated,
    )


def ensure_exportable(
    captured: Iterable[CapturedVariable],
    policy: Union[Policy, str, None] = None,
    registry: Optional[ClassificationRegistry] = None,
) -> ValidationResult:
    """Validate and raise :class:`OpaqueReferenceDetected` on a fatal result.

    Without an explicit policy the configured ``on_reference`` setting applies.
    """

    max_nodes = None
    if policy is None:
        from .config import get_settings

        settings = get_settings()
        policy = settings.on_reference
        max_nodes = settings.max_nodes
    result = validate(captured, policy, registry, max_nodes=max_nodes)
    finding = result.fatal_finding
    if finding is not None:
        raise OpaqueReferenceDetected(finding)
    return result


def build_finding(visit: Visit, verdict: Opaque) -> ReferenceFinding:
    return ReferenceFinding(
        variable_name=visit.variable.name,
        variable_type=visit.variable.type_tag,
        path=visit.path,
        type_tag=type_tag_of(visit.node),
        reference_kind=verdict.kind,
    )
