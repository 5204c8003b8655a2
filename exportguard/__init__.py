"""Exportability checks for captured state of deferred task dispatch."""

from .capture import captured_from_function, captured_from_mapping
from .classifier import ReferenceClassifier
from .errors import ExportGuardError, OpaqueReferenceDetected, PluginLoadError
from .graph import GraphWalker, Visit, WalkMode
from .models import (
    CapturedVariable,
    Policy,
    ReferenceFinding,
    ReferenceKind,
    ValidationResult,
    ValidationStatus,
)
from .registry import (
    TRANSPARENT,
    ClassificationRegistry,
    Opaque,
    ReferenceVerdict,
    Transparent,
    build_default_registry,
    default_registry,
)
from .validator import ensure_exportable, validate

__all__ = [
    "CapturedVariable",
    "ClassificationRegistry",
    "ExportGuardError",
    "GraphWalker",
    "Opaque",
    "OpaqueReferenceDetected",
    "PluginLoadError",
    "Policy",
    "ReferenceClassifier",
    "ReferenceFinding",
    "ReferenceKind",
    "ReferenceVerdict",
    "TRANSPARENT",
    "Transparent",
    "ValidationResult",
    "ValidationStatus",
    "Visit",
    "WalkMode",
    "build_default_registry",
    "captured_from_function",
    "captured_from_mapping",
    "default_registry",
    "ensure_exportable",
    "validate",
]
