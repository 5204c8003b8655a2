"""Exceptions raised by the exportability validator."""

from __future__ import annotations

from typing import TYPE_CHECKING, Tuple, Union

if TYPE_CHECKING:
    from .models import ReferenceFinding


class ExportGuardError(RuntimeError):
    """Base class for exportguard failures."""


class OpaqueReferenceDetected(ExportGuardError):
    """Raised when a captured value reaches a handle that cannot leave this process.

    The message text is stable so callers can match it in their own error handling.
    """

    def __init__(self, finding: "ReferenceFinding") -> None:
        super().__init__(finding.message())
        self.finding = finding

    @property
    def variable_name(self) -> str:
        return self.finding.variable_name

    @property
    def path(self) -> Tuple[Union[str, int], ...]:
        return self.finding.path

    @property
    def type_tag(self) -> str:
        return self.finding.type_tag

    @property
    def reference_kind(self) -> str:
        return self.finding.reference_kind


class PluginLoadError(ExportGuardError):
    """Raised when a configured registry plugin cannot be imported or applied."""
