"""Dispatch seam that checks captured state before handing work to a backend."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Union

from pydantic import BaseModel, Field

from .capture import captured_from_function
from .config import ExportGuardSettings
from .models import CapturedVariable, Policy, ReferenceFinding, ValidationResult
from .registry import ClassificationRegistry
from .validator import validate

LOGGER = logging.getLogger(__name__)

OPAQUE_REFERENCE_CODE = "E.EXPORT.OPAQUE_REFERENCE"
DISPATCH_FAILURE_CODE = "E.DISPATCH.FAILURE"


class DispatchBackend(Protocol):
    async def submit(self, expression: Any, captured: List[CapturedVariable]) -> Any: ...


class DispatchError(BaseModel):
    code: str
    message: str
    context: Dict[str, Any] = Field(default_factory=dict)


@dataclass
class DispatchOutcome:
    result: Any = None
    error: Optional[DispatchError] = None
    validation: Optional[ValidationResult] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def build_export_error(finding: ReferenceFinding) -> DispatchError:
    return DispatchError(
        code=OPAQUE_REFERENCE_CODE,
        message=finding.message(),
        context={
            "where": "exportguard.validate",
            "details": finding.model_dump(mode="json"),
        },
    )


@dataclass
class GuardedDispatcher:
    backend: DispatchBackend
    settings: ExportGuardSettings
    registry: Optional[ClassificationRegistry] = None

    async def dispatch(
        self,
        expression: Any,
        captured: Optional[List[CapturedVariable]] = None,
        *,
        policy: Union[Policy, str, None] = None,
    ) -> DispatchOutcome:
        """Validate captured state, then submit; nothing leaves the process on a fatal result."""

        if captured is None:
            captured = captured_from_function(expression)
        validation = self._validate(captured, policy)
        finding = validation.fatal_finding
        if finding is not None:
            return DispatchOutcome(error=build_export_error(finding), validation=validation)
        try:
            result = await self.backend.submit(expression, captured)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Dispatch failed: %s", exc)
            return DispatchOutcome(
                error=DispatchError(
                    code=DISPATCH_FAILURE_CODE,
                    message=str(exc),
                    context={"where": "exportguard.dispatch"},
                ),
                validation=validation,
            )
        return DispatchOutcome(result=result, validation=validation)

    async def dispatch_or_raise(
        self,
        expression: Any,
        captured: Optional[List[CapturedVariable]] = None,
        *,
        policy: Union[Policy, str, None] = None,
    ) -> Any:
        """Like :meth:`dispatch` but raises on a fatal check and returns the backend result."""

        if captured is None:
            captured = captured_from_function(expression)
        self._validate(captured, policy).raise_for_status()
        return await self.backend.submit(expression, captured)

    def _validate(self, captured: List[CapturedVariable], policy: Union[Policy, str, None]) -> ValidationResult:
        effective = self.settings.on_reference if policy is None else policy
        return validate(captured, effective, self.registry, max_nodes=self.settings.max_nodes)


__all__ = [
    "DISPATCH_FAILURE_CODE",
    "DispatchBackend",
    "DispatchError",
    "DispatchOutcome",
    "GuardedDispatcher",
    "OPAQUE_REFERENCE_CODE",
    "build_export_error",
]
