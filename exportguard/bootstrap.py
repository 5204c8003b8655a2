"""Process bootstrap: settings, logging and the frozen classification registry."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from .config import ExportGuardSettings, get_settings
from .dispatch import DispatchBackend, GuardedDispatcher
from .models import CapturedVariable, Policy, ValidationResult
from .registry import ClassificationRegistry, build_default_registry, load_plugins
from .validator import validate

LOGGER = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@dataclass(frozen=True)
class ExportGuardRuntime:
    settings: ExportGuardSettings
    registry: ClassificationRegistry

    def validate(
        self,
        captured: Iterable[CapturedVariable],
        policy: Union[Policy, str, None] = None,
    ) -> ValidationResult:
        effective = self.settings.on_reference if policy is None else policy
        return validate(captured, effective, self.registry, max_nodes=self.settings.max_nodes)

    def dispatcher(self, backend: DispatchBackend) -> GuardedDispatcher:
        return GuardedDispatcher(backend=backend, settings=self.settings, registry=self.registry)


def configure_logging(settings: ExportGuardSettings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    logging.getLogger("exportguard").setLevel(settings.log_level)


def setup(settings: Optional[ExportGuardSettings] = None) -> ExportGuardRuntime:
    """Load configuration, apply registry plugins and freeze the registry."""

    settings = settings or get_settings()
    configure_logging(settings)
    registry = build_default_registry()
    load_plugins(registry, settings.registry_plugins)
    registry.freeze()
    LOGGER.debug(
        "exportguard ready (policy=%s, plugins=%d)",
        settings.on_reference.value,
        len(settings.registry_plugins),
    )
    return ExportGuardRuntime(settings=settings, registry=registry)
