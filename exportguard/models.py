"""Data model shared by the walker, classifier and policy engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .errors import OpaqueReferenceDetected

EdgeLabel = Union[str, int]
Path = Tuple[EdgeLabel, ...]


class Policy(str, Enum):
    """Reference-on-detection policy selected by the caller."""

    IGNORE = "ignore"
    WARN = "warn"
    ERROR = "error"

    @classmethod
    def parse(cls, value: Union["Policy", str]) -> "Policy":
        if isinstance(value, Policy):
            return value
        if isinstance(value, str):
            normalised = value.strip().lower()
            for member in cls:
                if member.value == normalised:
                    return member
        allowed = ", ".join(member.value for member in cls)
        raise ValueError(f"Unsupported reference policy {value!r}; expected one of: {allowed}")


class ReferenceKind:
    """Well-known reference kinds. Registrations may use any other non-empty label."""

    NATIVE_HANDLE = "native-handle"
    IO_CHANNEL = "io-channel"
    FOREIGN_RUNTIME_HANDLE = "foreign-runtime-handle"
    OTHER_OPAQUE = "other-opaque"


def qualified_name(cls: type) -> str:
    """Return the ``module.QualName`` tag for a class; builtins keep their bare name."""

    module = getattr(cls, "__module__", None) or ""
    qualname = getattr(cls, "__qualname__", None) or getattr(cls, "__name__", "?")
    if module in ("builtins", ""):
        return qualname
    return f"{module}.{qualname}"


def type_tag_of(value: Any) -> str:
    return qualified_name(type(value))


def format_path(root: str, path: Path) -> str:
    """Render ``root`` plus edge labels as an accessor string, e.g. ``cfg.pool[0]``."""

    parts = [root]
    for label in path:
        if isinstance(label, int):
            parts.append(f"[{label}]")
        elif label.isidentifier():
            parts.append(f".{label}")
        else:
            parts.append(f"[{label!r}]")
    return "".join(parts)


@dataclass(frozen=True)
class CapturedVariable:
    """A value from the enclosing scope that a deferred expression needs at execution time."""

    name: str
    value: Any
    binding_scope: str = "global"

    @property
    def type_tag(self) -> str:
        return type_tag_of(self.value)


class ReferenceFinding(BaseModel):
    """A single opaque node reached from a captured variable."""

    model_config = ConfigDict(frozen=True)

    variable_name: str
    variable_type: str
    path: Tuple[EdgeLabel, ...] = Field(default_factory=tuple)
    type_tag: str = ""
    reference_kind: str

    def location(self) -> str:
        return format_path(self.variable_name, self.path)

    def message(self) -> str:
        of_class = f" of class '{self.type_tag}'" if self.type_tag else ""
        return (
            f"Detected a non-exportable reference ('{self.reference_kind}'{of_class}) "
            f"in one of the globals ('{self.variable_name}' of class '{self.variable_type}') "
            "used in the future expression."
        )


class ValidationStatus(str, Enum):
    SUCCESS = "success"
    FATAL = "fatal"


class ValidationResult(BaseModel):
    """Outcome of one ``validate`` call.

    ``checked`` is False only for the ``ignore`` fast path. A fatal result carries
    exactly one finding. ``truncated`` is set when a ``warn`` walk hit its node
    bound, so some captured state was never inspected.
    """

    model_config = ConfigDict(frozen=True)

    policy: Policy
    status: ValidationStatus = ValidationStatus.SUCCESS
    findings: Tuple[ReferenceFinding, ...] = Field(default_factory=tuple)
    checked: bool = True
    nodes_visited: int = 0
    truncated: bool = False

    @property
    def ok(self) -> bool:
        return self.status is ValidationStatus.SUCCESS

    @property
    def fatal_finding(self) -> Optional[ReferenceFinding]:
        if self.status is ValidationStatus.FATAL and self.findings:
            return self.findings[0]
        return None

    def raise_for_status(self) -> "ValidationResult":
        finding = self.fatal_finding
        if finding is not None:
            raise OpaqueReferenceDetected(finding)
        return self
