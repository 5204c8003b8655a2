"""Classification verdicts produced by the registry and the classifier."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional, Union


@dataclass(frozen=True)
class Transparent:
    opaque: ClassVar[bool] = False
    kind: ClassVar[Optional[str]] = None


@dataclass(frozen=True)
class Opaque:
    kind: str
    opaque: ClassVar[bool] = True

    def __post_init__(self) -> None:
        if not self.kind:
            raise ValueError("Opaque verdicts require a non-empty reference kind")


ReferenceVerdict = Union[Transparent, Opaque]

TRANSPARENT = Transparent()

__all__ = ["Opaque", "ReferenceVerdict", "TRANSPARENT", "Transparent"]
