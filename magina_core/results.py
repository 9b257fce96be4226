"""Per-image results emitted by stages and transfers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Phase(str, Enum):
    EXPORT = "EXPORT"
    CONVERT = "CONVERT"
    IMPORT = "IMPORT"

    @classmethod
    def ordered(cls) -> tuple["Phase", ...]:
        return (cls.EXPORT, cls.CONVERT, cls.IMPORT)


@dataclass(frozen=True)
class StageResult:
    source_image: str = ""
    local_image: str = ""
    destination_image: str = ""
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def terminal(self) -> bool:
        """A block-level failure reported before any image was processed."""
        return self.error is not None and not (
            self.source_image or self.local_image or self.destination_image
        )

    def describe(self) -> str:
        images = [image for image in (self.source_image, self.local_image, self.destination_image) if image]
        deduped: list[str] = []
        for image in images:
            if not deduped or deduped[-1] != image:
                deduped.append(image)
        return " -> ".join(deduped)


@dataclass(frozen=True)
class TransferResult(StageResult):
    phase: Phase | None = None

    @classmethod
    def from_stage(cls, phase: Phase, result: StageResult) -> "TransferResult":
        return cls(
            source_image=result.source_image,
            local_image=result.local_image,
            destination_image=result.destination_image,
            error=result.error,
            phase=phase,
        )
