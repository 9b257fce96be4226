"""Migration stages."""

from ..results import Phase
from .base import Stage, StageOptions
from .convert_stage import ConvertStage
from .export_stage import ExportStage
from .import_stage import ImportStage

STAGE_TYPES: dict[Phase, type[Stage]] = {
    Phase.EXPORT: ExportStage,
    Phase.CONVERT: ConvertStage,
    Phase.IMPORT: ImportStage,
}

__all__ = ["ConvertStage", "ExportStage", "ImportStage", "STAGE_TYPES", "Stage", "StageOptions"]
