"""Schema provisioning and validation for splicebench."""

from .engine import (
    PipelineStageError,
    ProvisionError,
    ProvisioningPipeline,
    ProvisionReport,
    StageResult,
    TemplateNotFound,
    TemplateRenderer,
)
from .validator import SchemaValidator, ValidationVerdict

__all__ = [
    "PipelineStageError",
    "ProvisionError",
    "ProvisionReport",
    "ProvisioningPipeline",
    "SchemaValidator",
    "StageResult",
    "TemplateNotFound",
    "TemplateRenderer",
    "ValidationVerdict",
]
