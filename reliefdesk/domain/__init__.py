"""Domain layer definitions."""

from .definitions import (
    Check,
    ConfidenceThresholds,
    DerivedField,
    DisplayMetrics,
    DisqualifyReason,
    EligibilityRule,
    FieldSpec,
    ProgramDefinition,
    StepDefinition,
    WorkflowDefinition,
    always,
)

__all__ = [
    "Check",
    "ConfidenceThresholds",
    "DerivedField",
    "DisplayMetrics",
    "DisqualifyReason",
    "EligibilityRule",
    "FieldSpec",
    "ProgramDefinition",
    "StepDefinition",
    "WorkflowDefinition",
    "always",
]
