"""Declarative building blocks for workflows and program rules.

Definitions are frozen data: behaviour is limited to the predicate, validator
and compute references they carry, so adding a program never requires a
change to the workflow or eligibility engines.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Mapping

from reliefdesk.core.schema import ConfidenceTier, Profile
from reliefdesk.core.validation import Validator

Answers = Mapping[str, Any]
Predicate = Callable[[Answers], bool]

FIELD_TYPES = frozenset({"text", "number", "money", "boolean", "choice", "multi_choice", "date", "list", "documents"})


def always(answers: Answers) -> bool:
    return True


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """One input on a step.

    ``required`` fields must always be answered; ``required_if`` makes a field
    required only when the predicate holds for the current answers.  Optional
    fields that are left blank skip their validators.
    """

    key: str
    label: str
    type: str = "text"
    required: bool = False
    required_if: Predicate | None = None
    validators: tuple[Validator, ...] = ()
    choices: tuple[str, ...] = ()
    required_message: str | None = None
    help: str | None = None

    def __post_init__(self) -> None:
        if self.type not in FIELD_TYPES:
            raise ValueError(f"unknown field type {self.type!r} for {self.key}")

    def is_required(self, answers: Answers) -> bool:
        if self.required:
            return True
        if self.required_if is None:
            return False
        return bool(self.required_if(answers))


@dataclass(frozen=True, slots=True)
class Check:
    """Composite rule over the whole value map, reported against ``key``."""

    key: str
    validate: Callable[[Answers], Any]


@dataclass(frozen=True, slots=True)
class StepDefinition:
    id: str
    title: str
    fields: tuple[FieldSpec, ...] = ()
    include: Predicate = always
    checks: tuple[Check, ...] = ()
    description: str | None = None

    def field(self, key: str) -> FieldSpec | None:
        for spec in self.fields:
            if spec.key == key:
                return spec
        return None


@dataclass(frozen=True, slots=True)
class DerivedField:
    """Value computed from other answers, possibly entered on several steps."""

    key: str
    inputs: tuple[str, ...]
    compute: Callable[[Answers], Any]


@dataclass(frozen=True, slots=True)
class WorkflowDefinition:
    id: str
    name: str
    category: str
    steps: tuple[StepDefinition, ...]
    derived: tuple[DerivedField, ...] = ()
    certifications: tuple[Check, ...] = ()
    version: str = "1"

    def __post_init__(self) -> None:
        if not self.steps:
            raise ValueError(f"workflow {self.id} has no steps")
        seen: set[str] = set()
        for step in self.steps:
            for spec in step.fields:
                if spec.key in seen:
                    raise ValueError(f"duplicate field key {spec.key!r} in {self.id}")
                seen.add(spec.key)
        for derived in self.derived:
            if derived.key in seen:
                raise ValueError(f"derived key {derived.key!r} clashes with an input in {self.id}")

    @property
    def field_keys(self) -> frozenset[str]:
        return frozenset(spec.key for step in self.steps for spec in step.fields)

    def find_field(self, key: str) -> tuple[StepDefinition, FieldSpec] | None:
        for step in self.steps:
            spec = step.field(key)
            if spec is not None:
                return step, spec
        return None


# ----------------------------------------------------------------------
# eligibility
# ----------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ConfidenceThresholds:
    """Three-tier classifier for a numeric score.

    With ``lower_is_better`` a score strictly below ``high`` is high
    confidence and strictly below ``medium`` is medium; otherwise the score
    must strictly exceed the thresholds.  A score equal to a threshold lands
    in the lower (more conservative) tier.
    """

    high: Decimal
    medium: Decimal
    lower_is_better: bool = False

    def classify(self, score: Decimal | None) -> ConfidenceTier:
        if score is None:
            return ConfidenceTier.LOW
        if self.lower_is_better:
            if score < self.high:
                return ConfidenceTier.HIGH
            if score < self.medium:
                return ConfidenceTier.MEDIUM
            return ConfidenceTier.LOW
        if score > self.high:
            return ConfidenceTier.HIGH
        if score > self.medium:
            return ConfidenceTier.MEDIUM
        return ConfidenceTier.LOW


@dataclass(frozen=True, slots=True)
class DisqualifyReason:
    applies: Callable[[Profile], bool]
    message: str


@dataclass(frozen=True, slots=True)
class DisplayMetrics:
    timeline: tuple[int, int] = (0, 0)
    savings: tuple[Decimal, Decimal] = (Decimal("0"), Decimal("0"))
    success_rate: int = 0
    variant: str | None = None
    requirements: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class EligibilityRule:
    """Pure description of how a program is scored for a profile."""

    applies: Callable[[Profile], bool]
    predicate: Callable[[Profile], bool]
    confidence: Callable[[Profile, Decimal | None], ConfidenceTier]
    fallback_reason: str
    reasons: tuple[DisqualifyReason, ...] = ()
    score: Callable[[Profile], Decimal | None] | None = None
    metrics: Callable[[Profile], DisplayMetrics] | None = None


@dataclass(frozen=True, slots=True)
class ProgramDefinition(WorkflowDefinition):
    eligibility: EligibilityRule | None = None
    description: str = ""
    requirements: tuple[str, ...] = ()
