from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from reliefdesk.core.coerce import normalise_token, optional_decimal, safe_bool, safe_decimal


class DebtBracket(str, Enum):
    UNDER_10K = "under-10k"
    FROM_10K_TO_25K = "10k-25k"
    FROM_25K_TO_50K = "25k-50k"
    FROM_50K_TO_100K = "50k-100k"
    OVER_100K = "over-100k"


class FilingStatus(str, Enum):
    SINGLE = "single"
    MARRIED_JOINT = "married_joint"
    MARRIED_SEPARATE = "married_separate"
    HEAD_OF_HOUSEHOLD = "head_of_household"
    WIDOW = "widow"

    @property
    def married(self) -> bool:
        return self in (FilingStatus.MARRIED_JOINT, FilingStatus.MARRIED_SEPARATE)


class Circumstance(str, Enum):
    """Closed set of special circumstances consumed by eligibility rules.

    Adding a tag is a schema change: extend this enum and the rules that read it.
    """

    DIVORCE = "divorce"
    MEDICAL = "medical"
    DISABILITY = "disability"
    UNEMPLOYMENT = "unemployment"
    COVID = "covid"
    BUSINESS_FAILURE = "business_failure"


class ConfidenceTier(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]


_TIER_RANK = {ConfidenceTier.HIGH: 3, ConfidenceTier.MEDIUM: 2, ConfidenceTier.LOW: 1}


class SessionState(str, Enum):
    IN_PROGRESS = "in_progress"
    READY_TO_SUBMIT = "ready_to_submit"
    SUBMITTED = "submitted"
    ABANDONED = "abandoned"

    @property
    def terminal(self) -> bool:
        return self in (SessionState.SUBMITTED, SessionState.ABANDONED)


# ----------------------------------------------------------------------
# Profile
# ----------------------------------------------------------------------
_PROFILE_ALIASES = {
    "totalDebt": "total_debt",
    "totalTaxDebt": "total_debt",
    "monthlyNetIncome": "monthly_net_income",
    "monthlyIncome": "monthly_net_income",
    "bankBalance": "bank_balance",
    "retirementBalance": "retirement_balance",
    "homeEquity": "home_equity",
    "bankLevy": "bank_levy",
    "wageGarnishment": "wage_garnishment",
    "assetSeizure": "asset_seizure",
    "businessClosure": "business_closure",
    "allReturnsFiled": "all_returns_filed",
    "previousRelief": "previous_relief",
    "filingStatus": "filing_status",
    "emergencyTypes": "emergency_types",
}

_EMERGENCY_FLAGS = {
    "bank-levy": "bank_levy",
    "levy": "bank_levy",
    "wage-garnishment": "wage_garnishment",
    "garnishment": "wage_garnishment",
    "asset-seizure": "asset_seizure",
    "seizure": "asset_seizure",
    "business-closure": "business_closure",
}

_CIRCUMSTANCE_ALIASES = {
    "business": Circumstance.BUSINESS_FAILURE,
    "business-closure": Circumstance.BUSINESS_FAILURE,
    "health": Circumstance.MEDICAL,
    "covid-19": Circumstance.COVID,
    "unemployed": Circumstance.UNEMPLOYMENT,
    "separation": Circumstance.DIVORCE,
}

_FILING_ALIASES = {
    "married": FilingStatus.MARRIED_JOINT,
    "joint": FilingStatus.MARRIED_JOINT,
    "mfj": FilingStatus.MARRIED_JOINT,
    "mfs": FilingStatus.MARRIED_SEPARATE,
    "hoh": FilingStatus.HEAD_OF_HOUSEHOLD,
    "widower": FilingStatus.WIDOW,
    "qualifying-widow": FilingStatus.WIDOW,
}


def _lookup_enum(enum_cls: type[Enum], value: Any, aliases: Mapping[str, Enum] | None = None) -> Enum | None:
    if isinstance(value, enum_cls):
        return value
    token = normalise_token(value)
    if not token:
        return None
    for member in enum_cls:
        if normalise_token(member.value) == token:
            return member
    if aliases:
        return aliases.get(token)
    return None


class Profile(BaseModel):
    """Intake answers used for eligibility scoring.

    Construction never fails on malformed answers: amounts coerce to zero,
    unknown enum values to ``None`` and unknown circumstance tags are dropped.
    """

    model_config = ConfigDict(frozen=True)

    total_debt: DebtBracket | None = None
    total_debt_amount: Decimal | None = None
    monthly_net_income: Decimal = Decimal("0")
    bank_balance: Decimal = Decimal("0")
    retirement_balance: Decimal = Decimal("0")
    home_equity: Decimal = Decimal("0")
    bank_levy: bool = False
    wage_garnishment: bool = False
    asset_seizure: bool = False
    business_closure: bool = False
    all_returns_filed: bool = False
    circumstances: tuple[Circumstance, ...] = ()
    previous_relief: bool = False
    filing_status: FilingStatus | None = None

    @model_validator(mode="before")
    @classmethod
    def _normalise_keys(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return {}
        cleaned: dict[str, Any] = {}
        for key, value in data.items():
            cleaned[_PROFILE_ALIASES.get(key, key)] = value

        emergency_types = cleaned.pop("emergency_types", None)
        if isinstance(emergency_types, (list, tuple)):
            for item in emergency_types:
                flag = _EMERGENCY_FLAGS.get(normalise_token(item))
                if flag and flag not in cleaned:
                    cleaned[flag] = True

        debt = cleaned.get("total_debt")
        if debt is not None and _lookup_enum(DebtBracket, debt) is None:
            amount = optional_decimal(debt)
            if amount is not None and "total_debt_amount" not in cleaned:
                cleaned["total_debt_amount"] = amount
        return cleaned

    @field_validator("total_debt", mode="before")
    @classmethod
    def _coerce_bracket(cls, value: Any) -> DebtBracket | None:
        return _lookup_enum(DebtBracket, value)

    @field_validator("total_debt_amount", mode="before")
    @classmethod
    def _coerce_debt_amount(cls, value: Any) -> Decimal | None:
        amount = optional_decimal(value)
        if amount is None or amount < 0:
            return None
        return amount

    @field_validator("monthly_net_income", "bank_balance", "retirement_balance", "home_equity", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> Decimal:
        return safe_decimal(value)

    @field_validator(
        "bank_levy",
        "wage_garnishment",
        "asset_seizure",
        "business_closure",
        "all_returns_filed",
        "previous_relief",
        mode="before",
    )
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        return safe_bool(value)

    @field_validator("circumstances", mode="before")
    @classmethod
    def _coerce_circumstances(cls, value: Any) -> tuple[Circumstance, ...]:
        if isinstance(value, (str, Circumstance)):
            value = [value]
        if not isinstance(value, (list, tuple, set, frozenset)):
            return ()
        found: set[Circumstance] = set()
        for item in value:
            member = _lookup_enum(Circumstance, item, _CIRCUMSTANCE_ALIASES)
            if member is not None:
                found.add(member)  # type: ignore[arg-type]
        return tuple(member for member in Circumstance if member in found)

    @field_validator("filing_status", mode="before")
    @classmethod
    def _coerce_filing_status(cls, value: Any) -> FilingStatus | None:
        return _lookup_enum(FilingStatus, value, _FILING_ALIASES)  # type: ignore[return-value]

    @classmethod
    def from_answers(cls, answers: Mapping[str, Any] | None) -> "Profile":
        return cls.model_validate(dict(answers or {}))

    @classmethod
    def from_intake(cls, payload: "SubmissionPayload | Mapping[str, Any]") -> "Profile":
        """Build a profile from a submitted intake questionnaire."""

        answers = payload.answers if isinstance(payload, SubmissionPayload) else payload
        answers = dict(answers or {})
        returns = answers.get("returns_filed")
        if returns is not None:
            answers["all_returns_filed"] = normalise_token(returns) in {"yes", "true"}
        if "has_emergency" in answers and not safe_bool(answers.get("has_emergency")):
            answers.pop("emergency_types", None)
        return cls.from_answers(answers)

    # ------------------------------------------------------------------
    # derived views
    # ------------------------------------------------------------------
    def has(self, circumstance: Circumstance) -> bool:
        return circumstance in self.circumstances

    @property
    def urgent_collection_action(self) -> bool:
        return self.bank_levy or self.wage_garnishment or self.asset_seizure or self.business_closure

    @property
    def total_assets(self) -> Decimal:
        return self.bank_balance + self.retirement_balance + self.home_equity


# ----------------------------------------------------------------------
# Eligibility results
# ----------------------------------------------------------------------
class MonthsRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: int = 0
    max: int = 0


class AmountRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: Decimal = Decimal("0")
    max: Decimal = Decimal("0")


class ProgramResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: str
    variant: str | None = None
    qualified: bool
    confidence: ConfidenceTier
    score: Decimal | None = None
    disqualify_reason: str | None = None
    disqualify_reasons: tuple[str, ...] = ()
    timeline: MonthsRange = Field(default_factory=MonthsRange)
    savings: AmountRange = Field(default_factory=AmountRange)
    success_rate: int = 0
    requirements: tuple[str, ...] = ()
    description: str = ""
    expedite: bool = False

    @model_validator(mode="after")
    def _reason_iff_disqualified(self) -> "ProgramResult":
        if self.qualified and self.disqualify_reason:
            raise ValueError("qualified results carry no disqualification reason")
        if not self.qualified and not (self.disqualify_reason or "").strip():
            raise ValueError("disqualified results need a reason")
        return self


class Recommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    priority: str
    action: str
    description: str
    program_id: str | None = None
    confidence: ConfidenceTier | None = None


class EligibilitySummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    qualified_count: int
    disqualified_count: int
    total_potential_savings: Decimal
    overall_score: int
    risk_rating: str
    success_probability: int
    recommendations: tuple[Recommendation, ...] = ()


# ----------------------------------------------------------------------
# Workflow sessions
# ----------------------------------------------------------------------
class DocumentRef(BaseModel):
    """Metadata of an uploaded document; the bytes live elsewhere."""

    model_config = ConfigDict(frozen=True)

    name: str
    size_bytes: int = Field(ge=0)


class WorkflowSession(BaseModel):
    """Resumable state of one applicant working through one workflow.

    Every field is JSON serialisable so a session can be stored and resumed
    exactly where it was left.
    """

    session_id: str
    program_id: str
    definition_version: str = "1"
    state: SessionState = SessionState.IN_PROGRESS
    current_step_index: int = 0
    answers: dict[str, Any] = Field(default_factory=dict)
    derived: dict[str, Any] = Field(default_factory=dict)
    validation_errors: dict[str, str] = Field(default_factory=dict)
    uploaded_documents: list[DocumentRef] = Field(default_factory=list)
    revision: int = 0
    submitted_at: datetime | None = None

    @property
    def completed(self) -> bool:
        return self.state == SessionState.SUBMITTED

    def values(self) -> dict[str, Any]:
        """Answers overlaid with derived values, as seen by validators."""

        merged = dict(self.answers)
        merged.update(self.derived)
        return merged


class SubmissionPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    program_id: str
    session_id: str
    definition_version: str
    answers: dict[str, Any]
    derived: dict[str, Any]
    documents: tuple[DocumentRef, ...] = ()
    submitted_at: datetime
