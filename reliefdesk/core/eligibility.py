"""Rule-based eligibility screening.

Every registered program carries an :class:`EligibilityRule`.  Evaluating a
profile runs each applicable rule and ranks the outcomes: qualified programs
first, then by confidence, with declaration order breaking ties.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Sequence

from reliefdesk.core.calculators import to_display
from reliefdesk.core.schema import (
    AmountRange,
    ConfidenceTier,
    EligibilitySummary,
    MonthsRange,
    Profile,
    ProgramResult,
    Recommendation,
)
from reliefdesk.core.settings import heuristic
from reliefdesk.domain import DisplayMetrics, ProgramDefinition

logger = logging.getLogger(__name__)

RULE_ERRORS = (ArithmeticError, TypeError, ValueError, KeyError, AttributeError)


def _sort_key(result: ProgramResult) -> tuple[int, int]:
    return (0 if result.qualified else 1, -result.confidence.rank)


class EligibilityEngine:
    def __init__(self, programs: Iterable[ProgramDefinition]) -> None:
        self.programs = tuple(program for program in programs if program.eligibility is not None)

    def evaluate(self, profile: Profile) -> list[ProgramResult]:
        results: list[ProgramResult] = []
        for program in self.programs:
            rule = program.eligibility
            try:
                if not rule.applies(profile):
                    continue
                result = self._evaluate_rule(program, profile)
            except RULE_ERRORS:
                logger.exception("eligibility rule for %s failed", program.id)
                result = self._failed(program)
            results.append(result)
        # sorted() is stable, so declaration order survives within a tier
        return sorted(results, key=_sort_key)

    def _evaluate_rule(self, program: ProgramDefinition, profile: Profile) -> ProgramResult:
        rule = program.eligibility
        qualified = bool(rule.predicate(profile))
        score = rule.score(profile) if rule.score is not None else None
        confidence = rule.confidence(profile, score)

        reasons: tuple[str, ...] = ()
        if not qualified:
            reasons = tuple(reason.message for reason in rule.reasons if reason.applies(profile))
            if not reasons:
                reasons = (rule.fallback_reason,)

        display = rule.metrics(profile) if rule.metrics is not None else DisplayMetrics()
        return ProgramResult(
            id=program.id,
            name=program.name,
            category=program.category,
            variant=display.variant,
            qualified=qualified,
            confidence=confidence,
            score=score,
            disqualify_reason=reasons[0] if reasons else None,
            disqualify_reasons=reasons,
            timeline=MonthsRange(min=display.timeline[0], max=display.timeline[1]),
            savings=AmountRange(min=to_display(display.savings[0]), max=to_display(display.savings[1])),
            success_rate=display.success_rate,
            requirements=display.requirements or program.requirements,
            description=program.description,
            expedite=profile.urgent_collection_action,
        )

    @staticmethod
    def _failed(program: ProgramDefinition) -> ProgramResult:
        reason = program.eligibility.fallback_reason
        return ProgramResult(
            id=program.id,
            name=program.name,
            category=program.category,
            qualified=False,
            confidence=ConfidenceTier.LOW,
            disqualify_reason=reason,
            disqualify_reasons=(reason,),
            requirements=program.requirements,
            description=program.description,
        )


def evaluate(profile: Profile, programs: Iterable[ProgramDefinition] | None = None) -> list[ProgramResult]:
    if programs is None:
        from reliefdesk.programs.registry import list_programs

        programs = list_programs()
    return EligibilityEngine(programs).evaluate(profile)


# ----------------------------------------------------------------------
# summary
# ----------------------------------------------------------------------
def _confidence_points(tier: ConfidenceTier) -> int:
    return int(heuristic("summary", "confidence_points", tier.value, default=0))


def _risk_rating(score: int) -> str:
    if score >= int(heuristic("summary", "risk", "low_at", default=70)):
        return "LOW"
    if score >= int(heuristic("summary", "risk", "medium_at", default=40)):
        return "MEDIUM"
    return "HIGH"


def summarize(results: Sequence[ProgramResult], profile: Profile | None = None) -> EligibilitySummary:
    """Aggregate ranked results into a score, a risk rating and next actions."""

    qualified = [result for result in results if result.qualified]
    total_savings = sum((result.savings.max for result in qualified), Decimal("0"))

    if qualified:
        average = sum(_confidence_points(result.confidence) for result in qualified) / len(qualified)
        overall = int(round(average * 0.7 + min(len(qualified), 5) * 10))
    else:
        overall = 10
    overall = max(0, min(overall, 100))
    probability = max(10, min(overall + 10, 95))

    recommendations: list[Recommendation] = []
    if profile is not None and not profile.all_returns_filed:
        recommendations.append(
            Recommendation(
                priority="HIGH",
                action="File missing tax returns",
                description="Most relief programs require every required return to be filed first.",
            )
        )
    if profile is not None and profile.urgent_collection_action:
        recommendations.append(
            Recommendation(
                priority="HIGH",
                action="Respond to collection action",
                description="Contact the collection office right away to request a hold while relief is pursued.",
            )
        )
    for result in qualified[:3]:
        recommendations.append(
            Recommendation(
                priority="HIGH" if result.confidence == ConfidenceTier.HIGH else "MEDIUM",
                action=f"Apply for {result.name}",
                description=result.description,
                program_id=result.id,
                confidence=result.confidence,
            )
        )

    return EligibilitySummary(
        qualified_count=len(qualified),
        disqualified_count=len(results) - len(qualified),
        total_potential_savings=to_display(total_savings),
        overall_score=overall,
        risk_rating=_risk_rating(overall),
        success_probability=probability,
        recommendations=tuple(recommendations),
    )
