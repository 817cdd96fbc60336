from __future__ import annotations

from reliefdesk.core.errors import StateViolation
from reliefdesk.core.workflow import WorkflowEngine
from reliefdesk.domain import ProgramDefinition, WorkflowDefinition
from reliefdesk.programs import (
    currently_not_collectible,
    innocent_spouse_relief,
    installment_agreement,
    intake,
    offer_in_compromise,
    penalty_abatement,
)

# Declaration order is the tie-break order of eligibility results.
PROGRAMS: tuple[ProgramDefinition, ...] = (
    installment_agreement.PROGRAM,
    offer_in_compromise.PROGRAM,
    currently_not_collectible.PROGRAM,
    penalty_abatement.PROGRAM,
    innocent_spouse_relief.PROGRAM,
)

INTAKE: WorkflowDefinition = intake.WORKFLOW

_BY_ID: dict[str, WorkflowDefinition] = {program.id: program for program in PROGRAMS}
_BY_ID[INTAKE.id] = INTAKE


def list_programs() -> tuple[ProgramDefinition, ...]:
    return PROGRAMS


def get_program(program_id: str) -> ProgramDefinition:
    definition = _BY_ID.get(program_id)
    if not isinstance(definition, ProgramDefinition):
        raise StateViolation(f"unknown program {program_id!r}")
    return definition


def get_workflow(workflow_id: str) -> WorkflowDefinition:
    """Program or intake definition by id."""

    definition = _BY_ID.get(workflow_id)
    if definition is None:
        raise StateViolation(f"unknown workflow {workflow_id!r}")
    return definition


def engine_for(workflow_id: str) -> WorkflowEngine:
    return WorkflowEngine(get_workflow(workflow_id))
