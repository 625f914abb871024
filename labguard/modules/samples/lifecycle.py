"""
Sample status workflow.

    por_asignar --assign--> esperando_analisis --analysis--> pendiente_validacion --validate--> evaluada

Transitions are one-directional. `evaluada` is terminal; issuing the
certificate is a read-only side action, not a transition.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet

from labguard.exceptions import InvalidTransition
from labguard.roles import ADMIN, ANALYST, EVALUATOR


class SampleStatus(str, Enum):
    POR_ASIGNAR = "por_asignar"
    ESPERANDO_ANALISIS = "esperando_analisis"
    PENDIENTE_VALIDACION = "pendiente_validacion"
    EVALUADA = "evaluada"


INITIAL_STATUS = SampleStatus.POR_ASIGNAR
STATUS_VALUES = frozenset(s.value for s in SampleStatus)


class CertificationStatus(str, Enum):
    RECIBIDA = "recibida"
    RECHAZADA = "rechazada"


@dataclass(frozen=True)
class Transition:
    name: str
    source: SampleStatus
    target: SampleStatus
    roles: FrozenSet[str]


ASSIGN = Transition(
    "assign",
    SampleStatus.POR_ASIGNAR,
    SampleStatus.ESPERANDO_ANALISIS,
    frozenset({EVALUATOR, ADMIN}),
)
ANALYSIS = Transition(
    "analysis",
    SampleStatus.ESPERANDO_ANALISIS,
    SampleStatus.PENDIENTE_VALIDACION,
    frozenset({ANALYST, ADMIN}),
)
VALIDATE = Transition(
    "validate",
    SampleStatus.PENDIENTE_VALIDACION,
    SampleStatus.EVALUADA,
    frozenset({EVALUATOR, ADMIN}),
)

TRANSITIONS: Dict[str, Transition] = {t.name: t for t in (ASSIGN, ANALYSIS, VALIDATE)}


def is_valid_status(value) -> bool:
    return value in STATUS_VALUES


def check_transition(transition: Transition, current_status) -> None:
    """Raise InvalidTransition unless the sample sits in the transition's source state."""
    if current_status != transition.source.value:
        raise InvalidTransition(
            f"Cannot {transition.name} a sample in status '{current_status}'.",
            {"status": current_status, "expected_status": transition.source.value},
        )
