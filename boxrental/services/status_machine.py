"""
Rental status lifecycle.

pendiente -> programada -> en_ruta -> entregada -> retiro_programado -> retirada -> finalizada
cancelada is reachable from every non-terminal state.
"""
import enum
from typing import Dict, FrozenSet, Optional, Tuple

from .errors import InvalidStatusTransition


class RentalStatus(str, enum.Enum):
    pendiente = "pendiente"
    programada = "programada"
    en_ruta = "en_ruta"
    entregada = "entregada"
    retiro_programado = "retiro_programado"
    retirada = "retirada"
    finalizada = "finalizada"
    cancelada = "cancelada"


STATUS_LABELS: Dict[str, str] = {
    "pendiente": "Pendiente",
    "programada": "Programada",
    "en_ruta": "En ruta",
    "entregada": "Entregada",
    "retiro_programado": "Retiro programado",
    "retirada": "Retirada",
    "finalizada": "Finalizada",
    "cancelada": "Cancelada",
}

INITIAL_STATUS = RentalStatus.pendiente.value
TERMINAL_STATUSES: FrozenSet[str] = frozenset({RentalStatus.finalizada.value, RentalStatus.cancelada.value})
KNOWN_STATUSES: FrozenSet[str] = frozenset(s.value for s in RentalStatus)

_FORWARD: Tuple[str, ...] = (
    "pendiente",
    "programada",
    "en_ruta",
    "entregada",
    "retiro_programado",
    "retirada",
    "finalizada",
)


def _build_transitions() -> FrozenSet[Tuple[str, str]]:
    pairs = set()
    for current, nxt in zip(_FORWARD, _FORWARD[1:]):
        pairs.add((current, nxt))
    for current in _FORWARD:
        if current not in TERMINAL_STATUSES:
            pairs.add((current, RentalStatus.cancelada.value))
    return frozenset(pairs)


TRANSITIONS: FrozenSet[Tuple[str, str]] = _build_transitions()

# Status -> email template key. Statuses missing here send nothing.
EMAIL_TYPE_BY_STATUS: Dict[str, str] = {
    "pendiente": "pending",
    "programada": "paid",
    "en_ruta": "on_route",
    "entregada": "delivered",
    "retirada": "picked_up",
    "finalizada": "completed",
}


def is_terminal(status: Optional[str]) -> bool:
    return status in TERMINAL_STATUSES


def is_allowed(current: Optional[str], target: str) -> bool:
    return (current, target) in TRANSITIONS


def allowed_targets(current: Optional[str]) -> list:
    return sorted(t for (c, t) in TRANSITIONS if c == current)


def check_transition(current: Optional[str], target: str) -> None:
    if target not in KNOWN_STATUSES or not is_allowed(current, target):
        raise InvalidStatusTransition(current, target)


def email_type_for_status(status: str) -> Optional[str]:
    return EMAIL_TYPE_BY_STATUS.get(status)
