"""Estado transition table.

The table is advisory: it populates the choices offered to an operator.
Legality of a change is enforced by ``inventario.service.validate_change``.
"""

from inventario.exceptions import InvalidEstado
from inventario.models import Estado, ESTADOS_VALIDOS

TRANSICIONES_VALIDAS: dict[Estado, tuple[Estado, ...]] = {
    Estado.LIBRE: (Estado.BLOQUEADA, Estado.RESERVADA),
    Estado.BLOQUEADA: (Estado.LIBRE, Estado.RESERVADA),
    Estado.RESERVADA: (Estado.LIBRE, Estado.BLOQUEADA),
}


def coerce_estado(value) -> Estado:
    """Return ``value`` as an ``Estado``, accepting its string code.

    Raises:
        InvalidEstado: when the value is not one of the known codes.
    """
    if isinstance(value, Estado):
        return value
    try:
        return Estado(str(value).strip().upper())
    except ValueError:
        raise InvalidEstado(
            f"Estado debe ser uno de: {', '.join(ESTADOS_VALIDOS)}"
        ) from None


def allowed_transitions(current) -> tuple[Estado, ...]:
    """States reachable in one step from ``current``, in display order."""
    return TRANSICIONES_VALIDAS[coerce_estado(current)]


def is_transition_offered(current, target) -> bool:
    return coerce_estado(target) in allowed_transitions(current)


def transition_table() -> dict[str, list[str]]:
    """JSON-friendly copy of the table for the reference endpoint."""
    return {
        origin.value: [t.value for t in targets]
        for origin, targets in TRANSICIONES_VALIDAS.items()
    }
