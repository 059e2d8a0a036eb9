"""
State-change operation for viviendas.

``EstadoService.change_estado`` is the only way the API and scripts move a
unit between LIBRE, BLOQUEADA and RESERVADA.  Every precondition is checked
against the already-loaded unit before the repository is touched; the
repository then performs the update and the audit append atomically, and a
notification is dispatched afterwards without waiting for it.
"""

from __future__ import annotations

import logging

from inventario.exceptions import MissingReason, NoOpTransition, NotFoundError
from inventario.models import CambioEstado, ChangeEstadoCommand, Estado, Vivienda
from inventario.notifications import NotificationDispatcher, build_status_payload
from inventario.session import UserSession
from inventario.transitions import coerce_estado
from store.base import Repository

logger = logging.getLogger(__name__)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def validate_change(current: Estado, target: Estado, motivo: str | None) -> None:
    """Raise if moving from ``current`` to ``target`` is not allowed.

    Raises:
        NoOpTransition: target equals current.
        MissingReason: target is BLOQUEADA or RESERVADA and motivo is blank.
    """
    if target == current:
        raise NoOpTransition(f"La vivienda ya está en estado {current.value}")
    if target != Estado.LIBRE and _clean(motivo) is None:
        raise MissingReason(f"El motivo es obligatorio para el estado {target.value}")


class EstadoService:
    def __init__(self, repository: Repository,
                 dispatcher: NotificationDispatcher | None = None) -> None:
        self.repository = repository
        self.dispatcher = dispatcher

    def load_unit(self, vivienda_id: str) -> Vivienda:
        unit = self.repository.get_unit(vivienda_id)
        if unit is None:
            raise NotFoundError(f"Vivienda {vivienda_id} no encontrada")
        return unit

    def change_estado(self, vivienda: Vivienda, nuevo_estado,
                      session: UserSession,
                      gestor_id: str | None = None,
                      responsable_id: str | None = None,
                      motivo: str | None = None) -> CambioEstado:
        """Move ``vivienda`` to ``nuevo_estado`` on behalf of ``session``.

        Args:
            vivienda: The unit as currently loaded by the caller.
            nuevo_estado: Target ``Estado`` or its string code.
            session: Acting user; role must allow editing.
            gestor_id: Persona to assign as gestor (``None`` clears it).
            responsable_id: Persona to assign as responsable (``None`` clears it).
            motivo: Reason; mandatory unless the target is LIBRE.

        Returns:
            The audit record written by the repository.

        Raises:
            PermissionDenied, InvalidEstado, NoOpTransition, MissingReason:
                before any remote call.
            RemoteOperationError: the backend rejected the change.
        """
        session.require_edit()
        target = coerce_estado(nuevo_estado)
        validate_change(vivienda.estado, target, motivo)

        cmd = ChangeEstadoCommand(
            vivienda_id=vivienda.id,
            a_estado=target,
            actor_user_id=session.user_id,
            gestor_id=_clean(gestor_id),
            responsable_id=_clean(responsable_id),
            motivo=_clean(motivo),
        )
        cambio = self.repository.change_estado(cmd)
        logger.info("Vivienda %s: %s -> %s by %s", vivienda.codigo_unique,
                    cambio.de_estado.value if cambio.de_estado else None,
                    cambio.a_estado.value, session.user_id)

        cambio.codigo_unique = vivienda.codigo_unique
        if self.dispatcher is not None:
            self.dispatcher.dispatch(
                lambda: self._payload(vivienda, cambio, session)
            )
        return cambio

    def _payload(self, vivienda: Vivienda, cambio: CambioEstado,
                 session: UserSession) -> dict:
        personas = {p.id: p for p in self.repository.get_personas(active_only=False)}
        return build_status_payload(
            vivienda, cambio, session,
            gestor=personas.get(cambio.gestor_id) if cambio.gestor_id else None,
            responsable=(personas.get(cambio.responsable_id)
                         if cambio.responsable_id else None),
        )
