"""The authenticated identity an operation acts on behalf of.

Authentication happens outside this service; callers build a
``UserSession`` from whatever they trust (request headers, CLI flags) and
pass it explicitly to every operation that needs an actor.
"""

from dataclasses import dataclass

from inventario.exceptions import PermissionDenied
from inventario.models import Role

EDIT_ROLES = frozenset({Role.ADMIN, Role.GESTOR, Role.PROMOTOR})
IMPORT_ROLES = frozenset({Role.ADMIN, Role.GESTOR})


@dataclass(frozen=True)
class UserSession:
    user_id: str
    role: Role = Role.VIEWER
    email: str | None = None
    full_name: str | None = None
    # Bearer token forwarded to the remote backend, when there is one
    token: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.role, Role):
            try:
                role = Role(str(self.role).strip().lower())
            except ValueError:
                role = Role.VIEWER
            object.__setattr__(self, "role", role)

    @property
    def can_edit(self) -> bool:
        return self.role in EDIT_ROLES

    @property
    def can_import(self) -> bool:
        return self.role in IMPORT_ROLES

    def require_edit(self) -> None:
        if not self.can_edit:
            raise PermissionDenied(
                f"El rol '{self.role.value}' no puede cambiar estados"
            )

    def require_import(self) -> None:
        if not self.can_import:
            raise PermissionDenied(
                f"El rol '{self.role.value}' no puede importar viviendas"
            )
