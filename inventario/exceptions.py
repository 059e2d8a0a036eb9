"""Exception hierarchy for the viviendas inventory.

Everything raised on purpose derives from ``InventarioError`` so the API
layer can map a whole family to one HTTP status.  Each class carries the
status it should surface as.
"""


class InventarioError(Exception):
    """Base class for all inventory errors."""

    status_code = 500
    error = "Internal server error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class ValidationError(InventarioError):
    """A request was rejected before any remote call was made."""

    status_code = 400
    error = "Validation error"


class NoOpTransition(ValidationError):
    """The requested estado equals the unit's current estado."""


class MissingReason(ValidationError):
    """BLOQUEADA and RESERVADA require a non-blank motivo."""


class InvalidEstado(ValidationError):
    """The requested estado is not one of the known codes."""

    status_code = 422


class PermissionDenied(InventarioError):
    """The acting session's role may not perform the operation."""

    status_code = 403
    error = "Forbidden"


class NotFoundError(InventarioError):
    """A referenced unit or record does not exist."""

    status_code = 404
    error = "Not found"


class RemoteOperationError(InventarioError):
    """The backend rejected or failed an operation.

    ``message`` is the backend's own message, surfaced verbatim.
    """

    status_code = 502
    error = "Backend operation failed"


OperationFailed = RemoteOperationError


class NotificationError(InventarioError):
    """The notification endpoint failed; logged and recorded, never surfaced."""


class ConfigurationError(InventarioError):
    """Missing or inconsistent settings (e.g. Supabase backend without a URL)."""


class PartialImportFailure(InventarioError):
    """Summary of an import in which some rows succeeded and some failed.

    Built by ``ImportResult.partial_failure`` for callers that want an
    error-shaped report; the import pipeline never raises it.
    """

    status_code = 207
    error = "Partial import failure"

    def __init__(self, ok_rows: int, error_rows: int) -> None:
        super().__init__(
            f"{ok_rows} filas importadas, {error_rows} con errores"
        )
        self.ok_rows = ok_rows
        self.error_rows = error_rows
