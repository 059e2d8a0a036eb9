"""
Best-effort status-change notifications.

After a successful state change the service hands a payload to a
``NotificationDispatcher``, which posts it to the ``sendStatusEmail`` edge
function on a small background thread pool.  The primary operation never
waits on the result.  A failed delivery is logged and appended to the
dispatcher's bounded side-channel log (``failures``); it is never raised
to the caller.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

import requests

from inventario.exceptions import NotificationError
from inventario.models import CambioEstado, Persona, Vivienda
from inventario.session import UserSession
from utils.common import isoformat, utc_now
from utils.http import RetryStrategy, SessionManager, error_message

logger = logging.getLogger(__name__)


def _persona_ref(persona: Persona | None) -> dict[str, str] | None:
    if persona is None:
        return None
    return {"id": persona.id, "nombre": persona.nombre}


def build_status_payload(vivienda: Vivienda, cambio: CambioEstado,
                         session: UserSession,
                         gestor: Persona | None = None,
                         responsable: Persona | None = None,
                         timestamp: datetime | None = None) -> dict[str, Any]:
    """JSON body expected by the sendStatusEmail function."""
    return {
        "vivienda_id": vivienda.id,
        "codigo_unique": vivienda.codigo_unique,
        "de_estado": cambio.de_estado.value if cambio.de_estado else None,
        "a_estado": cambio.a_estado.value,
        "gestor": _persona_ref(gestor),
        "responsable": _persona_ref(responsable),
        "motivo": cambio.motivo,
        "actor_email": session.email,
        "fecha_iso": isoformat(timestamp or cambio.created_at or utc_now()),
    }


class StatusNotifier:
    """Posts notification payloads to the email edge function."""

    def __init__(self, url: str, api_key: str | None = None,
                 timeout: float = 10.0,
                 session_manager: SessionManager | None = None) -> None:
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self._sessions = session_manager or SessionManager(
            retry_strategy=RetryStrategy(max_retries=0),
        )

    def send(self, payload: dict[str, Any]) -> None:
        """Deliver one payload.

        Raises:
            NotificationError: on transport failure or a non-2xx response.
        """
        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            resp = self._sessions.session.post(
                self.url, json=payload, headers=headers, timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise NotificationError(str(e)) from e
        if resp.status_code >= 400:
            raise NotificationError(
                f"HTTP {resp.status_code}: {error_message(resp)}"
            )

    def close(self) -> None:
        self._sessions.close()


class NullNotifier:
    """Notifier used when notifications are disabled."""

    def send(self, payload: dict[str, Any]) -> None:
        logger.debug("Notifications disabled; dropping payload for %s",
                     payload.get("codigo_unique"))

    def close(self) -> None:
        pass


@dataclass
class NotificationFailure:
    payload: dict[str, Any]
    error: str
    failed_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "codigo_unique": self.payload.get("codigo_unique"),
            "a_estado": self.payload.get("a_estado"),
            "error": self.error,
            "failed_at": isoformat(self.failed_at),
        }


class NotificationDispatcher:
    """Runs notification tasks detached from the request that caused them."""

    def __init__(self, notifier, max_workers: int = 2,
                 max_failures: int = 100) -> None:
        self.notifier = notifier
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="notify",
        )
        self._pending: set[Future] = set()
        self._lock = threading.Lock()
        self.failures: deque[NotificationFailure] = deque(maxlen=max_failures)
        self.sent = 0

    def dispatch(self, build_payload: Callable[[], dict[str, Any]]) -> Future:
        """Schedule delivery of the payload returned by ``build_payload``.

        Payload construction runs on the worker too, so lookups it needs
        (persona names) never delay the caller.
        """
        future = self._executor.submit(self._deliver, build_payload)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)
        return future

    def _deliver(self, build_payload: Callable[[], dict[str, Any]]) -> None:
        payload: dict[str, Any] = {}
        try:
            payload = build_payload()
            self.notifier.send(payload)
        except Exception as e:
            logger.warning("Status notification failed for %s: %s",
                           payload.get("codigo_unique", "?"), e)
            with self._lock:
                self.failures.append(NotificationFailure(payload, str(e)))
            return
        with self._lock:
            self.sent += 1
        logger.info("Status notification sent for %s (%s -> %s)",
                    payload.get("codigo_unique"), payload.get("de_estado"),
                    payload.get("a_estado"))

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def flush(self, timeout: float | None = None) -> None:
        """Block until every dispatched notification has finished."""
        with self._lock:
            pending = list(self._pending)
        wait(pending, timeout=timeout)

    def shutdown(self, wait_for_pending: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_pending)
        self.notifier.close()


def create_notifier(config) -> StatusNotifier | NullNotifier:
    """Notifier for an ``AppConfig``: real when enabled and an URL is known."""
    if config.notify_enabled and config.notify_url:
        return StatusNotifier(config.notify_url, config.supabase_key,
                              timeout=config.http_timeout)
    return NullNotifier()
