"""
Backend wiring for the API.

Holds the process-wide repository and notification dispatcher and exposes
them as FastAPI dependencies.  ``create_app`` installs explicit instances
(tests pass an in-memory repository); otherwise both are built lazily from
``AppConfig``.

Identity: authentication happens upstream.  The caller's identity arrives
in ``X-User-Id`` / ``X-User-Role`` / ``X-User-Email`` / ``X-User-Name`` and
an optional ``Authorization: Bearer`` token that is forwarded to the
Supabase backend.  When the repository knows the user's profile, its role
and email take precedence over the headers.
"""

from __future__ import annotations

import logging
import threading

from fastapi import Depends, Header, HTTPException

from inventario.notifications import NotificationDispatcher, create_notifier
from inventario.service import EstadoService
from inventario.session import UserSession
from store import create_repository
from store.base import Repository
from store.supabase import SupabaseRepository
from utils.config import AppConfig

logger = logging.getLogger(__name__)

_CONFIG: AppConfig | None = None
_REPOSITORY: Repository | None = None
_DISPATCHER: NotificationDispatcher | None = None
_lock = threading.Lock()


def configure(repository: Repository | None = None,
              dispatcher: NotificationDispatcher | None = None,
              config: AppConfig | None = None) -> None:
    """Install the backend objects used by every request."""
    global _CONFIG, _REPOSITORY, _DISPATCHER
    with _lock:
        _CONFIG = config or _CONFIG
        _REPOSITORY = repository
        _DISPATCHER = dispatcher


def get_config() -> AppConfig:
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = AppConfig.from_env()
    return _CONFIG


def get_repository() -> Repository:
    """FastAPI dependency: the configured repository."""
    global _REPOSITORY
    if _REPOSITORY is None:
        with _lock:
            if _REPOSITORY is None:
                _REPOSITORY = create_repository(get_config())
    return _REPOSITORY


def get_dispatcher() -> NotificationDispatcher:
    global _DISPATCHER
    if _DISPATCHER is None:
        with _lock:
            if _DISPATCHER is None:
                _DISPATCHER = NotificationDispatcher(create_notifier(get_config()))
    return _DISPATCHER


def shutdown() -> None:
    """Drain notifications and release backend resources."""
    global _REPOSITORY, _DISPATCHER
    with _lock:
        if _DISPATCHER is not None:
            _DISPATCHER.shutdown(wait_for_pending=True)
            _DISPATCHER = None
        if _REPOSITORY is not None:
            _REPOSITORY.close()
            _REPOSITORY = None


def _bearer(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_optional_session(
    x_user_id: str | None = Header(None, description="Authenticated user id"),
    x_user_role: str | None = Header(None, description="admin | gestor | promotor | viewer"),
    x_user_email: str | None = Header(None),
    x_user_name: str | None = Header(None),
    authorization: str | None = Header(None),
    repo: Repository = Depends(get_repository),
) -> UserSession | None:
    """FastAPI dependency: the caller's session, or None when anonymous."""
    if not x_user_id:
        return None
    role, email, name = x_user_role, x_user_email, x_user_name
    profile = next((p for p in repo.get_profiles() if p.id == x_user_id), None)
    if profile is not None:
        role = profile.role
        email = profile.email or email
        name = profile.full_name or name
    return UserSession(
        user_id=x_user_id,
        role=role or "viewer",
        email=email,
        full_name=name,
        token=_bearer(authorization),
    )


def get_session(session: UserSession | None = Depends(get_optional_session)) -> UserSession:
    """FastAPI dependency: the caller's session; 401 when anonymous."""
    if session is None:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    return session


def get_request_repository(
    repo: Repository = Depends(get_repository),
    session: UserSession | None = Depends(get_optional_session),
) -> Repository:
    """The repository acting with the caller's token where the backend supports it."""
    if isinstance(repo, SupabaseRepository) and session is not None:
        return repo.with_token(session.token)
    return repo


def get_estado_service(
    repo: Repository = Depends(get_request_repository),
) -> EstadoService:
    return EstadoService(repo, get_dispatcher())
