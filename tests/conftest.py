"""
Pytest fixtures for the viviendas inventory tests.

Provides reusable fixtures: a seeded in-memory repository, personas and
user profiles, sessions for each role, a notifier that records payloads,
and builders for .xlsx / .csv uploads.
"""

import csv
import io
import sys
from pathlib import Path

import openpyxl
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from inventario.models import Estado, Persona, PersonaTipo, Profile, Role, Vivienda  # noqa: E402
from inventario.notifications import NotificationDispatcher  # noqa: E402
from inventario.session import UserSession  # noqa: E402
from store.memory import MemoryRepository  # noqa: E402
from utils.spreadsheet import IMPORT_COLUMNS  # noqa: E402


# ── Helpers ───────────────────────────────────────────────────────────────────

def build_xlsx(rows: list[dict], columns: list[str] | None = None) -> bytes:
    """Workbook with a header row and one row per dict (missing keys blank)."""
    columns = columns or IMPORT_COLUMNS
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Viviendas"
    ws.append(columns)
    for row in rows:
        ws.append([row.get(c) for c in columns])
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def build_csv(rows: list[dict], columns: list[str] | None = None) -> bytes:
    columns = columns or IMPORT_COLUMNS
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(columns)
    for row in rows:
        writer.writerow(["" if row.get(c) is None else row.get(c) for c in columns])
    return buf.getvalue().encode("utf-8-sig")


class RecordingNotifier:
    """Notifier that keeps every payload it is asked to send."""

    def __init__(self):
        self.payloads = []
        self.closed = False

    def send(self, payload):
        self.payloads.append(payload)

    def close(self):
        self.closed = True


class FailingNotifier(RecordingNotifier):
    def send(self, payload):
        from inventario.exceptions import NotificationError
        raise NotificationError("HTTP 500: edge function down")


# ── Domain fixtures ───────────────────────────────────────────────────────────

@pytest.fixture()
def personas():
    return [
        Persona(id="p-juan", nombre="Juan L. Herrero", email="juan@example.com",
                tipo=PersonaTipo.GESTOR),
        Persona(id="p-maria", nombre="María Pérez", email="maria@example.com",
                tipo=PersonaTipo.PROMOTOR),
        Persona(id="p-old", nombre="Antiguo Gestor", activo=False),
    ]


@pytest.fixture()
def profiles():
    return [
        Profile(id="u-admin", email="admin@example.com", full_name="Ada Admin",
                role=Role.ADMIN),
        Profile(id="u-gestor", email="gestor@example.com", full_name="Gema Gestora",
                role=Role.GESTOR),
        Profile(id="u-promotor", email="promo@example.com", role=Role.PROMOTOR),
        Profile(id="u-viewer", email="viewer@example.com", role=Role.VIEWER),
    ]


@pytest.fixture()
def viviendas():
    return [
        Vivienda(id="v1", portal="1", planta="0", letra="A", tipologia="Piso",
                 orientacion="S", dormitorios=2, pvp_final=225000.0,
                 estado=Estado.LIBRE, gestor_id="p-juan"),
        Vivienda(id="v2", portal="1", planta="1", letra="B", tipologia="Piso",
                 dormitorios=3, pvp_final=310000.0, estado=Estado.BLOQUEADA,
                 gestor_id="p-juan", responsable_id="p-maria"),
        Vivienda(id="v3", portal="2", planta="4", letra="A", tipologia="Ático",
                 dormitorios=4, estado=Estado.RESERVADA, responsable_id="p-maria"),
    ]


@pytest.fixture()
def repo(viviendas, personas, profiles):
    """In-memory repository seeded with three units, personas and users."""
    return MemoryRepository(viviendas=viviendas, personas=personas,
                            profiles=profiles)


# ── Sessions ──────────────────────────────────────────────────────────────────

@pytest.fixture()
def admin_session():
    return UserSession(user_id="u-admin", role=Role.ADMIN, email="admin@example.com")


@pytest.fixture()
def gestor_session():
    return UserSession(user_id="u-gestor", role=Role.GESTOR, email="gestor@example.com")


@pytest.fixture()
def promotor_session():
    return UserSession(user_id="u-promotor", role=Role.PROMOTOR)


@pytest.fixture()
def viewer_session():
    return UserSession(user_id="u-viewer", role=Role.VIEWER)


# ── Notifications ─────────────────────────────────────────────────────────────

@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def dispatcher(notifier):
    d = NotificationDispatcher(notifier, max_workers=1)
    yield d
    d.shutdown(wait_for_pending=True)


# ── Upload builders ───────────────────────────────────────────────────────────

@pytest.fixture()
def xlsx_builder():
    return build_xlsx


@pytest.fixture()
def csv_builder():
    return build_csv
