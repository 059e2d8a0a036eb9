"""Row builders for the xlsx exports of units and history."""

from typing import Iterable

from inventario.models import CambioEstado, Vivienda
from utils.common import dated_filename
from utils.formatting import format_date
from utils.spreadsheet import (
    HISTORIAL_EXPORT_COLUMNS,
    HISTORIAL_SHEET,
    VIVIENDA_EXPORT_COLUMNS,
    VIVIENDA_SHEET,
    write_sheet,
)


def vivienda_rows(viviendas: Iterable[Vivienda]) -> list[dict]:
    rows = []
    for v in viviendas:
        values = [
            v.codigo_unique, v.portal, v.planta, v.letra, v.tipologia,
            v.orientacion, v.dormitorios, v.sup_util_terraza,
            v.sup_util_vivienda, v.sup_util_terrazas, v.pvp_final,
            v.estado.value,
            v.gestor.nombre if v.gestor else "",
            v.responsable.nombre if v.responsable else "",
            v.observaciones or "",
        ]
        rows.append(dict(zip(VIVIENDA_EXPORT_COLUMNS, values)))
    return rows


def cambio_rows(cambios: Iterable[CambioEstado]) -> list[dict]:
    rows = []
    for c in cambios:
        values = [
            format_date(c.created_at),
            c.codigo_unique or "",
            c.de_estado.value if c.de_estado else "",
            c.a_estado.value,
            c.gestor_nombre or "",
            c.responsable_nombre or "",
            c.actor_nombre or "",
            c.motivo or "",
        ]
        rows.append(dict(zip(HISTORIAL_EXPORT_COLUMNS, values)))
    return rows


def export_viviendas(viviendas: Iterable[Vivienda]) -> tuple[str, bytes]:
    """Filename and xlsx bytes of the units sheet."""
    content = write_sheet(VIVIENDA_SHEET, VIVIENDA_EXPORT_COLUMNS,
                          vivienda_rows(viviendas))
    return dated_filename("viviendas"), content


def export_historial(cambios: Iterable[CambioEstado]) -> tuple[str, bytes]:
    """Filename and xlsx bytes of the history sheet."""
    content = write_sheet(HISTORIAL_SHEET, HISTORIAL_EXPORT_COLUMNS,
                          cambio_rows(cambios))
    return dated_filename("historial_cambios"), content
