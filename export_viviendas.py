#!/usr/bin/env python3
"""
Export viviendas or their state history to an Excel workbook.

Applies the same filters as the API list endpoints and writes
``viviendas_<date>.xlsx`` or ``historial_cambios_<date>.xlsx``.

Usage:
    python export_viviendas.py viviendas --backend sqlite --db viviendas.sqlite
    python export_viviendas.py viviendas --estado BLOQUEADA --estado RESERVADA
    python export_viviendas.py historial --desde 2024-01-01 --hasta 2024-01-31 --out exports/
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from inventario.exceptions import InventarioError
from inventario.export import export_historial, export_viviendas
from inventario.filters import HistorialFilters, ViviendaFilters, filter_cambios
from store import create_repository
from utils.config import BACKENDS, AppConfig

logger = logging.getLogger("export_viviendas")


def export(kind: str, args: argparse.Namespace, config: AppConfig) -> tuple[Path, int]:
    """Write the workbook for ``kind`` into ``args.out``; returns path and row count."""
    repo = create_repository(config)
    try:
        if kind == "viviendas":
            filters = ViviendaFilters(
                search=args.search,
                portal=args.portal,
                estados=[e.upper() for e in args.estado],
                tipologia=args.tipologia,
                gestor=args.gestor,
                responsable=args.responsable,
            )
            records = repo.get_units(filters)
            filename, content = export_viviendas(records)
        else:
            filters = HistorialFilters(
                search=args.search,
                a_estado=(args.estado[0].upper() if args.estado else ""),
                gestor=args.gestor,
                responsable=args.responsable,
                fecha_desde=args.desde,
                fecha_hasta=args.hasta,
            )
            records = filter_cambios(repo.get_cambios(), filters)
            filename, content = export_historial(records)
    finally:
        repo.close()

    args.out.mkdir(parents=True, exist_ok=True)
    path = args.out / filename
    path.write_bytes(content)
    return path, len(records)


def main() -> None:
    parser = argparse.ArgumentParser(description="Export viviendas or history to .xlsx")
    parser.add_argument("kind", choices=("viviendas", "historial"))
    parser.add_argument("--backend", choices=BACKENDS, default=None,
                        help="Storage backend (default: APP_BACKEND env var)")
    parser.add_argument("--db", type=Path, default=None,
                        help="SQLite database for --backend sqlite")
    parser.add_argument("--out", type=Path, default=Path("."),
                        help="Output directory (default: current directory)")
    parser.add_argument("--search", default="", help="Free-text search")
    parser.add_argument("--portal", default="", help="Exact portal (viviendas only)")
    parser.add_argument("--tipologia", default="", help="Exact tipologia (viviendas only)")
    parser.add_argument("--estado", action="append", default=[],
                        help="Estado filter; repeatable for viviendas, "
                             "new estado for historial")
    parser.add_argument("--gestor", default="", help="Gestor persona id")
    parser.add_argument("--responsable", default="", help="Responsable persona id")
    parser.add_argument("--desde", default=None, help="History start day YYYY-MM-DD")
    parser.add_argument("--hasta", default=None, help="History end day YYYY-MM-DD")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s %(message)s")

    if args.backend is not None:
        os.environ["APP_BACKEND"] = args.backend
    if args.db is not None:
        os.environ["APP_DB_PATH"] = str(args.db)

    try:
        path, count = export(args.kind, args, AppConfig.from_env())
    except (InventarioError, ValueError, OSError) as e:
        print(f"ERROR: {e}")
        sys.exit(1)
    print(f"Wrote {count} rows to {path}")


if __name__ == "__main__":
    main()
