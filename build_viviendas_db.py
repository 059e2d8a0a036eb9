"""
Viviendas SQLite Database Builder

Creates the local SQLite store (personas, profiles, viviendas,
cambios_estado, import_jobs) and optionally seeds personas and users from a
JSON file.  Units themselves are loaded with ``import_viviendas.py``.

Usage:
    python build_viviendas_db.py                        # create viviendas.sqlite
    python build_viviendas_db.py --rebuild              # drop and recreate tables
    python build_viviendas_db.py --db data/v.sqlite --seed seed.json

Seed file format::

    {
      "personas": [{"id": "p1", "nombre": "Ana López", "tipo": "GESTOR"}],
      "profiles": [{"id": "u1", "email": "ana@example.com", "role": "gestor"}]
    }
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from inventario.models import Persona, Profile
from store.sqlite import SQLiteRepository, create_schema, drop_schema
from utils.database import get_table_count

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path("viviendas.sqlite")


def load_seed(path: Path) -> tuple[list[Persona], list[Profile]]:
    """Parse a seed JSON file into personas and profiles."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    personas = [Persona.from_record(p) for p in data.get("personas", [])]
    profiles = [Profile.from_record(p) for p in data.get("profiles", [])]
    return personas, profiles


def build_database(db_path: Path, rebuild: bool = False,
                   seed: Path | None = None) -> dict[str, int]:
    """Create (or recreate) the schema and apply the seed.

    Returns:
        Row count per table after the build.
    """
    repo = SQLiteRepository(db_path)
    try:
        conn = repo.connection
        if rebuild:
            logger.info("Dropping existing tables in %s", db_path)
            drop_schema(conn)
            create_schema(conn)
        if seed is not None:
            personas, profiles = load_seed(seed)
            for p in personas:
                repo.add_persona(p)
            for p in profiles:
                repo.add_profile(p)
            logger.info("Seeded %d personas and %d profiles from %s",
                        len(personas), len(profiles), seed)
        return {
            table: get_table_count(conn, table)
            for table in ("personas", "profiles", "viviendas",
                          "cambios_estado", "import_jobs")
        }
    finally:
        repo.close()


def main():
    """Parse command-line arguments and build the database."""
    parser = argparse.ArgumentParser(description="Build the viviendas SQLite database")
    parser.add_argument("--db", type=Path, default=DEFAULT_DB_PATH,
                        help=f"Database path (default: {DEFAULT_DB_PATH})")
    parser.add_argument("--rebuild", action="store_true",
                        help="Drop every table before creating the schema")
    parser.add_argument("--seed", type=Path, default=None, metavar="JSON",
                        help="Seed file with personas and profiles")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s %(message)s")

    if args.seed is not None and not args.seed.exists():
        print(f"ERROR: seed file not found: {args.seed}")
        sys.exit(1)
    try:
        counts = build_database(args.db, rebuild=args.rebuild, seed=args.seed)
    except (OSError, ValueError, KeyError) as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    print(f"\n{'='*60}")
    print("  BUILD COMPLETE")
    print(f"{'='*60}")
    print(f"  Database: {args.db}")
    for table, count in counts.items():
        print(f"  {table:<16} {count:>6,}")


if __name__ == "__main__":
    main()
