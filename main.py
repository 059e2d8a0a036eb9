#!/usr/bin/env python3
"""
Viviendas inventory: launch the back-office API.

Usage:
    python main.py                              # memory backend, http://127.0.0.1:8000
    python main.py --backend sqlite --db viviendas.sqlite
    python main.py --port 9000 --host 0.0.0.0
    python main.py --reload                     # auto-reload on code changes
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from utils.config import BACKENDS


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Launch the viviendas inventory API.",
    )
    parser.add_argument(
        "--backend", choices=BACKENDS, default=None,
        help="Storage backend (default: APP_BACKEND env var or memory)",
    )
    parser.add_argument(
        "--db", type=Path, default=None,
        help="SQLite database for --backend sqlite (default: APP_DB_PATH or viviendas.sqlite)",
    )
    parser.add_argument(
        "--host", default=os.getenv("APP_HOST", "127.0.0.1"),
        help="Bind address (default: 127.0.0.1 or APP_HOST env var)",
    )
    parser.add_argument(
        "--port", type=int, default=int(os.getenv("APP_PORT", "8000")),
        help="Port to listen on (default: 8000 or APP_PORT env var)",
    )
    parser.add_argument(
        "--reload", action="store_true",
        help="Enable auto-reload on file changes (development mode)",
    )
    args = parser.parse_args()

    # The app module reads its settings from the environment at import time
    if args.backend is not None:
        os.environ["APP_BACKEND"] = args.backend
    if args.db is not None:
        os.environ["APP_DB_PATH"] = str(args.db)

    backend = os.getenv("APP_BACKEND", "memory")
    if backend == "sqlite":
        db_path = Path(os.getenv("APP_DB_PATH", "viviendas.sqlite"))
        if not db_path.exists():
            print(f"Note: {db_path} does not exist yet; it will be created empty.")
            print("  Run 'python build_viviendas_db.py' to seed personas and users.")
            print()
    elif backend == "supabase" and not os.getenv("SUPABASE_URL"):
        print("Error: --backend supabase needs SUPABASE_URL and SUPABASE_ANON_KEY.")
        sys.exit(1)

    import uvicorn

    print(f"Starting viviendas API at http://{args.host}:{args.port} ({backend} backend)")
    print(f"OpenAPI docs: http://{args.host}:{args.port}/docs")
    print()

    uvicorn.run(
        "api.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
