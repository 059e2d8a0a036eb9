"""
Pipeline package -- spreadsheet import of viviendas.

Re-exports key entry points so callers can do::

    from pipeline import import_file, preview_rows
"""

from pipeline.importer import (
    ImportResult,
    RowError,
    ViviendaImporter,
    import_file,
    preview_rows,
)

__all__ = [
    "ImportResult",
    "RowError",
    "ViviendaImporter",
    "import_file",
    "preview_rows",
]
