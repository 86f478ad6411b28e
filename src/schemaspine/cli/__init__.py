"""
schema-spine CLI: Typer-based command line.

Usage::

    schemaspine update --catalog myapp.schema:CATALOG
    schemaspine status
    schemaspine pending --catalog myapp.schema:CATALOG
    schemaspine forget materialized-view prow_test_report_7d
"""

from schemaspine.cli.app import app


def main() -> None:
    """Entry point for the ``schemaspine`` console script."""
    app()


__all__ = ["app", "main"]
