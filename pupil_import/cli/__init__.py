"""Command line interface (`python -m pupil_import.cli`)."""

from .app import main

__all__ = ["main"]
