"""LehrerOffice -> PUPIL import validation and identity consolidation."""

__version__ = "0.3.0"
