"""Video-generation relay: task lifecycle, status normalization and persistence."""

__version__ = "0.1.0"
