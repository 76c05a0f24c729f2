"""Pick the best shot from Immich duplicate groups."""

__version__ = "1.0.0"
