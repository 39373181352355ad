"""Trust evaluation for editor extensions and their source repositories."""

__version__ = "0.1.0"
