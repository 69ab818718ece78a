"""Background orchestration core for pushing in-browser projects to GitHub."""

__version__ = "0.1.0"

__all__ = ["__version__"]
