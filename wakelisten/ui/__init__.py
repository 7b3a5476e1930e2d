"""Console output."""

from .status_console import StatusConsole

__all__ = ["StatusConsole"]
