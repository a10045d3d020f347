"""ccmonitor: run parallel pseudo-terminal sessions and observe them remotely."""

__version__ = "0.1.0"

__all__ = ["__version__"]
