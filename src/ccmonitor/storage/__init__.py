"""Storage abstractions for ccmonitor."""

from .history import HistoryStore, replace_file
from .models import HistoryRecord

__all__ = [
    "HistoryRecord",
    "HistoryStore",
    "replace_file",
]
