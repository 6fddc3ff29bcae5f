from __future__ import annotations

from .models import HistoryRecord, NavigationState, PageDescriptor, PageKind, strip_fragment

__all__ = [
    "HistoryRecord",
    "NavigationState",
    "PageDescriptor",
    "PageKind",
    "strip_fragment",
]
