"""Embedded view and the controller that owns it."""

from __future__ import annotations

from .controller import FrameController
from .view import EmbeddedView, HeadlessView, ViewError, ViewEvent

__all__ = ["EmbeddedView", "FrameController", "HeadlessView", "ViewError", "ViewEvent"]
