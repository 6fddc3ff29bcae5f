"""Names of the messages exchanged between the guest page and the host."""

from __future__ import annotations

from enum import Enum
from typing import TypeVar


class GuestEvent(str, Enum):
    """Guest -> host messages."""

    IS_LOGGED = "isLogged"
    DOM_CHANGED = "domChanged"
    DOC_READY = "docReady"
    USER_IDS_GATHERED = "userIdsGathered"
    SWIPE_ALLOWED = "swipe-allowed"
    DOCUMENT_CLICKED = "documentClicked"
    LINK_CLICKED = "linkClicked"
    EXTERNAL_LINK_CLICKED = "externalLinkClicked"
    SHOW_PREVIEW = "showPreview"
    SHOW_IMG_MENU = "showImgMenu"
    SHOW_LINK_MENU = "showLinkMenu"
    SHOW_SELECTION_MENU = "showSelectionMenu"
    CSS_READY = "cssReady"


class GuestCommand(str, Enum):
    """Host -> guest commands."""

    GATHER_USER_IDS = "gatherUserIds"
    USER_IDS_AND_NAMES = "userIdsAndNames"
    INJECT_CSS = "injectCss"
    ZOOM = "zoom"
    SWIPE_START = "swipe-start"
    SWIPE_END = "swipe-end"


class MenuCommand(str, Enum):
    TOGGLE_DEVTOOLS = "toggle-main-frame-devtools"
    CLEAR_COOKIES = "clear-cookies"


class NavigationTarget(str, Enum):
    PREV = "prev"
    NEXT = "next"
    REFRESH = "refresh"


E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: type[E], value: object) -> E | None:
    """Return the member of ``enum_cls`` named by ``value`` or ``None``."""

    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None


__all__ = ["GuestCommand", "GuestEvent", "MenuCommand", "NavigationTarget", "parse_enum"]
