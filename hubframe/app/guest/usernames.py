"""Rewriting of user logins into display names inside the guest page."""

from __future__ import annotations

from typing import Any, Mapping

from bs4 import Tag

from .dom import GuestDocument, has_class, inner_text

REPLACED_CLASS = "user-name-replaced"

USER_SELECTORS = (
    f".issues-listing .author:not(.{REPLACED_CLASS})",
    f".sidebar-assignee .assignee:not(.{REPLACED_CLASS})",
    f".user-mention:not(.{REPLACED_CLASS})",
    f"a .discussion-item-entity:not(.{REPLACED_CLASS}):not(code)",
)
TOOLTIP_SELECTORS = (f".reaction-summary-item.tooltipped:not(.{REPLACED_CLASS})",)


def _user_id(element: Tag) -> str:
    return inner_text(element).strip("@")


def elements_with_user_id(document: GuestDocument) -> list[Tag]:
    return document.select(", ".join(USER_SELECTORS))


def tooltips_with_user_id(document: GuestDocument) -> list[Tag]:
    return document.select(", ".join(TOOLTIP_SELECTORS))


def gather_user_ids(document: GuestDocument) -> list[str]:
    """Unique user ids of the not yet rewritten elements, in document order."""

    seen: dict[str, None] = {}
    for element in elements_with_user_id(document):
        user_id = _user_id(element)
        if user_id:
            seen.setdefault(user_id, None)
    return list(seen)


def _display_name(users: Mapping[str, Any], user_id: str) -> str | None:
    entry = users.get(user_id)
    name = entry.get("name") if isinstance(entry, Mapping) else None
    return name if isinstance(name, str) and name else None


def replace_user_names(document: GuestDocument, users: Mapping[str, Any]) -> int:
    """Rewrite mentions and reaction tooltips; return how many elements changed.

    Every rewritten element gets ``user-name-replaced`` so a later pass, for
    example after a partial page update, leaves it alone.
    """

    changed = 0
    for element in elements_with_user_id(document):
        user_id = _user_id(element)
        name = _display_name(users, user_id)
        if name is None:
            continue
        document.set_text(element, name)
        document.set_attribute(element, "title", user_id)
        document.add_class(element, REPLACED_CLASS)
        changed += 1
    for element in tooltips_with_user_id(document):
        if has_class(element, REPLACED_CLASS):
            continue
        label = str(element.get("aria-label") or "")
        for user_id in users:
            name = _display_name(users, user_id)
            if name is not None:
                label = label.replace(user_id, name, 1)
        document.set_attribute(element, "aria-label", label)
        document.add_class(element, REPLACED_CLASS)
        changed += 1
    return changed


__all__ = [
    "REPLACED_CLASS",
    "gather_user_ids",
    "replace_user_names",
]
