"""Pydantic models shared across the guest/host boundary and storage."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class PageKind(str, Enum):
    PAGE = "page"
    ISSUE = "issue"
    PULL_REQUEST = "pull-request"


_LEGACY_KINDS = {"pr": PageKind.PULL_REQUEST.value, "issue": PageKind.ISSUE.value}


def strip_fragment(url: str) -> str:
    """Return ``url`` without the ``#`` separator and anything after it."""

    head, _, _ = str(url or "").partition("#")
    return head


def _coerce_optional_str(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None
    text = value.strip()
    return text or None


class PageDescriptor(BaseModel):
    """Normalized view of the page shown in the embedded frame."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    url: str = ""
    name: str = ""
    id: str | None = None
    repo_path: str | None = Field(default=None, alias="repoPath")
    kind: PageKind = PageKind.PAGE

    @model_validator(mode="before")
    @classmethod
    def _from_wire(cls, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return value
        payload = dict(value)
        # Older guests send ``repo``/``type: "pr"`` instead of ``repoPath``/``kind``.
        if "repo" in payload and "repoPath" not in payload and "repo_path" not in payload:
            payload["repoPath"] = payload.pop("repo")
        legacy_type = payload.pop("type", None)
        if "kind" not in payload and isinstance(legacy_type, str):
            payload["kind"] = _LEGACY_KINDS.get(legacy_type, legacy_type)
        return payload

    @field_validator("url", mode="before")
    @classmethod
    def _normalize_url(cls, value: Any) -> str:
        return strip_fragment(value if isinstance(value, str) else "")

    @field_validator("name", mode="before")
    @classmethod
    def _normalize_name(cls, value: Any) -> str:
        return value.strip() if isinstance(value, str) else ""

    @field_validator("id", "repo_path", mode="before")
    @classmethod
    def _normalize_optional(cls, value: Any) -> str | None:
        return _coerce_optional_str(value)

    @model_validator(mode="after")
    def _check_identity(self) -> "PageDescriptor":
        if (self.id is None) != (self.repo_path is None):
            raise ValueError("id and repoPath must be both present or both absent")
        if (self.kind is PageKind.PAGE) != (self.id is None):
            raise ValueError("id/repoPath are present exactly when kind is not 'page'")
        return self

    @property
    def is_issue_like(self) -> bool:
        return self.kind is not PageKind.PAGE

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class NavigationState(BaseModel):
    """Last confirmed navigation of the embedded frame."""

    url: str = ""
    issue: PageDescriptor | None = None


class HistoryRecord(BaseModel):
    """Row of the local history store."""

    model_config = ConfigDict(populate_by_name=True)

    id: int | None = None
    url: str
    name: str = ""
    timestamp: float = Field(default_factory=time.time)
    number: str | None = None
    repo_path: str | None = Field(default=None, alias="repoPath")
    kind: PageKind = PageKind.PAGE
    visited: float | None = None

    @model_validator(mode="before")
    @classmethod
    def _from_descriptor_shape(cls, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return value
        payload = dict(value)
        # A page descriptor carries the issue number as ``id``.
        if "number" not in payload and "id" in payload:
            payload["number"] = payload.pop("id")
        if "repo" in payload and "repoPath" not in payload and "repo_path" not in payload:
            payload["repoPath"] = payload.pop("repo")
        legacy_type = payload.pop("type", None)
        if "kind" not in payload and isinstance(legacy_type, str):
            payload["kind"] = _LEGACY_KINDS.get(legacy_type, legacy_type)
        return payload

    @field_validator("url", mode="before")
    @classmethod
    def _normalize_url(cls, value: Any) -> str:
        return strip_fragment(value if isinstance(value, str) else "").strip()

    @field_validator("name", mode="before")
    @classmethod
    def _normalize_name(cls, value: Any) -> str:
        return value if isinstance(value, str) else ""

    @field_validator("number", "repo_path", mode="before")
    @classmethod
    def _normalize_optional(cls, value: Any) -> str | None:
        return _coerce_optional_str(value)

    @classmethod
    def from_descriptor(cls, descriptor: PageDescriptor, *, timestamp: float | None = None) -> "HistoryRecord":
        return cls(
            url=descriptor.url,
            name=descriptor.name,
            timestamp=time.time() if timestamp is None else timestamp,
            number=descriptor.id,
            repo_path=descriptor.repo_path,
            kind=descriptor.kind,
        )


__all__ = [
    "HistoryRecord",
    "NavigationState",
    "PageDescriptor",
    "PageKind",
    "strip_fragment",
]
