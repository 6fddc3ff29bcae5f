"""Pure classification and extraction of page descriptors."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

from hubframe.app.io.models import PageDescriptor, PageKind

from .dom import inner_text

ISSUE_CONTAINERS = "#discussion_bucket, #files_bucket, #commits_bucket"
ISSUE_TITLE = ".js-issue-title"
ISSUE_NUMBER = ".gh-header-number"
REPO_NAV_ITEM = ".js-repo-nav .reponav-item"
PR_TABS = ".tabnav-pr"

_LEADING_NON_DIGITS = re.compile(r"^\D+")


def page_url(location: str) -> str:
    """URL reported for ``location``; anything but http(s) is a network error page."""

    if not isinstance(location, str) or not location.startswith("http"):
        return ""
    head, _, _ = location.partition("#")
    return head


def is_issue_like(soup: BeautifulSoup) -> bool:
    return soup.select_one(ISSUE_CONTAINERS) is not None


def _document_title(soup: BeautifulSoup) -> str:
    return inner_text(soup.title) if soup.title is not None else ""


def extract_page(soup: BeautifulSoup, location: str) -> PageDescriptor:
    """Build the descriptor of the page parsed into ``soup`` at ``location``.

    Issue and pull request pages whose number or repository link cannot be
    read are reported as plain pages so the descriptor never carries half an
    identity.
    """

    url = page_url(location)
    if is_issue_like(soup):
        number = _LEADING_NON_DIGITS.sub("", inner_text(soup.select_one(ISSUE_NUMBER)))
        repo_link = soup.select_one(REPO_NAV_ITEM)
        repo_path = str(repo_link.get("href") or "").lstrip("/") if repo_link is not None else ""
        if number and repo_path:
            kind = PageKind.PULL_REQUEST if soup.select_one(PR_TABS) is not None else PageKind.ISSUE
            return PageDescriptor(
                url=url,
                name=inner_text(soup.select_one(ISSUE_TITLE)) or _document_title(soup),
                id=number,
                repo_path=repo_path,
                kind=kind,
            )
    return PageDescriptor(url=url, name=_document_title(soup), kind=PageKind.PAGE)


__all__ = ["extract_page", "is_issue_like", "page_url"]
