"""Canonical identities for issues and pull requests.

Every surface form of a reference (html link, api link, ``owner/repo/N`` triple,
``#N`` shorthand) is parsed by one named strategy and normalized into the same
:class:`EntityKey`. Traversal termination depends on this: two spellings of the
same entity must never produce two keys.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import re
from typing import Callable, Optional

LINE_ANCHOR_PATTERN = re.compile(r"#L\d+(?:C\d+)?(?:-L\d+(?:C\d+)?)?", re.IGNORECASE)

NAME_PATTERN = r"[\w.-]+"
HTML_URL_PATTERN = re.compile(
    rf"^https?://(?:www\.)?github\.com/(?P<owner>{NAME_PATTERN})/(?P<repo>{NAME_PATTERN})/(?:pulls?|issues?)/(?P<number>\d+)",
    re.IGNORECASE,
)
API_URL_PATTERN = re.compile(
    rf"^https?://(?:api\.github\.com|[^/\s]+/api/v3)/repos/(?P<owner>{NAME_PATTERN})/(?P<repo>{NAME_PATTERN})/(?:issues|pulls)/(?P<number>\d+)",
    re.IGNORECASE,
)
BARE_TRIPLE_PATTERN = re.compile(rf"^(?P<owner>{NAME_PATTERN})/(?P<repo>{NAME_PATTERN})/(?P<number>\d+)$")
HASH_REFERENCE_PATTERN = re.compile(rf"^(?:(?P<owner>{NAME_PATTERN})/(?P<repo>{NAME_PATTERN}))?#(?P<number>\d+)$")


class InvalidKeyError(ValueError):
    """Raised when a caller-supplied reference cannot be turned into an entity key."""


class KeyShape(str, Enum):
    """Surface forms a reference to an issue or pull request can take."""

    HTML_URL = "html_url"
    API_URL = "api_url"
    BARE_TRIPLE = "bare_triple"
    HASH_REFERENCE = "hash_reference"


@dataclass(frozen=True)
class EntityKey:
    """Normalized ``(owner, repo, number)`` identity of an issue or pull request."""

    owner: str
    repo: str
    number: int

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}/{self.number}"

    @property
    def html_url(self) -> str:
        # GitHub redirects /issues/N to /pull/N when N is a pull request.
        return f"https://github.com/{self.owner}/{self.repo}/issues/{self.number}"

    @property
    def repo_full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @classmethod
    def build(cls, owner: str | None, repo: str | None, number) -> Optional["EntityKey"]:
        if not owner or not repo:
            return None
        if owner in ("undefined", "None") or repo in ("undefined", "None"):
            return None
        try:
            value = int(number)
        except (TypeError, ValueError):
            return None
        if value <= 0:
            return None
        return cls(owner=owner.lower(), repo=repo.lower(), number=value)


def strip_line_anchors(text: str) -> str:
    return LINE_ANCHOR_PATTERN.sub("", text)


def _parse_html_url(text: str, default_owner: str | None, default_repo: str | None) -> Optional[EntityKey]:
    match = HTML_URL_PATTERN.match(text)
    if not match:
        return None
    return EntityKey.build(match.group("owner"), match.group("repo"), match.group("number"))


def _parse_api_url(text: str, default_owner: str | None, default_repo: str | None) -> Optional[EntityKey]:
    match = API_URL_PATTERN.match(text)
    if not match:
        return None
    return EntityKey.build(match.group("owner"), match.group("repo"), match.group("number"))


def _parse_bare_triple(text: str, default_owner: str | None, default_repo: str | None) -> Optional[EntityKey]:
    match = BARE_TRIPLE_PATTERN.match(text)
    if not match:
        return None
    return EntityKey.build(match.group("owner"), match.group("repo"), match.group("number"))


def _parse_hash_reference(text: str, default_owner: str | None, default_repo: str | None) -> Optional[EntityKey]:
    match = HASH_REFERENCE_PATTERN.match(text)
    if not match:
        return None
    owner = match.group("owner") or default_owner
    repo = match.group("repo") or default_repo
    return EntityKey.build(owner, repo, match.group("number"))


_STRATEGIES: dict[KeyShape, Callable[[str, Optional[str], Optional[str]], Optional[EntityKey]]] = {
    KeyShape.HTML_URL: _parse_html_url,
    KeyShape.API_URL: _parse_api_url,
    KeyShape.BARE_TRIPLE: _parse_bare_triple,
    KeyShape.HASH_REFERENCE: _parse_hash_reference,
}


def detect_shape(text: str | None) -> KeyShape | None:
    if not text:
        return None
    candidate = strip_line_anchors(text.strip())
    if HTML_URL_PATTERN.match(candidate):
        return KeyShape.HTML_URL
    if API_URL_PATTERN.match(candidate):
        return KeyShape.API_URL
    if BARE_TRIPLE_PATTERN.match(candidate):
        return KeyShape.BARE_TRIPLE
    if HASH_REFERENCE_PATTERN.match(candidate):
        return KeyShape.HASH_REFERENCE
    return None


def parse_key(
    text: str | None,
    *,
    default_owner: str | None = None,
    default_repo: str | None = None,
) -> Optional[EntityKey]:
    """Dispatch ``text`` to the matching parser strategy.

    Returns ``None`` when the text is not a recognisable reference or yields an
    invalid owner/repo/number triple.
    """

    shape = detect_shape(text)
    if shape is None:
        return None
    candidate = strip_line_anchors(text.strip())
    return _STRATEGIES[shape](candidate, default_owner, default_repo)


def normalize_key(
    text: str,
    *,
    default_owner: str | None = None,
    default_repo: str | None = None,
) -> EntityKey:
    key = parse_key(text, default_owner=default_owner, default_repo=default_repo)
    if key is None:
        raise InvalidKeyError(f"Cannot derive an issue or pull request key from {text!r}")
    return key
