"""Cross-reference extraction from issue bodies and comments."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import re
from typing import Iterable, Sequence

from app.linked_context.keys import EntityKey, NAME_PATTERN, parse_key, strip_line_anchors

_logger = logging.getLogger(__name__)

HTML_URL_SCAN = re.compile(
    rf"https?://(?:www\.)?github\.com/{NAME_PATTERN}/{NAME_PATTERN}/(?:pulls?|issues?)/\d+",
    re.IGNORECASE,
)
API_URL_SCAN = re.compile(
    rf"https?://api\.github\.com/repos/{NAME_PATTERN}/{NAME_PATTERN}/(?:issues|pulls)/\d+",
    re.IGNORECASE,
)
HASH_REFERENCE_SCAN = re.compile(rf"(?<![\w&/#])(?:{NAME_PATTERN}/{NAME_PATTERN})?#\d+\b")
FENCED_CODE_PATTERN = re.compile(r"```.*?(?:```|\Z)", re.DOTALL)
INLINE_CODE_PATTERN = re.compile(r"`[^`\n]*`")
BLOB_URL_SCAN = re.compile(
    rf"https?://(?:www\.)?github\.com/(?P<owner>{NAME_PATTERN})/(?P<repo>{NAME_PATTERN})/blob/(?P<ref>[^/\s]+)/(?P<path>[^\s)\]>\"'?]+)",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class EntityRef:
    """A resolved reference to an issue or pull request."""

    owner: str
    repo: str
    number: int
    url: str

    @property
    def key(self) -> EntityKey:
        return EntityKey(owner=self.owner, repo=self.repo, number=self.number)

    @classmethod
    def from_key(cls, key: EntityKey, url: str | None = None) -> "EntityRef":
        return cls(owner=key.owner, repo=key.repo, number=key.number, url=url or key.html_url)


@dataclass(frozen=True)
class CodeLink:
    """An embedded link to a source file in a repository."""

    owner: str
    repo: str
    ref: str
    path: str
    url: str

    @property
    def identifier(self) -> str:
        return f"{self.owner}/{self.repo}@{self.ref}:{self.path}"


def _scan_candidates(text: str, follow_hash_references: bool) -> list[tuple[int, str]]:
    anchored = strip_line_anchors(text)
    candidates = [(match.start(), match.group(0)) for match in HTML_URL_SCAN.finditer(anchored)]
    candidates.extend((match.start(), match.group(0)) for match in API_URL_SCAN.finditer(anchored))
    if follow_hash_references:
        # Code spans are blanked with same-length padding so offsets stay comparable.
        prose = FENCED_CODE_PATTERN.sub(lambda m: " " * len(m.group(0)), anchored)
        prose = INLINE_CODE_PATTERN.sub(lambda m: " " * len(m.group(0)), prose)
        candidates.extend((match.start(), match.group(0)) for match in HASH_REFERENCE_SCAN.finditer(prose))
    candidates.sort(key=lambda item: item[0])
    return candidates


def extract_references(
    text: str | None,
    *,
    default_owner: str | None = None,
    default_repo: str | None = None,
    origin_owner: str | None = None,
    restrict_to_owner: bool = True,
    follow_hash_references: bool = True,
) -> list[EntityRef]:
    """Return every issue/pull request referenced in ``text`` in order of appearance.

    Hash references (``#12``, ``owner/repo#12``) resolve against the default
    owner/repo and are ignored inside code spans. When ``restrict_to_owner`` is
    set, references to an owner other than ``origin_owner`` are dropped.
    """

    if not text:
        return []
    refs: list[EntityRef] = []
    found: set[EntityKey] = set()
    origin = origin_owner.lower() if origin_owner else None
    for _, raw in _scan_candidates(text, follow_hash_references):
        key = parse_key(raw, default_owner=default_owner, default_repo=default_repo)
        if key is None:
            _logger.debug("Skipping unparseable reference %r", raw)
            continue
        if key in found:
            continue
        found.add(key)
        if restrict_to_owner and origin and key.owner != origin:
            _logger.info(
                "Ignoring linked reference %s: owner %s differs from origin owner %s",
                key,
                key.owner,
                origin,
            )
            continue
        url = raw if raw.lower().startswith("http") else key.html_url
        refs.append(EntityRef(owner=key.owner, repo=key.repo, number=key.number, url=url))
    return refs


def extract_from_texts(texts: Iterable[str | None], **kwargs) -> list[EntityRef]:
    refs: list[EntityRef] = []
    seen: set[EntityKey] = set()
    for text in texts:
        for ref in extract_references(text, **kwargs):
            if ref.key in seen:
                continue
            seen.add(ref.key)
            refs.append(ref)
    return refs


def _has_extension(path: str, extensions: Sequence[str]) -> bool:
    lowered = path.lower()
    return any(lowered.endswith(ext.lower()) for ext in extensions)


def extract_code_links(
    text: str | None,
    extensions: Sequence[str],
    *,
    origin_owner: str | None = None,
    restrict_to_owner: bool = True,
) -> list[CodeLink]:
    if not text:
        return []
    links: list[CodeLink] = []
    seen: set[str] = set()
    origin = origin_owner.lower() if origin_owner else None
    for match in BLOB_URL_SCAN.finditer(text):
        path = strip_line_anchors(match.group("path")).split("#", 1)[0].rstrip(".,;:")
        if not _has_extension(path, extensions):
            continue
        owner = match.group("owner").lower()
        if restrict_to_owner and origin and owner != origin:
            _logger.info("Ignoring linked file %s: owner %s differs from origin owner %s", path, owner, origin)
            continue
        link = CodeLink(
            owner=owner,
            repo=match.group("repo").lower(),
            ref=match.group("ref"),
            path=path,
            url=f"https://github.com/{match.group('owner')}/{match.group('repo')}/blob/{match.group('ref')}/{path}",
        )
        if link.identifier in seen:
            continue
        seen.add(link.identifier)
        links.append(link)
    return links
