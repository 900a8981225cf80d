"""Deterministic rendering of a resolved linked context."""

from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from app.linked_context.comments import Comment
from app.linked_context.keys import EntityKey
from app.linked_context.traversal import ContextResolution, LinkedCode, LinkedEntity

MISSING_BODY = "No specification or body available"
MISSING_DIFF = "No diff available"


def _block(label: str, identifier: str, content: str) -> str:
    return f"=== {label} === {identifier} ===\n\n{content}=== End {label} ===\n\n"


def _render_comments(comments: Iterable[Comment]) -> str:
    lines: list[str] = []
    seen: set[str] = set()
    for comment in comments:
        marker = str(comment.id)
        if marker in seen:
            continue
        seen.add(marker)
        lines.append(f"{comment.id} {comment.author_login}: {comment.body}\n")
    return "".join(lines)


def _ordered_keys(
    current_key: EntityKey,
    entities: Sequence[LinkedEntity],
    spec_or_bodies: Mapping[EntityKey, str],
    streamlined_comments: Mapping[EntityKey, list[Comment]],
) -> list[EntityKey]:
    ordered = [current_key]
    known = {current_key}
    for entity in entities:
        if entity.key not in known:
            known.add(entity.key)
            ordered.append(entity.key)
    extras = {key for key in (*spec_or_bodies, *streamlined_comments) if key not in known}
    ordered.extend(sorted(extras, key=str))
    return ordered


def format_context(
    entities: Sequence[LinkedEntity],
    spec_or_bodies: Mapping[EntityKey, str],
    streamlined_comments: Mapping[EntityKey, list[Comment]],
    current_key: EntityKey,
    linked_code: Sequence[LinkedCode] = (),
) -> list[str]:
    """Render one block per section, current entity first.

    Every key gets a specification/body block and a conversation block; pull requests also
    get a code diff block. The output depends only on the inputs, never on the
    order in which fetches completed.
    """

    by_key = {entity.key: entity for entity in entities}
    blocks: list[str] = []
    for key in _ordered_keys(current_key, entities, spec_or_bodies, streamlined_comments):
        entity = by_key.get(key)
        is_pull_request = bool(entity and entity.is_pull_request)
        scope = "Current" if key == current_key else "Linked"
        kind = "Pull Request" if is_pull_request else "Issue"
        key_id = str(key)

        body = spec_or_bodies.get(key)
        body_label = f"{scope} Pull Request #{key.number} Request Body" if is_pull_request else f"{scope} Issue #{key.number} Specification"
        blocks.append(_block(body_label, key_id, f"{body}\n" if body else f"{MISSING_BODY}\n"))

        conversation = _render_comments(streamlined_comments.get(key, []))
        blocks.append(_block(f"{scope} {kind} #{key.number} Conversation", f"{key.repo_full_name} #{key.number}", conversation))

        if is_pull_request:
            diff = entity.diff if entity and entity.diff else MISSING_DIFF
            blocks.append(_block(f"{scope} Pull Request #{key.number} Code Diff", key_id, f"{diff}\n"))

    for code in linked_code:
        if code.content is None:
            continue
        blocks.append(_block("Linked File", code.link.identifier, f"{code.content}\n"))
    return blocks


def format_resolution(resolution: ContextResolution) -> list[str]:
    return format_context(
        resolution.entities,
        resolution.spec_or_bodies,
        resolution.streamlined_comments,
        resolution.seed_key,
        resolution.linked_code,
    )


def render_context(blocks: Iterable[str]) -> str:
    return "".join(blocks)
