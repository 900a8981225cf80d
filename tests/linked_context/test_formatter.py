from __future__ import annotations

import asyncio

from app.linked_context.comments import Comment
from app.linked_context.fetcher import EntityFetcher
from app.linked_context.formatter import MISSING_BODY, MISSING_DIFF, format_context, format_resolution, render_context
from app.linked_context.keys import EntityKey
from app.linked_context.references import CodeLink
from app.linked_context.traversal import EntityStatus, LinkedCode, LinkedContextResolver, LinkedEntity

SEED = EntityKey("acme", "api", 1)


def _entity(key, *, is_pull_request=False, diff=None, depth=0):
    return LinkedEntity(
        key=key,
        url=key.html_url,
        depth=depth,
        is_pull_request=is_pull_request,
        diff=diff,
        status=EntityStatus.RESOLVED,
    )


def test_seed_issue_renders_specification_and_conversation():
    comments = {SEED: [Comment(10, "alice", "User", "How does this work?", SEED)]}
    blocks = format_context([_entity(SEED)], {SEED: "Implement login"}, comments, SEED)

    assert blocks == [
        "=== Current Issue #1 Specification === acme/api/1 ===\n\n"
        "Implement login\n"
        "=== End Current Issue #1 Specification ===\n\n",
        "=== Current Issue #1 Conversation === acme/api #1 ===\n\n"
        "10 alice: How does this work?\n"
        "=== End Current Issue #1 Conversation ===\n\n",
    ]


def test_seed_block_present_without_any_data():
    blocks = format_context([], {}, {}, SEED)
    assert len(blocks) == 2
    assert MISSING_BODY in blocks[0]
    assert blocks[1] == "=== Current Issue #1 Conversation === acme/api #1 ===\n\n=== End Current Issue #1 Conversation ===\n\n"


def test_pull_requests_get_request_body_and_diff_blocks():
    pull = EntityKey("acme", "api", 7)
    entities = [_entity(SEED), _entity(pull, is_pull_request=True, diff="+added line", depth=1)]
    blocks = format_context(entities, {SEED: "issue", pull: "PR body"}, {}, SEED)

    assert blocks[2].startswith("=== Linked Pull Request #7 Request Body === acme/api/7 ===\n\nPR body\n")
    assert blocks[3].startswith("=== Linked Pull Request #7 Conversation === acme/api #7 ===")
    assert blocks[4] == (
        "=== Linked Pull Request #7 Code Diff === acme/api/7 ===\n\n+added line\n=== End Linked Pull Request #7 Code Diff ===\n\n"
    )


def test_missing_diff_uses_placeholder():
    pull = EntityKey("acme", "api", 7)
    blocks = format_context([_entity(pull, is_pull_request=True)], {pull: "body"}, {}, pull)
    assert blocks[0].startswith("=== Current Pull Request #7 Request Body ===")
    assert MISSING_DIFF in blocks[2]


def test_conversation_lines_are_deduped_by_id():
    comment = Comment(5, "bob", "User", "dup", SEED)
    blocks = format_context([_entity(SEED)], {SEED: "x"}, {SEED: [comment, comment]}, SEED)
    assert blocks[1].count("5 bob: dup\n") == 1


def test_key_order_is_seed_then_discovery_then_sorted_extras():
    second = EntityKey("acme", "api", 9)
    third = EntityKey("acme", "api", 3)
    extra_b = EntityKey("acme", "web", 2)
    extra_a = EntityKey("acme", "docs", 4)
    entities = [_entity(SEED), _entity(second, depth=1), _entity(third, depth=1)]
    bodies = {third: "three", extra_b: "b", second: "nine", SEED: "seed"}
    comments = {extra_a: [Comment(1, "x", "User", "y", extra_a)]}

    blocks = format_context(entities, bodies, comments, SEED)
    headers = [block.split(" === ")[1].split(" ")[0] for block in blocks if "Specification" in block]
    assert headers == ["acme/api/1", "acme/api/9", "acme/api/3", "acme/docs/4", "acme/web/2"]


def test_output_is_independent_of_map_insertion_order():
    other = EntityKey("acme", "api", 2)
    entities = [_entity(SEED), _entity(other, depth=1)]
    comments = {
        SEED: [Comment(1, "alice", "User", "q", SEED)],
        other: [Comment(2, "bob", "User", "a", other)],
    }
    forward = format_context(entities, {SEED: "s", other: "o"}, comments, SEED)
    backward = format_context(entities, {other: "o", SEED: "s"}, dict(reversed(list(comments.items()))), SEED)
    assert render_context(forward) == render_context(backward)


def test_linked_files_follow_entity_blocks():
    link = CodeLink(owner="acme", repo="api", ref="main", path="src/app.py", url="https://github.com/acme/api/blob/main/src/app.py")
    missing = CodeLink(owner="acme", repo="api", ref="main", path="gone.py", url="https://github.com/acme/api/blob/main/gone.py")
    blocks = format_context(
        [_entity(SEED)],
        {SEED: "body"},
        {},
        SEED,
        [LinkedCode(link=link, content="print(1)"), LinkedCode(link=missing, content=None)],
    )
    assert blocks[-1] == "=== Linked File === acme/api@main:src/app.py ===\n\nprint(1)\n=== End Linked File ===\n\n"
    assert len(blocks) == 3


def test_rendering_a_resolution_is_deterministic(fake_gateway):
    fake_gateway.add("acme", "api", 1, "Parent of #2 and #3", [("alice", "@UbiquityOS what changed?")])
    fake_gateway.add("acme", "api", 2, "Child two", [("bob", "done")])
    fake_gateway.add("acme", "api", 3, "Child three", is_pull_request=True, diff="+x")

    def run():
        resolver = LinkedContextResolver(EntityFetcher(fake_gateway), concurrency=2)
        return render_context(format_resolution(asyncio.run(resolver.resolve_context(SEED))))

    first = run()
    assert first == run()
    assert first.index("Current Issue #1 Specification") < first.index("Linked Issue #2 Specification")
    assert first.index("Linked Issue #2 Specification") < first.index("Linked Pull Request #3 Request Body")
    assert "Linked Pull Request #3 Code Diff === acme/api/3 ===\n\n+x\n" in first
