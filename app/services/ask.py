"""Question answering over the linked context of an issue or pull request."""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import re
from typing import Any, Protocol

from app.linked_context.github_gateway import GatewayError
from app.linked_context.keys import EntityKey
from app.services.completions import CompletionError, CompletionResult, CompletionsClient
from app.services.context import ContextService
from app.telemetry import increment_questions_answered

_logger = logging.getLogger(__name__)

MISSING_API_KEY_MESSAGE = "No OpenAI API Key detected!"


class CommentPoster(Protocol):
    async def post_comment(self, owner: str, repo: str, number: int, body: str) -> None:  # pragma: no cover - interface
        ...


@dataclass(frozen=True)
class CallbackResult:
    status: int
    reason: str


def sanitize_metadata(metadata: Any) -> str:
    """Serialize ``metadata`` so it cannot break out of an HTML comment."""

    return (
        json.dumps(metadata, indent=2, default=str)
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace("--", "&#45;&#45;")
    )


def _mention_pattern(app_name: str) -> re.Pattern[str]:
    return re.compile(rf"@{re.escape(app_name)} ", re.IGNORECASE)


class AskService:
    """Answers ``@<app> <question>`` comments using the resolved linked context."""

    def __init__(
        self,
        context_service: ContextService,
        poster: CommentPoster,
        completions: CompletionsClient | None,
        *,
        app_name: str,
    ) -> None:
        self._context = context_service
        self._poster = poster
        self._completions = completions
        self._app_name = app_name
        self._mention = _mention_pattern(app_name)

    async def ask_question(self, seed: EntityKey, question: str) -> CompletionResult:
        if self._completions is None:
            raise CompletionError(MISSING_API_KEY_MESSAGE)
        rendered = await self._context.build_context(seed)
        return await self._completions.create_completion(question, rendered.blocks)

    async def handle_comment_created(self, payload: dict) -> CallbackResult:
        comment = payload.get("comment") or {}
        question = comment.get("body") or ""
        user = comment.get("user") or {}

        if not self._mention.search(question):
            return self._skip("Comment does not mention the app. Skipping.")
        if user.get("type") == "Bot":
            return self._skip("Comment is from a bot. Skipping.")
        if not self._mention.sub("", question).strip():
            return self._skip("Comment is empty. Skipping.")

        seed = self._seed_from_payload(payload)
        if seed is None:
            return self._skip("Payload does not reference an issue. Skipping.")

        _logger.info("Asking question on %s: %s", seed, question)
        if self._completions is None:
            _logger.error(MISSING_API_KEY_MESSAGE)
            await self._post(seed, MISSING_API_KEY_MESSAGE)
            return CallbackResult(status=500, reason=MISSING_API_KEY_MESSAGE)

        try:
            result = await self.ask_question(seed, question)
        except CompletionError as exc:
            await self.bubble_up_error_comment(seed, exc)
            return CallbackResult(status=500, reason=str(exc))

        _logger.info("Answer for %s used %s tokens", seed, result.token_usage.get("total"))
        tokens = f"\n\n<!--\n{json.dumps(result.token_usage, indent=2)}\n-->"
        await self._post(seed, result.answer + tokens)
        increment_questions_answered()
        return CallbackResult(status=200, reason="Comment posted successfully")

    async def bubble_up_error_comment(self, seed: EntityKey, error: Exception) -> None:
        _logger.error("Answering %s failed: %s", seed, error)
        metadata = {"error": type(error).__name__, "message": str(error)}
        await self._post(seed, f"> [!CAUTION]\n> {error}\n<!--\n{sanitize_metadata(metadata)}\n-->")

    async def _post(self, seed: EntityKey, body: str) -> None:
        try:
            await self._poster.post_comment(seed.owner, seed.repo, seed.number, body)
        except GatewayError as exc:
            _logger.error("Adding a comment to %s failed: %s", seed, exc)

    @staticmethod
    def _skip(reason: str) -> CallbackResult:
        _logger.info(reason)
        return CallbackResult(status=204, reason=reason)

    @staticmethod
    def _seed_from_payload(payload: dict) -> EntityKey | None:
        repository = payload.get("repository") or {}
        issue = payload.get("issue") or {}
        owner = (repository.get("owner") or {}).get("login")
        return EntityKey.build(owner, repository.get("name"), issue.get("number"))
