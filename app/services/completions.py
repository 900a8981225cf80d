"""Chat-completion adapter used to answer questions against a linked context."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Sequence

from openai import AsyncOpenAI, OpenAIError

_logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_MESSAGE = (
    "You are a GitHub bot answering questions about an issue or pull request. "
    "The context below contains the current issue or pull request and everything it links to: "
    "specifications, request bodies, conversations and code diffs. Each section is bracketed by "
    "'=== {label} === {identifier} ===' and '=== End {label} ==='. "
    "The question being asked arrives as the user message. "
    "Answer it concisely using only information available in the context, and say so when the context "
    "does not contain an answer."
)


class CompletionError(Exception):
    """Raised when the model call fails or returns no answer."""


@dataclass
class CompletionResult:
    answer: str
    token_usage: dict[str, int] = field(default_factory=lambda: {"input": 0, "output": 0, "total": 0})


class CompletionsClient:
    """Thin wrapper around :class:`openai.AsyncOpenAI` chat completions."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        model: str = "gpt-4o",
        max_tokens: int = 3000,
        temperature: float = 0.0,
        system_message: str = DEFAULT_SYSTEM_MESSAGE,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._client = client or AsyncOpenAI(api_key=api_key, base_url=base_url)
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._system_message = system_message

    def build_messages(self, question: str, context_blocks: Sequence[str]) -> list[dict[str, str]]:
        context = "".join(context_blocks)
        return [
            {"role": "system", "content": f"{self._system_message}\n\nContext:\n{context}"},
            {"role": "user", "content": question},
        ]

    async def create_completion(self, question: str, context_blocks: Sequence[str]) -> CompletionResult:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=self.build_messages(question, context_blocks),
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            )
        except OpenAIError as exc:
            raise CompletionError(f"Completion request failed: {exc}") from exc

        choices = getattr(response, "choices", None) or []
        answer = choices[0].message.content if choices else None
        if not answer:
            raise CompletionError("No answer from OpenAI")
        usage = getattr(response, "usage", None)
        token_usage = {
            "input": getattr(usage, "prompt_tokens", 0) or 0,
            "output": getattr(usage, "completion_tokens", 0) or 0,
            "total": getattr(usage, "total_tokens", 0) or 0,
        }
        _logger.debug("Completion used %s tokens", token_usage["total"])
        return CompletionResult(answer=answer, token_usage=token_usage)
