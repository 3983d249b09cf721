from __future__ import annotations

import logging

from petichat.core.errors import ProviderError
from petichat.providers.ai import prompts
from petichat.providers.ai.base import (
    GeneratedDocument,
    GenerationContext,
    RewriteContext,
    SuggestOptions,
    ThesisCandidate,
    resolve_instruction,
)
from petichat.providers.ai.parsing import parse_document, parse_theses


logger = logging.getLogger(__name__)


class PromptedAIProvider:
    """Shared prompt/parse flow for remote chat-style models.

    Subclasses only implement ``_complete``; structured outputs are parsed and
    validated here so every remote provider fails the same way on bad JSON.
    """

    name = "prompted"
    model = ""

    async def _complete(self, system: str, prompt: str, *, json_mode: bool) -> str:
        raise NotImplementedError

    async def suggest_theses(
        self, facts: str, options: SuggestOptions | None = None
    ) -> list[ThesisCandidate]:
        options = options or SuggestOptions()
        raw = await self._complete(
            prompts.SYSTEM_PROMPT, prompts.suggest_theses_prompt(facts, options), json_mode=True
        )
        try:
            return parse_theses(raw, max_count=options.max_count)
        except ProviderError:
            logger.warning("ai_invalid_output provider=%s op=suggest_theses", self.name)
            raise

    async def generate_document(self, context: GenerationContext) -> GeneratedDocument:
        raw = await self._complete(
            prompts.SYSTEM_PROMPT, prompts.generate_document_prompt(context), json_mode=True
        )
        try:
            return parse_document(raw)
        except ProviderError:
            logger.warning("ai_invalid_output provider=%s op=generate_document", self.name)
            raise

    async def rewrite_text(
        self,
        text: str,
        instruction: str,
        custom_instruction: str | None = None,
        context: RewriteContext | None = None,
    ) -> str:
        directive = resolve_instruction(instruction, custom_instruction)
        raw = await self._complete(
            prompts.SYSTEM_PROMPT, prompts.rewrite_prompt(text, directive, context), json_mode=False
        )
        result = (raw or "").strip()
        if not result:
            raise ProviderError("Resposta vazia da IA")
        return result
