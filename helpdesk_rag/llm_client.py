"""OpenAI LLM client for answer generation."""

from collections.abc import Sequence

from loguru import logger
from openai import AsyncOpenAI, OpenAIError

from helpdesk_rag.errors import ConfigurationError, GenerationError
from helpdesk_rag.models import ConversationTurn, Role, SamplingOptions

_OPENAI_ROLES = {Role.USER: "user", Role.AGENT: "assistant"}


def process_conversation_context(turns: Sequence[ConversationTurn]) -> list[dict[str, str]]:
    """Convert turns to chat messages, keeping user/assistant roles alternating.

    Blank turns are dropped. Of consecutive user turns only the latest is
    kept; of consecutive agent turns only the first.
    """
    processed: list[dict[str, str]] = []
    last_role: Role | None = None
    for turn in turns:
        text = turn.text.strip()
        if not text:
            continue
        if turn.role == Role.AGENT and last_role == Role.AGENT:
            continue
        if turn.role == Role.USER and last_role == Role.USER:
            processed.pop()
        processed.append({"role": _OPENAI_ROLES[turn.role], "content": text})
        last_role = turn.role
    return processed


class OpenAIClient:
    """Async OpenAI client for generating answers from an assembled system prompt."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        timeout: float = 30.0,
    ):
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY environment variable is required")

        self.client = AsyncOpenAI(api_key=api_key, timeout=timeout)
        self.model = model

    def build_messages(self, turns: Sequence[ConversationTurn], context_prompt: str) -> list[dict[str, str]]:
        messages = [{"role": "system", "content": context_prompt}] if context_prompt else []
        messages.extend(process_conversation_context(turns))
        return messages

    async def generate(
        self,
        turns: Sequence[ConversationTurn],
        context_prompt: str,
        options: SamplingOptions | None = None,
    ) -> str:
        options = options or SamplingOptions()
        messages = self.build_messages(turns, context_prompt)
        logger.debug(
            f"Generating response with {len(messages) - 1} context messages "
            f"(temperature={options.temperature}, max_tokens={options.max_tokens})"
        )

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                **options.model_dump(),
            )
        except OpenAIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise GenerationError(f"Failed to generate AI response: {e}") from e

        content = response.choices[0].message.content
        if not content:
            raise GenerationError("Generator returned an empty response")
        return content.strip()
