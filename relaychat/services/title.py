from __future__ import annotations

from collections.abc import Callable

from langchain_core.messages import HumanMessage, SystemMessage

from relaychat.config.constants import TITLE_MAX_LENGTH
from relaychat.llm import get_provider
from relaychat.llm.provider import LLMProvider
from relaychat.prompts.system import TITLE_PROMPT
from relaychat.utils.logger import agent_logger

TITLE_MODEL_SELECTOR = "title-model"


def fallback_title(text: str) -> str:
    title = " ".join(text.split())
    return title[:TITLE_MAX_LENGTH] or "New chat"


async def generate_title(
    text: str,
    provider_factory: Callable[[str], LLMProvider] = get_provider,
) -> str:
    """Short title for a conversation from its first user message.

    Falls back to the leading characters of the message when the title
    model is unavailable or returns nothing usable.
    """
    try:
        provider = provider_factory(TITLE_MODEL_SELECTOR)
        title = await provider.agenerate(
            [SystemMessage(content=TITLE_PROMPT), HumanMessage(content=text)]
        )
    except Exception as e:
        agent_logger.warning("Title generation failed", error=str(e))
        return fallback_title(text)

    title = title.strip().strip('"').strip()
    if not title:
        return fallback_title(text)
    return title[:TITLE_MAX_LENGTH]
