"""
Text Expander Service - LLM-Powered Profile Text Expansion

Short profile answers ("python mentor", "need help with calculus") embed
poorly. Before embedding, each slot's text is expanded by an LLM into a
longer description with synonyms, related roles and related topics, which
improves recall when two users describe the same thing differently.

Failure contract:
    expand() raises ExpansionError on any provider error or when the model
    returns nothing usable. Callers fall back to the original text.

Usage:
    from openai import AsyncOpenAI
    from peermatch.models import Slot

    expander = OpenAITextExpander(openai_client=AsyncOpenAI())
    expanded = await expander.expand("python mentor", Slot.WHO_YOU_ARE)
"""

import logging
import re
import time
from typing import Any, Dict, Optional, Protocol

from peermatch.middleware.metrics import record_expansion_latency
from peermatch.models.profile import Slot

logger = logging.getLogger(__name__)


class ExpansionError(Exception):
    """Raised when text expansion fails or yields no usable output."""


EXPANSION_PROMPTS: Dict[Slot, str] = {
    Slot.WHO_YOU_ARE: (
        "Rewrite this self-description so it can be matched with peers. "
        "Spell out abbreviations, add related skills and equivalent job titles "
        "or roles. Aim for 100-150 words.\n\n"
        "Original: \"{text}\"\n\n"
        "Expanded description:"
    ),
    Slot.WHO_YOU_ARE_LOOKING_FOR: (
        "Rewrite this description of the person someone wants to meet. "
        "Describe the kind of help or mentorship wanted, add equivalent titles "
        "and other common ways of phrasing the same need. Aim for 100-150 words.\n\n"
        "Original: \"{text}\"\n\n"
        "Expanded description:"
    ),
    Slot.MENTORING_SUBJECTS: (
        "Expand this list of mentoring subjects with related topics, alternative "
        "names for the technologies or concepts, and the broader fields they "
        "belong to. Aim for 80-120 words.\n\n"
        "Original: \"{text}\"\n\n"
        "Expanded subjects:"
    ),
    Slot.PROFESSIONAL_SERVICES: (
        "Expand this description of professional services with related service "
        "types, alternative names and broader categories of professional help. "
        "Aim for 80-120 words.\n\n"
        "Original: \"{text}\"\n\n"
        "Expanded services:"
    ),
}

_LABEL_PREFIX = re.compile(
    r"^(expanded description:|expanded subjects:|expanded services:|expanded text:)\s*",
    re.IGNORECASE,
)
_SURROUNDING_QUOTES = re.compile(r"^[\"']|[\"']$")


def clean_expansion(content: Optional[str]) -> str:
    """Strip echoed prompt labels and surrounding quotes from model output."""
    if not content:
        return ""
    content = content.strip()
    content = _LABEL_PREFIX.sub("", content)
    content = _SURROUNDING_QUOTES.sub("", content)
    return content.strip()


class TextExpander(Protocol):
    async def expand(self, text: str, slot: Slot) -> str:
        ...


class OpenAITextExpander:
    """
    Slot-aware text expansion using OpenAI chat completions.

    Attributes:
        client: Async OpenAI client
        model: Chat model (default: gpt-4o-mini)
    """

    def __init__(
        self,
        openai_client: Any,
        model: str = "gpt-4o-mini",
        max_tokens: int = 300
    ):
        self.client = openai_client
        self.model = model
        self.max_tokens = max_tokens

    async def expand(self, text: str, slot: Slot) -> str:
        """
        Expand profile text for one slot.

        Args:
            text: Normalized profile text
            slot: Slot the text belongs to (selects the prompt)

        Returns:
            Expanded text, or "" for blank input

        Raises:
            ExpansionError: Provider failure or empty output
        """
        if not text or not text.strip():
            return ""

        prompt = EXPANSION_PROMPTS[slot].format(text=text)

        start = time.perf_counter()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "system",
                        "content": "You expand short profile answers for semantic peer matching. Reply with the expanded text only."
                    },
                    {"role": "user", "content": prompt}
                ],
                temperature=0.3,
                max_tokens=self.max_tokens
            )
            content = response.choices[0].message.content
        except Exception as e:
            raise ExpansionError(f"Expansion request failed: {e}") from e
        finally:
            record_expansion_latency(slot.value, time.perf_counter() - start)

        expanded = clean_expansion(content)
        if not expanded:
            raise ExpansionError(f"Empty expansion for {slot.value}")

        logger.debug(f"Expanded {slot.value}: {text!r} -> {expanded[:80]!r}")
        return expanded


class MockTextExpander:
    """Deterministic expander for tests and offline development."""

    async def expand(self, text: str, slot: Slot) -> str:
        if not text or not text.strip():
            return ""
        return f"{text.strip()} ({slot.value})"


def get_text_expander(provider_name: str = "openai", api_key: Optional[str] = None, model: Optional[str] = None) -> TextExpander:
    """
    Factory function to create text expanders.

    Raises:
        ValueError: If provider is unknown or required args missing
    """
    provider_name = provider_name.lower()

    if provider_name == "openai":
        if not api_key:
            raise ValueError("OpenAI text expansion requires api_key")
        from openai import AsyncOpenAI
        return OpenAITextExpander(
            openai_client=AsyncOpenAI(api_key=api_key),
            model=model or "gpt-4o-mini",
        )

    elif provider_name == "mock":
        return MockTextExpander()

    raise ValueError(
        f"Unknown expansion provider: {provider_name}. "
        f"Supported: openai, mock"
    )


_text_expander: Optional[TextExpander] = None


def get_default_text_expander() -> TextExpander:
    """Shared text expander configured from settings."""
    global _text_expander
    if _text_expander is None:
        from peermatch.config import get_settings

        settings = get_settings()
        _text_expander = get_text_expander(
            settings.expansion_provider,
            api_key=settings.openai_api_key,
            model=settings.expansion_model,
        )
        logger.info(f"Created text expander: {settings.expansion_provider}")
    return _text_expander
