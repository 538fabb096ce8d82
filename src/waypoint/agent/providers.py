"""
Model providers for Waypoint.

This module is the only place that *directly* calls an LLM.  Everything else (planner, parser,
tools, memory) stays model-agnostic and talks to a :class:`BaseProvider`.

We support three back-ends out of the box:

1. **Ollama** via its REST API (``/api/chat``), the default for local models.
2. **OpenAI** via the ``openai`` SDK (requires ``OPENAI_API_KEY``).
3. **Anthropic** via the ``anthropic`` SDK (requires ``ANTHROPIC_API_KEY``).

Additional providers can be added by subclassing :class:`BaseProvider` and registering via
:func:`register_provider`.
"""

import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Callable,
    Dict,
    List,
    Type,
)

import httpx

from waypoint.config import settings
from waypoint.core.context import Context
from waypoint.core.errors import ProviderError
from waypoint.core.schema import Role

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_PROVIDER_REGISTRY: dict[str, Type["BaseProvider"]] = {}


def register_provider(name: str) -> Callable:
    """Decorator to register a provider class under *name*."""

    def wrapper(cls: Type["BaseProvider"]) -> Type["BaseProvider"]:
        _PROVIDER_REGISTRY[name] = cls
        return cls

    return wrapper


def load_provider(name: str | None = None) -> "BaseProvider":
    """
    Factory that returns an instantiated provider.

    Fallback order:
    1. *name* arg
    2. ``settings.PROVIDER`` env option
    3. default: ``"ollama"``
    """

    target = name or getattr(settings, "PROVIDER", "ollama")
    cls = _PROVIDER_REGISTRY.get(target.lower())
    if cls is None:
        raise ValueError(f"Provider '{target}' is not registered.")
    return cls()


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseProvider(ABC):
    """Abstract chat-completion back-end."""

    # Most chat APIs only accept tool messages that answer a native tool call, so tool output
    # is sent as a user turn instead.
    ROLE_MAP: Dict[Role, str] = {
        Role.SYSTEM: "system",
        Role.USER: "user",
        Role.ASSISTANT: "assistant",
        Role.TOOL: "user",
    }

    def _to_messages(self, context: Context, include_system: bool = True) -> List[Dict[str, str]]:
        messages = context.messages() if include_system else context.history()
        return [{"role": self.ROLE_MAP[m.role], "content": m.content} for m in messages]

    @abstractmethod
    async def complete(self, context: Context, temperature: float) -> str:
        """Return the model's reply to *context*."""


# ---------------------------------------------------------------------------
# Concrete providers
# ---------------------------------------------------------------------------
@register_provider("ollama")
class OllamaProvider(BaseProvider):
    """Ollama chat endpoint over httpx."""

    ROLE_MAP = {**BaseProvider.ROLE_MAP, Role.TOOL: "tool"}

    def __init__(self, host: str | None = None, model: str | None = None) -> None:
        self.host = (host or settings.OLLAMA_HOST).rstrip("/")
        self.model = model or settings.MODEL

    async def complete(self, context: Context, temperature: float) -> str:
        payload = {
            "model": self.model,
            "messages": self._to_messages(context),
            "stream": False,
            "options": {"temperature": temperature, "num_predict": settings.MAX_TOKENS},
        }

        try:
            async with httpx.AsyncClient(timeout=settings.REQUEST_TIMEOUT) as client:
                resp = await client.post(f"{self.host}/api/chat", json=payload)
                resp.raise_for_status()
                content = resp.json().get("message", {}).get("content", "")
        except httpx.HTTPError as e:
            logger.error("Ollama request error: %s", str(e))
            raise ProviderError(f"Error calling Ollama endpoint: {e}") from e

        logger.debug("Ollama response: %s", content)
        return content or ""


@register_provider("openai")
class OpenAIProvider(BaseProvider):
    """OpenAI chat completions."""

    def __init__(self, model: str | None = None) -> None:
        self.model = model or settings.OPENAI_MODEL

    async def complete(self, context: Context, temperature: float) -> str:
        import openai  # pylint: disable=import-outside-toplevel

        client = openai.AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        try:
            resp = await client.chat.completions.create(
                model=self.model,
                messages=self._to_messages(context),  # type: ignore[arg-type]
                temperature=temperature,
                max_tokens=settings.MAX_TOKENS,
            )
        except openai.OpenAIError as e:
            logger.error("OpenAI request error: %s", str(e))
            raise ProviderError(f"Error calling OpenAI: {e}") from e

        content = resp.choices[0].message.content
        logger.debug("OpenAI response: %s", content)
        return content or ""


@register_provider("anthropic")
class AnthropicProvider(BaseProvider):
    """Anthropic Claude messages API."""

    def __init__(self, model: str | None = None) -> None:
        self.model = model or settings.ANTHROPIC_MODEL

    async def complete(self, context: Context, temperature: float) -> str:
        import anthropic  # pylint: disable=import-outside-toplevel

        client = anthropic.AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY)
        try:
            response = await client.messages.create(
                model=self.model,
                max_tokens=settings.MAX_TOKENS,
                system=context.system_message().content,
                messages=self._to_messages(context, include_system=False),  # type: ignore[arg-type]
                temperature=temperature,
            )
        except anthropic.AnthropicError as e:
            logger.error("Anthropic request error: %s", str(e))
            raise ProviderError(f"Error calling Anthropic: {e}") from e

        # Only text blocks carry the reply
        content = "".join(block.text for block in response.content if block.type == "text")
        logger.debug("Anthropic response: %s", content)
        return content
