"""
Completion capability: provider clients plus the deterministic offline fallback.

Usage:
    from research_network.core.llm import create_llm_client, CompletionService, LLMProvider

    client = create_llm_client(LLMProvider.AZURE, api_key="...", endpoint="https://...")
    completion = CompletionService(client, model="gpt-4.1-nano")

    text = await completion.complete_with_fallback("Create a research plan for ...")

Without a client every call falls back to the canned table below, so a session
always finishes even with no provider configured.
"""

import asyncio
import logging
import time
from enum import Enum
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

from .errors import CompletionError
from .logger import log_llm_call

logger = logging.getLogger(__name__)


class LLMProvider(Enum):
    AZURE = "azure"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


# Keyword -> canned sentence. Matched case-insensitively, first match wins, in this order.
FALLBACK_COMPLETIONS = (
    ("planning", "Research plan created with comprehensive methodology and structured approach."),
    ("background", "Background research completed with key insights and foundational knowledge."),
    ("analysis", "Detailed analysis performed with critical examination and evidence-based conclusions."),
    ("synthesis", "Pattern synthesis completed with integrated findings and cross-domain insights."),
    ("evaluation", "Critical evaluation finished with balanced assessment and improvement recommendations."),
    ("connection", "Cross-domain connections established with interdisciplinary perspectives."),
)
GENERIC_FALLBACK_COMPLETION = "Research task completed with comprehensive analysis and findings."


def fallback_completion(prompt: str) -> str:
    """Deterministic canned completion for a prompt."""
    lowered = (prompt or "").lower()
    for keyword, response in FALLBACK_COMPLETIONS:
        if keyword in lowered:
            return response
    return GENERIC_FALLBACK_COMPLETION


class AnthropicLLMClient:
    """Wrapper for Anthropic's Claude API with OpenAI-compatible interface."""

    def __init__(self, api_key: str, default_model: str = "claude-sonnet-4-20250514", base_url: str = None):
        from anthropic import AsyncAnthropic

        if base_url:
            self.client = AsyncAnthropic(api_key=api_key, base_url=base_url)
        else:
            self.client = AsyncAnthropic(api_key=api_key)
        logger.info("Anthropic client initialized (base URL: %s)", base_url or "default")

        self.default_model = default_model
        self.chat = self  # For compatibility with OpenAI interface
        self.completions = self

    async def create(
        self,
        model: Optional[str] = None,
        messages: List[Dict[str, str]] = None,
        max_tokens: int = 500,
        temperature: float = 0.7,
        **kwargs
    ) -> Any:
        """Create a chat completion using Claude."""
        system_content = ""
        chat_messages = []

        for msg in messages or []:
            role = msg.get("role", "user")
            content = msg.get("content", "")
            if role == "system":
                system_content += content + "\n"
            else:
                chat_messages.append({"role": role, "content": content})

        request_kwargs = {
            "model": model or self.default_model,
            "max_tokens": max_tokens,
            "messages": chat_messages,
            "temperature": temperature,
        }
        if system_content:
            request_kwargs["system"] = system_content.strip()

        response = await self.client.messages.create(**request_kwargs)
        return self._convert_response(response)

    def _convert_response(self, response: Any) -> Any:
        """Reshape a Claude message into the `choices[0].message.content` form callers read."""
        text = "".join(block.text for block in response.content if getattr(block, "text", None))
        message = SimpleNamespace(content=text, role="assistant")
        return SimpleNamespace(
            choices=[SimpleNamespace(message=message, finish_reason=response.stop_reason)],
            model=response.model,
        )


class OpenAILLMClient:
    """Wrapper for the OpenAI API (also used for OpenAI-compatible endpoints)."""

    def __init__(self, api_key: str, default_model: str = "gpt-4o-mini", base_url: str = None):
        from openai import AsyncOpenAI
        if base_url:
            self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        else:
            self.client = AsyncOpenAI(api_key=api_key)
        self.default_model = default_model
        self.chat = self.client.chat
        self.completions = self.client.chat.completions


class AzureOpenAILLMClient:
    """Wrapper for an Azure OpenAI deployment."""

    def __init__(self, api_key: str, endpoint: str, api_version: str, default_model: str = "gpt-4.1-nano"):
        from openai import AsyncAzureOpenAI
        self.client = AsyncAzureOpenAI(
            api_key=api_key,
            azure_endpoint=endpoint,
            api_version=api_version,
        )
        logger.info("Azure OpenAI client initialized (endpoint: %s, deployment: %s)", endpoint, default_model)
        self.default_model = default_model
        self.chat = self.client.chat
        self.completions = self.client.chat.completions


def create_llm_client(
    provider: LLMProvider,
    api_key: str,
    model: str = None,
    endpoint: str = None,
    api_version: str = "2024-04-01-preview",
) -> Any:
    """
    Create an LLM client based on provider.

    Args:
        provider: LLM provider (azure, openai or anthropic).
        api_key: API key for the provider.
        model: Model / deployment to use. Uses provider default if not specified.
        endpoint: Azure endpoint (required for Azure).
        api_version: Azure API version.

    Returns:
        LLM client with OpenAI-compatible interface
    """
    if not api_key:
        raise ValueError(f"An API key is required for provider {provider.value}")

    if provider == LLMProvider.AZURE:
        if not endpoint:
            raise ValueError("AZURE_ENDPOINT is required for Azure OpenAI")
        return AzureOpenAILLMClient(
            api_key=api_key,
            endpoint=endpoint,
            api_version=api_version,
            default_model=model or get_default_model(provider),
        )

    elif provider == LLMProvider.OPENAI:
        return OpenAILLMClient(api_key=api_key, default_model=model or get_default_model(provider))

    elif provider == LLMProvider.ANTHROPIC:
        return AnthropicLLMClient(api_key=api_key, default_model=model or get_default_model(provider))

    else:
        raise ValueError(f"Unknown provider: {provider}")


def get_default_model(provider: LLMProvider) -> str:
    """Get the default model for a provider."""
    defaults = {
        LLMProvider.AZURE: "gpt-4.1-nano",
        LLMProvider.OPENAI: "gpt-4o-mini",
        LLMProvider.ANTHROPIC: "claude-sonnet-4-20250514",
    }
    return defaults.get(provider, "gpt-4.1-nano")


class CompletionService:
    """
    The text-completion capability.

    `complete` raises CompletionError when no client is configured, the provider
    fails, the call exceeds `timeout_seconds`, or the text comes back empty.
    `complete_with_fallback` substitutes the canned table instead of raising.
    """

    def __init__(
        self,
        llm_client: Optional[Any] = None,
        model: Optional[str] = None,
        max_tokens: int = 500,
        temperature: float = 0.7,
        timeout_seconds: float = 30.0,
    ):
        self.llm_client = llm_client
        self.model = model or getattr(llm_client, "default_model", None)
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds

    @property
    def configured(self) -> bool:
        return self.llm_client is not None

    async def complete(self, prompt: str, system_message: Optional[str] = None) -> str:
        if not self.configured:
            raise CompletionError("Completion provider not configured")

        messages = []
        if system_message:
            messages.append({"role": "system", "content": system_message})
        messages.append({"role": "user", "content": prompt})

        start_time = time.time()
        try:
            response = await asyncio.wait_for(
                self.llm_client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                ),
                timeout=self.timeout_seconds,
            )
            content = response.choices[0].message.content
        except asyncio.TimeoutError:
            log_llm_call(self.model or "unknown", "completion", status="timeout",
                         error=f"Timeout after {self.timeout_seconds}s")
            raise CompletionError(f"Completion timed out after {self.timeout_seconds}s")
        except Exception as e:
            log_llm_call(self.model or "unknown", "completion",
                         duration_ms=int((time.time() - start_time) * 1000), status="error", error=str(e))
            raise CompletionError(f"Completion call failed: {e}") from e

        if not content or not content.strip():
            log_llm_call(self.model or "unknown", "completion", status="empty")
            raise CompletionError("Completion provider returned empty text")

        log_llm_call(self.model or "unknown", "completion", duration_ms=int((time.time() - start_time) * 1000))
        return content.strip()

    async def complete_with_fallback(
        self,
        prompt: str,
        system_message: Optional[str] = None,
        fallback_hint: Optional[str] = None,
    ) -> str:
        """
        Complete, or return the canned fallback text.

        `fallback_hint` picks the canned entry instead of the prompt text, for
        prompts that embed arbitrary findings.
        """
        try:
            return await self.complete(prompt, system_message)
        except CompletionError as e:
            logger.info("Using fallback completion: %s", e)
            return fallback_completion(fallback_hint if fallback_hint is not None else prompt)
