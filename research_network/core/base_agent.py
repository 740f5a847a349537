from abc import ABC, abstractmethod
from typing import Optional
from dataclasses import dataclass
import uuid

from .llm import CompletionService
from .types import AgentRole


@dataclass
class AgentConfig:
    """Identity and prompt settings shared by the lead researcher and its subagents."""
    name: str
    description: str
    role: AgentRole
    system_prompt: Optional[str] = None


class Agent(ABC):
    """
    A research agent bound to the completion capability.

    Subclasses supply a default system prompt; `AgentConfig.system_prompt`
    overrides it when set.
    """

    def __init__(self, config: AgentConfig, completion: CompletionService):
        self.id = f"{config.role.value}-{uuid.uuid4().hex[:8]}"
        self.config = config
        self.completion = completion

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def system_prompt(self) -> str:
        return self.config.system_prompt or self._default_system_prompt()

    @abstractmethod
    def _default_system_prompt(self) -> str:
        ...

    async def _complete(self, prompt: str, fallback_hint: Optional[str] = None) -> str:
        """Completion under this agent's system prompt, falling back to canned text."""
        return await self.completion.complete_with_fallback(
            prompt,
            system_message=self.system_prompt,
            fallback_hint=fallback_hint,
        )
