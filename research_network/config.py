"""
Configuration for the Research Network.

Environment Variables:
    AZURE_API_KEY             - Primary: Azure OpenAI API key
    AZURE_ENDPOINT            - Azure OpenAI endpoint URL
    AZURE_API_VERSION         - Optional: Azure API version (default: 2024-04-01-preview)
    OPENAI_API_KEY            - Fallback: OpenAI API key
    ANTHROPIC_API_KEY         - Fallback: Anthropic/Claude API key
    LLM_PROVIDER              - Optional: azure | openai | anthropic (auto-detected)
    LLM_MODEL                 - Optional: model / deployment name
    PERPLEXITY_API_KEY        - Optional: Perplexity key for web search
    TAVILY_API_KEY            - Optional: Tavily key for web search
    SEARCH_PROVIDER           - Optional: perplexity | tavily (auto-detected)
    CAPABILITY_MODE           - Optional: live | demo (demo forces offline fallbacks)
    SUBAGENT_COUNT            - Optional: research subagents per session, 1-5 (default: 4)
    PROVIDER_TIMEOUT_SECONDS  - Optional: per-call provider timeout (default: 30)
    RATE_LIMIT_ENABLED        - Optional: true | false (default: true)
    RATE_LIMIT_PER_CLIENT     - Optional: sessions per client per hour (default: 10)
    RATE_LIMIT_GLOBAL         - Optional: sessions per hour overall (default: 100)
    RATE_LIMIT_WINDOW_SECONDS - Optional: rate limit window length (default: 3600)
    MAX_RETAINED_SESSIONS     - Optional: finished sessions kept in memory (default: 100)
    LIVE_SEND_TIMEOUT_SECONDS - Optional: per-client live channel send bound (default: 5)
    AUTO_RESEARCH_INTERVAL_SECONDS - Optional: start a random topic this often, 0 disables (default: 0)
    DATABASE_PATH             - Optional: SQLite file (default: data/agents.db)
    LOG_LEVEL                 - Optional: logging level (default: INFO)

Create a .env file in the project root with:

    AZURE_API_KEY=your-azure-key
    AZURE_ENDPOINT=https://your-resource.openai.azure.com/
    PERPLEXITY_API_KEY=pplx-your-key
"""

import os
from dataclasses import dataclass
from typing import Optional

from research_network.core.types import CapabilityMode


MAX_SUBAGENTS = 5


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Application configuration."""

    # Completion settings (Azure OpenAI is primary)
    azure_api_key: Optional[str] = None
    azure_endpoint: Optional[str] = None
    azure_api_version: str = "2024-04-01-preview"
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    llm_provider: Optional[str] = None
    llm_model: str = "gpt-4.1-nano"
    max_tokens: int = 500
    temperature: float = 0.7

    # Search settings
    perplexity_api_key: Optional[str] = None
    tavily_api_key: Optional[str] = None
    search_provider: Optional[str] = None
    search_model: str = "sonar"

    # Orchestration settings
    capability_mode: str = "live"
    subagent_count: int = 4
    provider_timeout_seconds: float = 30.0
    max_retained_sessions: int = 100
    auto_research_interval_seconds: float = 0.0

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit_per_client: int = 10
    rate_limit_global: int = 100
    rate_limit_window_seconds: int = 3600

    # Live channel
    live_send_timeout_seconds: float = 5.0

    # Storage / logging
    database_path: str = "data/agents.db"
    log_level: str = "INFO"

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 4321

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        azure_key = os.getenv("AZURE_API_KEY")
        azure_endpoint = os.getenv("AZURE_ENDPOINT")
        openai_key = os.getenv("OPENAI_API_KEY")
        anthropic_key = os.getenv("ANTHROPIC_API_KEY")

        # Auto-detect provider based on available keys
        if azure_key and azure_endpoint:
            provider = "azure"
            default_model = "gpt-4.1-nano"
        elif openai_key:
            provider = "openai"
            default_model = "gpt-4o-mini"
        elif anthropic_key:
            provider = "anthropic"
            default_model = "claude-sonnet-4-20250514"
        else:
            provider = None
            default_model = "gpt-4.1-nano"

        perplexity_key = os.getenv("PERPLEXITY_API_KEY")
        tavily_key = os.getenv("TAVILY_API_KEY")
        if perplexity_key:
            search_provider = "perplexity"
        elif tavily_key:
            search_provider = "tavily"
        else:
            search_provider = None

        return cls(
            azure_api_key=azure_key,
            azure_endpoint=azure_endpoint,
            azure_api_version=os.getenv("AZURE_API_VERSION", "2024-04-01-preview"),
            openai_api_key=openai_key,
            anthropic_api_key=anthropic_key,
            llm_provider=os.getenv("LLM_PROVIDER", provider),
            llm_model=os.getenv("LLM_MODEL", default_model),
            max_tokens=int(os.getenv("MAX_TOKENS", "500")),
            temperature=float(os.getenv("TEMPERATURE", "0.7")),
            perplexity_api_key=perplexity_key,
            tavily_api_key=tavily_key,
            search_provider=os.getenv("SEARCH_PROVIDER", search_provider),
            search_model=os.getenv("SEARCH_MODEL", "sonar"),
            capability_mode=os.getenv("CAPABILITY_MODE", "live").lower(),
            subagent_count=int(os.getenv("SUBAGENT_COUNT", "4")),
            provider_timeout_seconds=float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "30")),
            rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", True),
            rate_limit_per_client=int(os.getenv("RATE_LIMIT_PER_CLIENT", "10")),
            rate_limit_global=int(os.getenv("RATE_LIMIT_GLOBAL", "100")),
            max_retained_sessions=int(os.getenv("MAX_RETAINED_SESSIONS", "100")),
            auto_research_interval_seconds=float(os.getenv("AUTO_RESEARCH_INTERVAL_SECONDS", "0")),
            rate_limit_window_seconds=int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "3600")),
            live_send_timeout_seconds=float(os.getenv("LIVE_SEND_TIMEOUT_SECONDS", "5")),
            database_path=os.getenv("DATABASE_PATH", "data/agents.db"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            api_host=os.getenv("API_HOST", "0.0.0.0"),
            api_port=int(os.getenv("API_PORT", os.getenv("PORT", "4321"))),
        )

    def validate(self) -> bool:
        """Check that the orchestration settings are usable."""
        if self.capability_mode not in {mode.value for mode in CapabilityMode}:
            raise ValueError(f"Unknown capability mode: {self.capability_mode}")
        if not 1 <= self.subagent_count <= MAX_SUBAGENTS:
            raise ValueError(f"subagent_count must be between 1 and {MAX_SUBAGENTS}")
        if self.provider_timeout_seconds <= 0:
            raise ValueError("provider_timeout_seconds must be positive")
        if self.max_retained_sessions < 1:
            raise ValueError("max_retained_sessions must be at least 1")
        if self.live_send_timeout_seconds <= 0:
            raise ValueError("live_send_timeout_seconds must be positive")
        if self.auto_research_interval_seconds < 0:
            raise ValueError("auto_research_interval_seconds must not be negative")
        return True

    @property
    def demo_mode(self) -> bool:
        return self.capability_mode == CapabilityMode.DEMO.value

    @property
    def completion_configured(self) -> bool:
        """True when a live completion backend can be built."""
        if self.demo_mode:
            return False
        return self.get_api_key() is not None

    @property
    def search_configured(self) -> bool:
        if self.demo_mode:
            return False
        if self.search_provider == "perplexity":
            return bool(self.perplexity_api_key)
        if self.search_provider == "tavily":
            return bool(self.tavily_api_key)
        return False

    def get_api_key(self) -> Optional[str]:
        """Get the appropriate API key based on provider."""
        if self.llm_provider == "azure":
            return self.azure_api_key if self.azure_endpoint else None
        if self.llm_provider == "openai":
            return self.openai_api_key
        if self.llm_provider == "anthropic":
            return self.anthropic_api_key
        return None


# Global config instance
config = Config.from_env()
