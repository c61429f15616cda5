"""
Configuration Management
========================

All environment-driven settings live here. Values are read once, validated,
and exposed as frozen dataclasses.

Usage:
    from loresmith.utils.config import get_config

    config = get_config()
    print(config.llm.model)
    print(config.agent.max_steps)

Environment variables (all optional):
    LORESMITH_PROVIDER        "openai" or "gemini"
    LORESMITH_SERVER_URL      Base URL of the completion endpoint
    LORESMITH_API_KEY         API key for the endpoint
    LORESMITH_MODEL           Model name
    LORESMITH_TEMPERATURE     Sampling temperature
    LORESMITH_MAX_TOKENS      Max tokens per completion
    LORESMITH_THINKING_MODE   "off", "auto" or "max" (Gemini native thinking)
    LORESMITH_WIKI_URL        Default research wiki
    LORESMITH_WIKI_TIMEOUT    HTTP timeout for wiki requests, in seconds
    LORESMITH_AGENT_MODE      "build" or "plan"
    LORESMITH_MAX_STEPS       Step ceiling per run
    LOG_LEVEL                 debug, info, warning, error
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from loresmith.llm.base import APISettings, Preset


def _optional(name: str, default: str) -> str:
    """Get an environment variable, or *default* when unset."""
    return os.getenv(name, default)


def _optional_int(name: str, default: int) -> int:
    """Get an integer environment variable; invalid values fall back to *default*."""
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        print(f"Warning: {name} is not a valid integer, using default: {default}")
        return default


def _optional_float(name: str, default: float) -> float:
    """Get a float environment variable; invalid values fall back to *default*."""
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        print(f"Warning: {name} is not a valid number, using default: {default}")
        return default


def _optional_choice(name: str, default: str, choices: tuple[str, ...]) -> str:
    """Get an environment variable restricted to *choices* (case-insensitive)."""
    value = os.getenv(name, default).strip().lower()
    if value not in choices:
        print(f"Warning: {name} must be one of {', '.join(choices)}, using default: {default}")
        return default
    return value


# ==============================================================================
# Configuration Dataclasses
# ==============================================================================

@dataclass(frozen=True)
class LLMConfig:
    """Completion endpoint configuration."""
    provider: str         # "openai" (any OpenAI-compatible server) or "gemini"
    server_url: str       # e.g. http://localhost:5000/v1
    api_key: str
    model: str
    temperature: float
    max_tokens: int
    thinking_mode: str    # off | auto | max

    def to_settings(self) -> APISettings:
        """Build the per-request settings the transports consume."""
        return APISettings(
            server_url=self.server_url,
            api_key=self.api_key,
            model=self.model,
            provider=self.provider,
            active_preset=Preset(
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                thinking_mode=self.thinking_mode,
            ),
        )


@dataclass(frozen=True)
class WikiConfig:
    """Research wiki configuration."""
    default_url: str      # empty when no wiki is configured
    timeout: float


@dataclass(frozen=True)
class AgentConfig:
    """Agent loop configuration."""
    mode: str             # build | plan
    max_steps: int


@dataclass(frozen=True)
class Config:
    """
    Root configuration object.

        config = get_config()
        config.llm.provider
        config.wiki.default_url
        config.agent.max_steps
    """
    llm: LLMConfig
    wiki: WikiConfig
    agent: AgentConfig
    log_level: str


def load_config() -> Config:
    """
    Load configuration from the environment (and a .env file, if present).

    Returns:
        Config: The validated configuration
    """
    load_dotenv()

    return Config(
        llm=LLMConfig(
            provider=_optional_choice("LORESMITH_PROVIDER", "openai", ("openai", "gemini")),
            server_url=_optional("LORESMITH_SERVER_URL", "https://api.openai.com/v1"),
            api_key=_optional("LORESMITH_API_KEY", ""),
            model=_optional("LORESMITH_MODEL", "gpt-4o-mini"),
            temperature=_optional_float("LORESMITH_TEMPERATURE", 0.7),
            max_tokens=_optional_int("LORESMITH_MAX_TOKENS", 2048),
            thinking_mode=_optional_choice("LORESMITH_THINKING_MODE", "off", ("off", "auto", "max")),
        ),
        wiki=WikiConfig(
            default_url=_optional("LORESMITH_WIKI_URL", ""),
            timeout=_optional_float("LORESMITH_WIKI_TIMEOUT", 30.0),
        ),
        agent=AgentConfig(
            mode=_optional_choice("LORESMITH_AGENT_MODE", "build", ("build", "plan")),
            max_steps=max(1, _optional_int("LORESMITH_MAX_STEPS", 5)),
        ),
        log_level=_optional("LOG_LEVEL", "info"),
    )


# ==============================================================================
# Singleton
# ==============================================================================

_config_instance: Config | None = None


def get_config() -> Config:
    """Return the process-wide configuration, loading it on first access."""
    global _config_instance
    if _config_instance is None:
        _config_instance = load_config()
    return _config_instance


def reset_config() -> None:
    """Forget the cached configuration so the next get_config() re-reads the environment."""
    global _config_instance
    _config_instance = None
