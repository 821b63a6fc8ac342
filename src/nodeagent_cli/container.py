"""Object wiring for the CLI.

Infrastructure objects (settings, scanner, sandbox store) are cached so every
command in one process shares them. Tests can clear the caches with
``reset_container()``.
"""

from __future__ import annotations

from functools import lru_cache

from nodeagent.config.settings import Settings, get_settings
from nodeagent.security.scanner import ThreatScanner
from nodeagent.services.agent_runtime import AgentRuntime
from nodeagent.services.content_store import IPFSContentStore
from nodeagent.services.llm_service import get_llm_service
from nodeagent.services.progress import ProgressChannel
from nodeagent.services.sandbox_store import SandboxStore
from nodeagent.tools.registration import create_default_registry


@lru_cache
def get_config() -> Settings:
    """Load and cache settings."""
    return get_settings()


@lru_cache
def get_scanner() -> ThreatScanner:
    """Create and cache the threat scanner."""
    return ThreatScanner(enabled=get_config().security_scanning_enabled)


@lru_cache
def get_sandbox_store() -> SandboxStore:
    """Create and cache the sandbox store, backed by the configured IPFS API."""
    return SandboxStore(content_store=IPFSContentStore())


def get_runtime(progress: ProgressChannel | None = None) -> AgentRuntime:
    """Create an agent runtime around the shared LLM service (no caching)."""
    scanner = get_scanner()
    return AgentRuntime(
        scanner=scanner,
        registry=create_default_registry(scanner=scanner),
        llm=get_llm_service(),
        progress=progress,
        settings=get_config(),
    )


def reset_container() -> None:
    """Clear cached instances."""
    get_config.cache_clear()
    get_scanner.cache_clear()
    get_sandbox_store.cache_clear()
