"""Node agent services.

``AgentRuntime`` lives in ``nodeagent.services.agent_runtime`` and is imported
from there; it depends on the engines, which depend on the services below.
"""

from .content_store import ContentStore, IPFSContentStore
from .llm_service import LLMFunction, MultiProviderLLMService, cleanup_llm_service, get_llm_service
from .progress import ProgressChannel, ProgressEvent, ProgressSubscription
from .sandbox_store import SandboxStore

__all__ = [
    "ContentStore",
    "IPFSContentStore",
    "LLMFunction",
    "MultiProviderLLMService",
    "get_llm_service",
    "cleanup_llm_service",
    "ProgressChannel",
    "ProgressEvent",
    "ProgressSubscription",
    "SandboxStore",
]
