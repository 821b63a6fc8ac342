"""Node agent data models and schemas."""

from .agent import (
    AgentAction,
    AgentRunRequest,
    AgentRunResponse,
    AgentStatus,
    AgentStrategy,
    ArchitectureInfo,
    LLMMessage,
    LLMProvider,
    LLMRequest,
    LLMResponse,
)
from .sandbox import (
    ExecutionResult,
    FileInfo,
    ListResult,
    ReadResult,
    SandboxMeta,
    SandboxResult,
    SyncResult,
)
from .security import RiskLevel, ScanResult, ThreatCategory, ThreatMatch, ThreatPattern
from .tool_integration import ToolCategory, ToolDefinition, ToolName, normalize_tool_name

__all__ = [
    "AgentAction",
    "AgentRunRequest",
    "AgentRunResponse",
    "AgentStatus",
    "AgentStrategy",
    "ArchitectureInfo",
    "LLMMessage",
    "LLMProvider",
    "LLMRequest",
    "LLMResponse",
    "ExecutionResult",
    "FileInfo",
    "ListResult",
    "ReadResult",
    "SandboxMeta",
    "SandboxResult",
    "SyncResult",
    "RiskLevel",
    "ScanResult",
    "ThreatCategory",
    "ThreatMatch",
    "ThreatPattern",
    "ToolCategory",
    "ToolDefinition",
    "ToolName",
    "normalize_tool_name",
]
