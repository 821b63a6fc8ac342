"""Exception hierarchy for the node agent core."""


class NodeAgentError(Exception):
    """Base exception for node agent errors."""


class SandboxValidationError(NodeAgentError):
    """Raised internally when a workspace id, path or command fails validation.

    SandboxStore converts this into a failed result at its public boundary.
    """


class ContentStoreError(NodeAgentError):
    """Raised when the content-addressed store rejects or fails a request."""


class LLMProviderError(NodeAgentError):
    """Raised when an LLM provider is unavailable or returns an error."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        """Initialize provider error."""
        super().__init__(message)
        self.provider = provider


class ToolRegistrationError(NodeAgentError, ValueError):
    """Raised when a tool cannot be registered."""


class UnknownStrategyError(NodeAgentError, ValueError):
    """Raised when an agent strategy name is not recognised."""
