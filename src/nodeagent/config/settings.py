"""Node agent configuration settings."""

import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_sandbox_base() -> str:
    return str(Path(tempfile.gettempdir()) / "nodeagent" / "workspaces")


class Settings(BaseSettings):
    """Node agent configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="NODEAGENT_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Security Configuration
    security_scanning_enabled: bool = True

    # Sandbox Configuration
    sandbox_base_path: str = _default_sandbox_base()
    sandbox_max_size_mb: int = 500
    sandbox_max_read_mb: int = 10
    sandbox_output_buffer_mb: int = 5
    sandbox_default_timeout_ms: int = 30000

    # Sandbox Tool Limits
    shell_tool_timeout_ms: int = 30000
    python_tool_timeout_ms: int = 60000
    python_executable: str = "python"

    # Local Tool Configuration
    local_tools_enabled: bool = True
    local_read_max_bytes: int = 100_000
    local_shell_timeout_seconds: int = 30
    local_shell_max_output_bytes: int = 1024 * 1024
    local_find_max_results: int = 50

    # Agent Defaults
    agent_default_max_iterations: int = 10
    agent_default_max_tokens: int = 4096
    agent_default_temperature: float = 0.7
    agent_default_model: str = "gpt-4o"
    agent_custom_llm_default_model: str = "llama3.2:3b"
    plan_max_tokens: int = 1024
    plan_temperature: float = 0.3

    # LLM Provider Configuration
    ollama_base_url: str = "http://localhost:11434"
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_organization: str = ""
    anthropic_api_key: str = ""
    anthropic_base_url: str = "https://api.anthropic.com"
    azure_openai_api_key: str = ""
    azure_openai_endpoint: str = ""
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_region: str = "us-east-1"
    llm_timeout_seconds: int = 120

    # Content Store Configuration
    ipfs_api_url: str = "http://127.0.0.1:5001"
    ipfs_timeout_seconds: int = 60

    @property
    def sandbox_max_size_bytes(self) -> int:
        """Sandbox quota in bytes."""
        return self.sandbox_max_size_mb * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
