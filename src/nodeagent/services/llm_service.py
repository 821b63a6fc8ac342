"""LLM service with multi-provider routing.

The agent runtime treats any ``LLMFunction`` uniformly: either the built-in
``MultiProviderLLMService`` or a caller-supplied async callable (for example one
that routes inference through a remote compute node).
"""

from typing import Any, Protocol

import httpx
import structlog
from pydantic import BaseModel, Field

from ..config.settings import Settings, get_settings
from ..exceptions import LLMProviderError
from ..models.agent import LLMMessage, LLMProvider, LLMRequest, LLMResponse

logger = structlog.get_logger()


class LLMFunction(Protocol):
    """Async callable producing a completion for a request."""

    async def __call__(self, request: LLMRequest) -> LLMResponse: ...


class ProviderConfig(BaseModel):
    """Connection details for one provider."""

    type: LLMProvider = Field(description="Provider type")
    api_key: str | None = Field(default=None, description="API key")
    base_url: str | None = Field(default=None, description="Endpoint URL")
    organization: str | None = Field(default=None, description="OpenAI organization")
    region: str | None = Field(default=None, description="Cloud region")


PROVIDER_MODELS: dict[LLMProvider, dict[str, Any]] = {
    LLMProvider.OLLAMA: {
        "default": "llama3.2",
        "known": ["llama3.2", "llama3.1", "mistral", "codellama", "qwen2.5-coder:7b", "deepseek-coder"],
    },
    LLMProvider.OPENAI: {
        "default": "gpt-4o",
        "known": ["gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-3.5-turbo", "o1", "o3-mini"],
    },
    LLMProvider.ANTHROPIC: {
        "default": "claude-sonnet-4-5",
        "known": ["claude-sonnet-4-5", "claude-haiku-4-5", "claude-opus-4-5", "claude-3-5-sonnet-20241022"],
    },
    LLMProvider.AZURE: {
        "default": "gpt-4o",
        "known": ["gpt-4o", "gpt-4", "gpt-35-turbo"],
    },
    LLMProvider.BEDROCK: {
        "default": "anthropic.claude-3-sonnet-20240229-v1:0",
        "known": ["anthropic.claude-3-sonnet-20240229-v1:0", "anthropic.claude-3-haiku-20240307-v1:0"],
    },
}

AZURE_API_VERSION = "2024-02-15-preview"
ANTHROPIC_API_VERSION = "2023-06-01"
DEFAULT_OLLAMA_URL = "http://localhost:11434"


def _finish_reason(stopped: bool) -> str:
    return "stop" if stopped else "length"


class MultiProviderLLMService:
    """LLM adapter over Ollama, OpenAI, Azure OpenAI and Anthropic.

    Providers are configured from settings. A request either names its
    provider or is routed by a model-name heuristic.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize multi-provider LLM service.

        Args:
            settings: Configuration (defaults to cached settings)
            client: HTTP client (tests inject a mock transport)
        """
        self.settings = settings or get_settings()
        self.client = client or httpx.AsyncClient(timeout=self.settings.llm_timeout_seconds)
        self.providers: dict[LLMProvider, ProviderConfig] = self._detect_providers()

        logger.info(
            "llm_service_initialized",
            providers=[p.value for p in self.providers],
        )

    def _detect_providers(self) -> dict[LLMProvider, ProviderConfig]:
        s = self.settings
        providers: dict[LLMProvider, ProviderConfig] = {}
        if s.ollama_base_url:
            providers[LLMProvider.OLLAMA] = ProviderConfig(
                type=LLMProvider.OLLAMA,
                base_url=s.ollama_base_url,
            )
        if s.openai_api_key:
            providers[LLMProvider.OPENAI] = ProviderConfig(
                type=LLMProvider.OPENAI,
                api_key=s.openai_api_key,
                base_url=s.openai_base_url,
                organization=s.openai_organization or None,
            )
        if s.anthropic_api_key:
            providers[LLMProvider.ANTHROPIC] = ProviderConfig(
                type=LLMProvider.ANTHROPIC,
                api_key=s.anthropic_api_key,
                base_url=s.anthropic_base_url,
            )
        if s.azure_openai_api_key and s.azure_openai_endpoint:
            providers[LLMProvider.AZURE] = ProviderConfig(
                type=LLMProvider.AZURE,
                api_key=s.azure_openai_api_key,
                base_url=s.azure_openai_endpoint,
            )
        if s.aws_access_key_id and s.aws_secret_access_key:
            providers[LLMProvider.BEDROCK] = ProviderConfig(
                type=LLMProvider.BEDROCK,
                region=s.aws_region,
            )
        return providers

    def list_providers(self) -> list[dict[str, Any]]:
        """Describe every provider and whether it is configured."""
        return [
            {
                "name": provider.value,
                "available": provider in self.providers,
                "default_model": PROVIDER_MODELS[provider]["default"],
            }
            for provider in LLMProvider
        ]

    @staticmethod
    def known_models(provider: LLMProvider) -> list[str]:
        """Models known to work with a provider."""
        return list(PROVIDER_MODELS[provider]["known"])

    def select_provider(self, model: str) -> LLMProvider:
        """
        Pick a provider from the model name.

        Args:
            model: Model identifier

        Returns:
            Provider to route the request to

        Raises:
            LLMProviderError: If no provider is configured
        """
        if model.startswith(("gpt-", "o1", "o3")):
            for candidate in (LLMProvider.OPENAI, LLMProvider.AZURE):
                if candidate in self.providers:
                    return candidate
        if model.startswith("claude"):
            for candidate in (LLMProvider.ANTHROPIC, LLMProvider.BEDROCK):
                if candidate in self.providers:
                    return candidate

        if LLMProvider.OLLAMA in self.providers:
            return LLMProvider.OLLAMA
        if self.providers:
            return next(iter(self.providers))
        raise LLMProviderError("No LLM providers available")

    def get_provider(self, request: LLMRequest) -> ProviderConfig:
        """Resolve provider configuration, honouring per-request overrides."""
        provider = request.provider or self.select_provider(request.model)
        configured = self.providers.get(provider)

        if request.api_key or request.base_url:
            return ProviderConfig(
                type=provider,
                api_key=request.api_key or (configured.api_key if configured else None),
                base_url=request.base_url or (configured.base_url if configured else None),
            )

        if configured is None:
            if provider is LLMProvider.OLLAMA:
                return ProviderConfig(type=LLMProvider.OLLAMA, base_url=DEFAULT_OLLAMA_URL)
            raise LLMProviderError(
                f"Provider '{provider.value}' not available. Configure API key or use Ollama locally.",
                provider=provider.value,
            )
        return configured

    async def __call__(self, request: LLMRequest) -> LLMResponse:
        """Route to chat when messages are present, otherwise to generate."""
        if request.messages:
            return await self.chat(request)
        return await self.generate(request)

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Single-prompt completion."""
        provider = self.get_provider(request)
        logger.info("llm_generate", provider=provider.type.value, model=request.model)

        if provider.type is LLMProvider.OLLAMA:
            return await self._generate_ollama(request, provider)
        if provider.type in (LLMProvider.OPENAI, LLMProvider.AZURE):
            return await self._generate_openai(request, provider)
        if provider.type is LLMProvider.ANTHROPIC:
            return await self._generate_anthropic(request, provider)
        return await self._generate_bedrock(request, provider)

    async def chat(self, request: LLMRequest) -> LLMResponse:
        """Chat completion over a message history."""
        provider = self.get_provider(request)
        logger.info("llm_chat", provider=provider.type.value, model=request.model)

        if provider.type in (LLMProvider.OPENAI, LLMProvider.AZURE):
            return await self._generate_openai(request, provider)
        if provider.type is LLMProvider.ANTHROPIC:
            return await self._generate_anthropic(request, provider)

        # Completion-only providers get the history flattened into one prompt
        prompt = self._flatten_messages(request)
        flattened = request.model_copy(update={"prompt": prompt, "messages": None})
        if provider.type is LLMProvider.OLLAMA:
            return await self._generate_ollama(flattened, provider)
        return await self._generate_bedrock(flattened, provider)

    @staticmethod
    def _flatten_messages(request: LLMRequest) -> str:
        if not request.messages:
            return request.prompt or ""
        return "\n\n".join(f"{m.role}: {m.content}" for m in request.messages)

    @staticmethod
    def _messages(request: LLMRequest) -> list[LLMMessage]:
        return request.messages or [LLMMessage(role="user", content=request.prompt or "")]

    async def _post(self, provider: LLMProvider, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self.client.post(url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("llm_request_failed", provider=provider.value, error=str(e))
            raise LLMProviderError(f"{provider.value} request failed: {e}", provider=provider.value) from e

        if response.is_error:
            logger.error(
                "llm_request_rejected",
                provider=provider.value,
                status_code=response.status_code,
            )
            raise LLMProviderError(
                f"{provider.value} error: {response.status_code} - {response.text}",
                provider=provider.value,
            )
        return response.json()

    async def _generate_ollama(self, request: LLMRequest, config: ProviderConfig) -> LLMResponse:
        base_url = (config.base_url or DEFAULT_OLLAMA_URL).rstrip("/")
        data = await self._post(
            LLMProvider.OLLAMA,
            f"{base_url}/api/generate",
            json={
                "model": request.model,
                "prompt": request.prompt or self._flatten_messages(request),
                "stream": False,
                "options": {
                    "temperature": request.temperature,
                    "top_p": request.top_p,
                    "num_predict": request.max_tokens,
                    "stop": request.stop_sequences,
                },
            },
        )
        return LLMResponse(
            text=data.get("response", ""),
            tokens_generated=data.get("eval_count") or 0,
            tokens_prompt=data.get("prompt_eval_count") or 0,
            finish_reason=_finish_reason(data.get("done_reason") == "stop"),
        )

    async def _generate_openai(self, request: LLMRequest, config: ProviderConfig) -> LLMResponse:
        is_azure = config.type is LLMProvider.AZURE
        base_url = (config.base_url or self.settings.openai_base_url).rstrip("/")

        headers = {"Content-Type": "application/json"}
        if is_azure:
            headers["api-key"] = config.api_key or ""
            url = (
                f"{base_url}/openai/deployments/{request.model}/chat/completions"
                f"?api-version={AZURE_API_VERSION}"
            )
        else:
            headers["Authorization"] = f"Bearer {config.api_key}"
            if config.organization:
                headers["OpenAI-Organization"] = config.organization
            url = f"{base_url}/chat/completions"

        payload: dict[str, Any] = {
            "messages": [m.model_dump() for m in self._messages(request)],
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "top_p": request.top_p,
        }
        if not is_azure:
            payload["model"] = request.model
        if request.stop_sequences:
            payload["stop"] = request.stop_sequences

        data = await self._post(config.type, url, json=payload, headers=headers)
        choices = data.get("choices") or [{}]
        usage = data.get("usage") or {}
        return LLMResponse(
            text=(choices[0].get("message") or {}).get("content") or "",
            tokens_generated=usage.get("completion_tokens") or 0,
            tokens_prompt=usage.get("prompt_tokens") or 0,
            finish_reason=_finish_reason(choices[0].get("finish_reason") == "stop"),
        )

    async def _generate_anthropic(self, request: LLMRequest, config: ProviderConfig) -> LLMResponse:
        base_url = (config.base_url or self.settings.anthropic_base_url).rstrip("/")
        messages = self._messages(request)
        system = next((m.content for m in messages if m.role == "system"), None)

        payload: dict[str, Any] = {
            "model": request.model,
            "messages": [m.model_dump() for m in messages if m.role != "system"],
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "top_p": request.top_p,
        }
        if system is not None:
            payload["system"] = system
        if request.stop_sequences:
            payload["stop_sequences"] = request.stop_sequences

        data = await self._post(
            LLMProvider.ANTHROPIC,
            f"{base_url}/v1/messages",
            json=payload,
            headers={
                "Content-Type": "application/json",
                "x-api-key": config.api_key or "",
                "anthropic-version": ANTHROPIC_API_VERSION,
            },
        )
        usage = data.get("usage") or {}
        return LLMResponse(
            text="".join(c.get("text", "") for c in data.get("content", []) if c.get("type") == "text"),
            tokens_generated=usage.get("output_tokens") or 0,
            tokens_prompt=usage.get("input_tokens") or 0,
            finish_reason=_finish_reason(data.get("stop_reason") == "end_turn"),
        )

    async def _generate_bedrock(self, request: LLMRequest, config: ProviderConfig) -> LLMResponse:
        raise LLMProviderError(
            "AWS Bedrock is not supported by the HTTP adapter. "
            "Use the Anthropic provider or a custom LLM function instead.",
            provider=LLMProvider.BEDROCK.value,
        )

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()
        logger.info("llm_service_closed")


# Global singleton
_llm_service: MultiProviderLLMService | None = None


def get_llm_service() -> MultiProviderLLMService:
    """Get global LLM service instance, creating it from settings on first use."""
    global _llm_service
    if _llm_service is None:
        _llm_service = MultiProviderLLMService()
    return _llm_service


async def cleanup_llm_service() -> None:
    """Cleanup global LLM service."""
    global _llm_service
    if _llm_service is not None:
        await _llm_service.close()
        _llm_service = None
