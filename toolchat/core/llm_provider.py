"""LLM provider gateway with two backend strategies:
- Gemini (google-generativeai), system prompt via ``system_instruction``
- OpenAI-compatible chat completions (DashScope) over httpx

:class:`ProviderGateway` resolves a provider/model from ``toolchat/models.json``
(see :mod:`toolchat.core.config`), rejects media the model cannot accept, and
dispatches to the matching strategy. Every backend failure is raised as a
:class:`~toolchat.core.error_handling.ProviderError` for classification.
"""

import base64
import binascii
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import httpx

from . import config as models_config
from .error_handling import CredentialError, ModelCapabilityError, ProviderError


logger = logging.getLogger(__name__)

EMPTY_RESPONSE = "没有响应"


@dataclass(frozen=True)
class ConversationTurn:
    """One prior message. Any role other than ``user`` is the assistant."""
    role: str
    content: str

    def __post_init__(self):
        object.__setattr__(self, "role", "user" if self.role == "user" else "assistant")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationTurn":
        return cls(role=data.get("role", "user"), content=str(data.get("content") or ""))


@dataclass(frozen=True)
class MediaAttachment:
    """Base64 media sent with the newest user message only."""
    data: str
    mime_type: str

    def __post_init__(self):
        # Accept data URLs from the browser ("data:image/png;base64,....")
        if self.data.startswith("data:") and "," in self.data:
            object.__setattr__(self, "data", self.data.split(",", 1)[1])

    @property
    def is_video(self) -> bool:
        return self.mime_type.lower().startswith("video/")

    @property
    def is_image(self) -> bool:
        return self.mime_type.lower().startswith("image/")

    def decode(self) -> bytes:
        try:
            return base64.b64decode(self.data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ProviderError(f"Invalid media data: {e}") from e

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


class BaseLLMProvider(ABC):
    """Base class for backend strategies"""

    def __init__(self, api_key: str, model: str):
        self.api_key = api_key
        self.model_name = model

    @abstractmethod
    async def generate(
        self,
        message: str,
        history: Sequence[ConversationTurn] = (),
        media: Optional[MediaAttachment] = None,
        system_prompt: Optional[str] = None,
    ) -> str:
        """Return the completion text or raise ProviderError"""
        pass


@lru_cache(maxsize=1)
def configure_genai(api_key: str) -> None:
    """Configure the SDK once per key instead of on every request"""
    import google.generativeai as genai

    genai.configure(api_key=api_key)
    logger.debug("google-generativeai configured")


class GeminiProvider(BaseLLMProvider):
    """Google Gemini through the google-generativeai SDK"""

    provider_id = "google"

    def build_history(self, history: Sequence[ConversationTurn]) -> List[Dict[str, Any]]:
        return [
            {"role": "user" if turn.role == "user" else "model", "parts": [turn.content]}
            for turn in history
        ]

    def build_parts(self, message: str, media: Optional[MediaAttachment]) -> List[Any]:
        parts: List[Any] = []
        if media is not None:
            parts.append({"mime_type": media.mime_type, "data": media.decode()})
        if message:
            parts.append(message)
        return parts

    async def generate(self, message, history=(), media=None, system_prompt=None) -> str:
        import google.generativeai as genai

        parts = self.build_parts(message, media)

        try:
            configure_genai(self.api_key)
            model = genai.GenerativeModel(self.model_name, system_instruction=system_prompt or None)
            chat = model.start_chat(history=self.build_history(history))
            response = await chat.send_message_async(parts)
            text = response.text
        except Exception as e:
            # google.api_core errors carry the HTTP code ("429 Resource has been exhausted ...")
            status = getattr(e, "code", None)
            raise ProviderError(
                str(e) or type(e).__name__,
                provider=self.provider_id,
                model=self.model_name,
                status_code=status if isinstance(status, int) else None,
            ) from e

        return text or EMPTY_RESPONSE


class OpenAICompatibleProvider(BaseLLMProvider):
    """OpenAI-compatible /chat/completions API (DashScope compatible mode)"""

    def __init__(self, api_key: str, model: str, base_url: str,
                 provider_id: str = "qwen", http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(api_key, model)
        self.base_url = base_url.rstrip("/")
        self.provider_id = provider_id
        self._http_client = http_client

    @asynccontextmanager
    async def http_client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=models_config.get_http_timeout()) as client:
            yield client

    def build_messages(
        self,
        message: str,
        history: Sequence[ConversationTurn],
        media: Optional[MediaAttachment],
        system_prompt: Optional[str],
    ) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []

        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})

        for turn in history:
            messages.append({
                "role": "user" if turn.role == "user" else "assistant",
                "content": turn.content,
            })

        if media is not None:
            content: Any = [{"type": "image_url", "image_url": {"url": media.to_data_url()}}]
            if message:
                content.append({"type": "text", "text": message})
        else:
            content = message
        messages.append({"role": "user", "content": content})

        return messages

    async def generate(self, message, history=(), media=None, system_prompt=None) -> str:
        payload = {
            "model": self.model_name,
            "messages": self.build_messages(message, history, media, system_prompt),
        }

        try:
            async with self.http_client() as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise ProviderError(
                f"{status} {e.response.text[:500]}",
                provider=self.provider_id,
                model=self.model_name,
                status_code=status,
            ) from e
        except httpx.TransportError as e:
            raise ProviderError(
                f"Network error: {str(e) or type(e).__name__}",
                provider=self.provider_id,
                model=self.model_name,
            ) from e
        except ValueError as e:
            raise ProviderError(
                f"Invalid response from {self.provider_id}: {e}",
                provider=self.provider_id,
                model=self.model_name,
            ) from e

        choices = data.get("choices") or []
        if not choices:
            return EMPTY_RESPONSE
        return (choices[0].get("message") or {}).get("content") or EMPTY_RESPONSE


def get_llm_provider(strategy: str, **config) -> BaseLLMProvider:
    """Factory of backend strategies by name.

    Usage::

        llm = get_llm_provider("gemini", api_key="...", model="gemini-2.5-flash")
        text = await llm.generate("Hello")
    """

    providers = {
        "gemini": GeminiProvider,
        "openai_compatible": OpenAICompatibleProvider,
    }

    if strategy not in providers:
        raise ValueError(f"Unknown provider strategy: {strategy}. Available: {list(providers.keys())}")

    return providers[strategy](**config)


def validate_media(model: models_config.ModelDescriptor, media: Optional[MediaAttachment],
                   provider_id: Optional[str] = None) -> None:
    """Reject media the model cannot accept. Runs before any network call."""
    if media is None:
        return

    if media.is_video and not model.supports_video:
        raise ModelCapabilityError(
            f"Model {model.id} does not support video input",
            provider=provider_id, model=model.id, media_type=media.mime_type,
        )

    if not media.is_video and not model.supports_vision:
        raise ModelCapabilityError(
            f"Model {model.id} does not support image input",
            provider=provider_id, model=model.id, media_type=media.mime_type,
        )


class ProviderGateway:
    """
    Single entry point for completions across providers

    Usage:
        gateway = ProviderGateway()
        text = await gateway.call_provider("qwen", "qwen-plus-2025-12-01", "你好", history=[])
    """

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        """
        Args:
            http_client: shared client for OpenAI-compatible backends
        """
        self._http_client = http_client

    def resolve(self, provider_id: str, model_id: str):
        provider = models_config.get_provider(provider_id)
        if provider is None:
            raise ProviderError(f"Provider '{provider_id}' is not supported",
                                provider=provider_id, model=model_id)

        model = provider.get_model(model_id)
        if model is None:
            raise ProviderError(f"Model '{model_id}' is not supported by {provider.display_name}",
                                provider=provider_id, model=model_id)

        return provider, model

    def build_provider(self, provider: models_config.ProviderDescriptor,
                       model_id: str) -> BaseLLMProvider:
        api_key = models_config.get_api_key(provider)
        if provider.requires_api_key and not api_key:
            raise CredentialError(provider.api_key_env, provider=provider.id, model=model_id)

        if provider.strategy == "gemini":
            return get_llm_provider("gemini", api_key=api_key, model=model_id)

        base_url = models_config.get_base_url(provider)
        if not base_url:
            raise ProviderError(f"Provider '{provider.id}' has no base_url configured",
                                provider=provider.id, model=model_id)

        return get_llm_provider(
            provider.strategy,
            api_key=api_key,
            model=model_id,
            base_url=base_url,
            provider_id=provider.id,
            http_client=self._http_client,
        )

    async def call_provider(
        self,
        provider_id: str,
        model_id: str,
        message: str,
        history: Sequence[ConversationTurn] = (),
        media: Optional[MediaAttachment] = None,
        system_prompt: Optional[str] = None,
    ) -> str:
        """
        Run one completion

        Args:
            provider_id: catalog provider id
            model_id: catalog model id
            message: newest user message
            history: prior turns, oldest first
            media: optional attachment for the newest message
            system_prompt: opaque system prompt text

        Returns:
            Completion text

        Raises:
            ProviderError: unknown provider/model, unsupported media, missing
                credential, or any backend failure
        """
        provider, model = self.resolve(provider_id, model_id)
        validate_media(model, media, provider_id=provider.id)
        llm = self.build_provider(provider, model_id)

        logger.info(
            f"Calling {provider.id}/{model_id} (history={len(history)}, "
            f"media={media.mime_type if media else None})"
        )
        text = await llm.generate(message, history, media, system_prompt)
        logger.debug(f"{provider.id}/{model_id} returned {len(text)} chars")
        return text
