"""Provider adapter interfaces and the registry that holds them."""

from __future__ import annotations

import abc
from typing import Optional, Union

from .types import (
    HttpRequest,
    HttpResponse,
    InvokeRequest,
    InvokeResponse,
    ProviderKind,
    SpeechToTextRequest,
    SpeechToTextResponse,
    TextToSpeechRequest,
    TextToSpeechResponse,
)


class ProviderAdapter(abc.ABC):
    """Turns invoke requests into HTTP requests for one provider and back.

    Subclasses set ``kind`` and ``id``. ``build_http_request`` raises
    ``ValueError`` when the request cannot be built.
    """

    kind: ProviderKind = ProviderKind.UNKNOWN
    id: str = ""

    @abc.abstractmethod
    def build_http_request(self, request: InvokeRequest) -> HttpRequest:
        """Build the HTTP request for ``request``."""

    @abc.abstractmethod
    def parse_http_response(self, http_response: HttpResponse, response: InvokeResponse) -> bool:
        """Fill ``response`` from ``http_response``; return whether parsing succeeded."""

    def as_audio_adapter(self) -> Optional["AudioProviderAdapter"]:
        """The audio side of this adapter, if it has one."""
        return None


class AudioProviderAdapter(ProviderAdapter):
    """An adapter that may also handle speech-to-text and text-to-speech."""

    def as_audio_adapter(self) -> Optional["AudioProviderAdapter"]:
        return self

    def supports_speech_to_text(self) -> bool:
        return False

    def supports_text_to_speech(self) -> bool:
        return False

    def build_speech_to_text_request(self, request: SpeechToTextRequest) -> HttpRequest:
        raise ValueError("Speech-to-text is not supported by this provider")

    def parse_speech_to_text_response(
        self, http_response: HttpResponse, response: SpeechToTextResponse
    ) -> bool:
        response.ok = False
        response.error_code = "provider_not_supported"
        response.error_message = "Speech-to-text is not supported by this provider"
        return False

    def build_text_to_speech_request(self, request: TextToSpeechRequest) -> HttpRequest:
        raise ValueError("Text-to-speech is not supported by this provider")

    def parse_text_to_speech_response(
        self, http_response: HttpResponse, response: TextToSpeechResponse
    ) -> bool:
        response.ok = False
        response.error_code = "provider_not_supported"
        response.error_message = "Text-to-speech is not supported by this provider"
        return False


ProviderKey = Union[ProviderKind, str]


class ProviderRegistry:
    """Holds up to ``MAX_PROVIDERS`` adapters, unique by kind and by id."""

    MAX_PROVIDERS = 10

    def __init__(self) -> None:
        self._providers: list[ProviderAdapter] = []

    def add(self, adapter: ProviderAdapter) -> None:
        """Register ``adapter``; raise ``ValueError`` if full or a duplicate."""
        if len(self._providers) >= self.MAX_PROVIDERS:
            raise ValueError("Provider registry is full")
        if self.find(adapter.kind) is not None:
            raise ValueError(f"Provider kind already registered: {adapter.kind.value}")
        if self.find_by_id(adapter.id) is not None:
            raise ValueError(f"Provider id already registered: {adapter.id}")
        self._providers.append(adapter)

    def find(self, kind: ProviderKind) -> Optional[ProviderAdapter]:
        return next((p for p in self._providers if p.kind == kind), None)

    def find_by_id(self, provider_id: str) -> Optional[ProviderAdapter]:
        wanted = provider_id.lower()
        return next((p for p in self._providers if p.id.lower() == wanted), None)

    def find_audio(self, kind: ProviderKind) -> Optional[AudioProviderAdapter]:
        provider = self.find(kind)
        return provider.as_audio_adapter() if provider is not None else None

    def find_audio_by_id(self, provider_id: str) -> Optional[AudioProviderAdapter]:
        provider = self.find_by_id(provider_id)
        return provider.as_audio_adapter() if provider is not None else None

    def lookup(self, key: ProviderKey) -> Optional[ProviderAdapter]:
        """Find an adapter by kind or by id."""
        if isinstance(key, ProviderKind):
            return self.find(key)
        if isinstance(key, str):
            return self.find_by_id(key)
        raise TypeError(f"Provider key must be a ProviderKind or str, not {type(key).__name__}")

    def lookup_audio(self, key: ProviderKey) -> Optional[AudioProviderAdapter]:
        """Find an audio adapter by kind or by id."""
        if isinstance(key, ProviderKind):
            return self.find_audio(key)
        if isinstance(key, str):
            return self.find_audio_by_id(key)
        raise TypeError(f"Provider key must be a ProviderKind or str, not {type(key).__name__}")